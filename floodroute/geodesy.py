"""
Geodesy Module – Spherical distance/bearing, projections and path geometry.

All functions are pure and work on (lat, lon) pairs in WGS84 degrees.
Distances use a spherical Earth (R = 6 371 km), which is accurate enough
at route-segment scale (< 50 km).
"""

import math
from typing import NamedTuple, Sequence

import config
from floodroute.errors import DegenerateGeometryError


class Coordinate(NamedTuple):
    lat: float
    lon: float


class UtmCoordinate(NamedTuple):
    easting: float
    northing: float
    zone: int
    hemisphere: str


# WGS84 ellipsoid
_WGS84_A = 6_378_137.0
_WGS84_E = 0.081819190842622
_UTM_K0 = 0.9996
_UTM_FALSE_EASTING = 500_000.0
_UTM_FALSE_NORTHING_SOUTH = 10_000_000.0


# ── Distance & Bearing ──────────────────────────────────────────────────────

def haversine_distance(p1, p2) -> float:
    """Great-circle distance in metres between two (lat, lon) points."""
    lat1, lon1 = p1
    lat2, lon2 = p2
    rlat1, rlat2 = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = math.sin(dlat / 2) ** 2 + math.cos(rlat1) * math.cos(rlat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return config.EARTH_RADIUS_M * c


def bearing(start, end) -> float:
    """Initial bearing in degrees [0, 360), 0 = north, clockwise."""
    lat1, lon1 = start
    lat2, lon2 = end
    rlat1, rlat2 = math.radians(lat1), math.radians(lat2)
    dlon = math.radians(lon2 - lon1)

    y = math.sin(dlon) * math.cos(rlat2)
    x = math.cos(rlat1) * math.sin(rlat2) - math.sin(rlat1) * math.cos(rlat2) * math.cos(dlon)
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def destination_point(start, distance_m: float, bearing_deg: float) -> Coordinate:
    """
    Point reached by travelling distance_m along bearing_deg from start.

    Spherical direct problem; inverse of haversine_distance + bearing.
    """
    lat1 = math.radians(start[0])
    lon1 = math.radians(start[1])
    theta = math.radians(bearing_deg)
    delta = distance_m / config.EARTH_RADIUS_M

    lat2 = math.asin(
        math.sin(lat1) * math.cos(delta)
        + math.cos(lat1) * math.sin(delta) * math.cos(theta)
    )
    lon2 = lon1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(lat1),
        math.cos(delta) - math.sin(lat1) * math.sin(lat2),
    )
    return Coordinate(math.degrees(lat2), math.degrees(lon2))


def interpolate(start, end, fraction: float) -> Coordinate:
    """
    Linear interpolation in lat/lon space.

    Not a great-circle slerp: fine for short segments, biased on long or
    near-pole spans.
    """
    lat = start[0] + (end[0] - start[0]) * fraction
    lon = start[1] + (end[1] - start[1]) * fraction
    return Coordinate(lat, lon)


def path_distance(path: Sequence) -> float:
    """Sum of haversine distances between consecutive points."""
    return sum(haversine_distance(path[i], path[i + 1]) for i in range(len(path) - 1))


# ── Projections ─────────────────────────────────────────────────────────────

def to_utm(coordinate) -> UtmCoordinate:
    """
    WGS84 lat/lon → UTM (Snyder / USGS series expansion).

    The series is truncated at the A^5 / A^6 terms; good for display and
    reporting, not survey-grade output.
    """
    lat, lon = coordinate
    zone = math.floor((lon + 180) / 6) + 1
    lon_origin = (zone - 1) * 6 - 180 + 3

    lat_rad = math.radians(lat)
    lon_rad = math.radians(lon)
    lon_origin_rad = math.radians(lon_origin)

    a = _WGS84_A
    e = _WGS84_E
    e2, e4, e6 = e ** 2, e ** 4, e ** 6
    ep2 = e2 / (1 - e2)

    n = a / math.sqrt(1 - (e * math.sin(lat_rad)) ** 2)
    t = math.tan(lat_rad) ** 2
    c = ep2 * math.cos(lat_rad) ** 2
    big_a = (lon_rad - lon_origin_rad) * math.cos(lat_rad)

    m = a * (
        (1 - e2 / 4 - 3 * e4 / 64 - 5 * e6 / 256) * lat_rad
        - (3 * e2 / 8 + 3 * e4 / 32 + 45 * e6 / 1024) * math.sin(2 * lat_rad)
        + (15 * e4 / 256 + 45 * e6 / 1024) * math.sin(4 * lat_rad)
        - (35 * e6 / 3072) * math.sin(6 * lat_rad)
    )

    easting = _UTM_K0 * n * (
        big_a
        + (1 - t + c) * big_a ** 3 / 6
        + (5 - 18 * t + t ** 2 + 72 * c - 58 * ep2) * big_a ** 5 / 120
    ) + _UTM_FALSE_EASTING

    northing = _UTM_K0 * (
        m
        + n * math.tan(lat_rad) * (
            big_a ** 2 / 2
            + (5 - t + 9 * c + 4 * c ** 2) * big_a ** 4 / 24
            + (61 - 58 * t + t ** 2 + 600 * c - 330 * ep2) * big_a ** 6 / 720
        )
    )

    if lat < 0:
        northing += _UTM_FALSE_NORTHING_SOUTH
    hemisphere = "N" if lat >= 0 else "S"
    return UtmCoordinate(easting, northing, zone, hemisphere)


def _round_half_away(value: float) -> int:
    return int(math.floor(abs(value) + 0.5)) * (1 if value >= 0 else -1)


def geo_to_pixel(coordinate, transform) -> tuple[int, int]:
    """
    Geographic coordinate → raster pixel (col, row).

    transform is GDAL-ordered (x0, a, b, y0, c, d) or an affine.Affine as
    carried by rasterio datasets.  Raises DegenerateGeometryError when the
    2×2 matrix [a, b; c, d] is singular.
    """
    if hasattr(transform, "to_gdal"):
        transform = transform.to_gdal()
    x0, a, b, y0, c, d = transform

    det = a * d - b * c
    if det == 0:
        raise DegenerateGeometryError(f"Affine transform is not invertible: {tuple(transform)}")

    lat, lon = coordinate
    dx = lon - x0
    dy = lat - y0
    pixel_x = _round_half_away((d * dx - b * dy) / det)
    pixel_y = _round_half_away((-c * dx + a * dy) / det)
    return pixel_x, pixel_y


# ── Path Simplification ─────────────────────────────────────────────────────

def _perpendicular_distance(point, line_start, line_end) -> float:
    """Shoelace cross product (degrees²) over the haversine chord length."""
    area = abs(
        (line_end[1] - line_start[1]) * (point[0] - line_start[0])
        - (line_end[0] - line_start[0]) * (point[1] - line_start[1])
    )
    base = haversine_distance(line_start, line_end)
    if base == 0:
        # closed chord: any off-chord point is an unbounded deviation
        return math.inf if area > 0 else 0.0
    return area / base


def simplify_path(points: Sequence, tolerance: float) -> list:
    """
    Douglas–Peucker simplification.

    Keeps the point of maximum deviation from the current chord whenever that
    deviation exceeds tolerance, otherwise collapses the span to its
    endpoints.  Uses a work stack instead of recursion so very long
    polylines cannot exhaust the call stack.
    """
    if tolerance < 0:
        raise ValueError("tolerance must be >= 0")
    if len(points) < 3:
        return list(points)

    keep = {0, len(points) - 1}
    stack = [(0, len(points) - 1)]
    while stack:
        first, last = stack.pop()
        if last - first < 2:
            continue

        max_distance = 0.0
        max_index = first
        for i in range(first + 1, last):
            distance = _perpendicular_distance(points[i], points[first], points[last])
            if distance > max_distance:
                max_distance = distance
                max_index = i

        if max_distance > tolerance:
            keep.add(max_index)
            stack.append((first, max_index))
            stack.append((max_index, last))

    return [points[i] for i in sorted(keep)]


# ── Point in Polygon ────────────────────────────────────────────────────────

def _ray_intersects_segment(point, vertex1, vertex2) -> bool:
    if vertex1[0] > vertex2[0]:
        vertex1, vertex2 = vertex2, vertex1

    lat, lon = point
    if lat == vertex1[0] or lat == vertex2[0]:
        lat += config.POLYGON_EPSILON_DEG

    if lat < vertex1[0] or lat > vertex2[0]:
        return False
    if lon >= max(vertex1[1], vertex2[1]):
        return False
    if lon < min(vertex1[1], vertex2[1]):
        return True

    if lon == vertex1[1]:
        red = math.inf if lat > vertex1[0] else math.nan
    else:
        red = (lat - vertex1[0]) / (lon - vertex1[1])
    blue = (vertex2[0] - vertex1[0]) / (vertex2[1] - vertex1[1])
    return red >= blue


def is_point_in_polygon(point, polygon: Sequence) -> bool:
    """
    Even-odd ray casting over an ordered vertex ring (closing edge implied).

    A test latitude equal to a vertex latitude is nudged by a tiny epsilon
    so edge-touching rays are not double counted.
    """
    intersections = 0
    for i in range(len(polygon)):
        if _ray_intersects_segment(point, polygon[i], polygon[(i + 1) % len(polygon)]):
            intersections += 1
    return intersections % 2 == 1
