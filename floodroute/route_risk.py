"""
Route Risk Module – Turn point flood predictions into route metrics and
graph edge costs.

Model:
    OverallRisk = 0.6 × MaxRisk + 0.4 × AverageRisk
    EdgeCost    = (Distance_km / Speed) × (1 + FloodSeverity(p)) × RainMultiplier   [hours]

The engine holds no per-query state: every analysis is rebuilt from the path
and one batch call to the injected predictor.  It never runs the search
itself; edge costs are meant to be handed to Dijkstra / A*.
"""

from __future__ import annotations

import math
from typing import NamedTuple, Sequence

import config
from floodroute.errors import EmptyRouteError, PredictionError
from floodroute.geodesy import (
    Coordinate,
    destination_point,
    haversine_distance,
    interpolate,
    path_distance,
)
from floodroute.prediction import RiskPredictor
from floodroute.risk_model import RiskLevel, RiskSample, RouteRiskAnalysis, RouteSegment


class EdgeAssessment(NamedTuple):
    cost_hours: float
    distance_m: float
    midpoint_risk: RiskSample


# ── Scoring ─────────────────────────────────────────────────────────────────

def flood_severity(probability: float) -> float:
    """
    Convex penalty on flood probability.

    Flat near zero, linear through moderate risk, quadratic above 0.6 so
    severe edges cost disproportionately more than their probability.
    """
    b = config.RISK_LEVEL_BOUNDS
    s = config.SEVERITY_SCALE
    if probability < b["minimal"]:
        return 0.0
    if probability < b["low"]:
        return probability * s["low"]
    if probability < b["moderate"]:
        return probability * s["moderate"]
    return probability ** 2 * s["high"]


def overall_risk(max_risk: float, average_risk: float) -> float:
    """Worst point dominates: one severe crossing outweighs a dry route."""
    return config.MAX_RISK_WEIGHT * max_risk + config.AVERAGE_RISK_WEIGHT * average_risk


def _segment_distance(samples: Sequence[RiskSample], start: int, end: int) -> float:
    return path_distance([s.coordinate for s in samples[start:end + 1]])


def detect_high_risk_segments(samples: Sequence[RiskSample]) -> list[RouteSegment]:
    """
    Walk the samples and emit maximal runs at a single warning level.

    A run opens on the first sample that requires a warning and closes when
    the level changes, when the warning ends, or at the last sample.
    """
    segments = []
    start = None
    level = None

    for i, sample in enumerate(samples):
        if sample.requires_warning:
            if start is None:
                start, level = i, sample.risk_level
            elif sample.risk_level != level:
                segments.append(RouteSegment(start, i - 1, level, _segment_distance(samples, start, i - 1)))
                start, level = i, sample.risk_level
        elif start is not None:
            segments.append(RouteSegment(start, i - 1, level, _segment_distance(samples, start, i - 1)))
            start, level = None, None

    if start is not None:
        end = len(samples) - 1
        segments.append(RouteSegment(start, end, level, _segment_distance(samples, start, end)))
    return segments


def estimate_travel_time(
    distance_m: float,
    samples: Sequence[RiskSample],
    base_speed_kmh: float = config.DEFAULT_TRAFFIC_SPEED_KMH,
) -> float:
    """
    Travel time in seconds with speed reduced by flood risk.

    Each sample pair is driven at base × clamp(1 − 0.7·p, 0.3, 1.0), where p
    is the probability at the pair's first sample.
    """
    if not samples:
        return distance_m / 1000.0 / base_speed_kmh * 3600

    total = 0.0
    for current, following in zip(samples, samples[1:]):
        leg = haversine_distance(current.coordinate, following.coordinate)
        factor = 1.0 - current.flood_probability * config.FLOOD_SLOWDOWN
        factor = min(max(factor, config.MIN_SPEED_FACTOR), 1.0)
        total += leg / 1000.0 / (base_speed_kmh * factor) * 3600
    return total


def is_route_recommended(
    overall: float,
    max_risk: float,
    segments: Sequence[RouteSegment],
) -> bool:
    if overall > config.NOT_RECOMMENDED_OVERALL:
        return False
    if max_risk > config.NOT_RECOMMENDED_MAX:
        return False
    if any(s.risk_level == RiskLevel.SEVERE for s in segments):
        return False
    if len(segments) > config.MAX_HIGH_RISK_SEGMENTS:
        return False
    return True


def select_safer_route(first: RouteRiskAnalysis, second: RouteRiskAnalysis) -> RouteRiskAnalysis:
    """
    Pick the safer of two analysed routes.

    Order: lower overall risk, then lower max risk, then shorter distance.
    A complete tie returns `second`; this is an arbitrary but fixed choice.
    """
    if first.overall_risk != second.overall_risk:
        return first if first.overall_risk < second.overall_risk else second
    if first.max_risk != second.max_risk:
        return first if first.max_risk < second.max_risk else second
    if first.total_distance < second.total_distance:
        return first
    return second


def route_advisories(analysis: RouteRiskAnalysis) -> list[str]:
    """Short human-readable advice lines, most urgent first."""
    lines = []
    if not analysis.is_recommended:
        lines.append("This route passes through high-risk flood areas")

    if analysis.max_risk > config.ADVISORY_SEVERE:
        lines.append("Severe flood risk detected on this route")
        lines.append("Consider delaying travel or finding an alternative route")
    elif analysis.max_risk > config.ADVISORY_HIGH:
        lines.append("High flood risk areas ahead")
        lines.append("Proceed with caution and monitor weather conditions")
    elif analysis.max_risk > config.ADVISORY_MODERATE:
        lines.append("Moderate flood risk on some segments")
        lines.append("Stay alert for weather updates")

    high_risk_m = analysis.high_risk_distance
    if high_risk_m > config.ADVISORY_SEGMENT_DISTANCE_M:
        lines.append(f"{high_risk_m / 1000:.1f} km of high-risk segments")

    minutes = math.ceil(analysis.estimated_time / 60)
    lines.append(f"Estimated travel time: {minutes} minutes")
    return lines


# ── Engine ──────────────────────────────────────────────────────────────────

class RouteRiskEngine:
    """Route analysis and edge costing over an injected RiskPredictor."""

    def __init__(
        self,
        predictor: RiskPredictor,
        sample_interval_m: float = config.SAMPLE_INTERVAL_M,
        base_speed_kmh: float = config.DEFAULT_TRAFFIC_SPEED_KMH,
    ):
        if sample_interval_m <= 0:
            raise ValueError("sample_interval_m must be > 0")
        if base_speed_kmh <= 0:
            raise ValueError("base_speed_kmh must be > 0")
        self.predictor = predictor
        self.sample_interval_m = sample_interval_m
        self.base_speed_kmh = base_speed_kmh

    def sample_route(self, path: Sequence) -> list[Coordinate]:
        """
        Resample a polyline so consecutive points are at most one interval
        apart.  The first point is kept and every segment end is included.
        """
        if not path:
            raise EmptyRouteError("Route path cannot be empty")
        points = [Coordinate(*p) for p in path]
        if len(points) < 2:
            return points

        sampled = [points[0]]
        for start, end in zip(points, points[1:]):
            n = math.ceil(haversine_distance(start, end) / self.sample_interval_m)
            for j in range(1, n + 1):
                sampled.append(interpolate(start, end, j / n))
        return sampled

    def acquire_risks(self, points: Sequence[Coordinate]) -> list[RiskSample]:
        """One batch prediction for all points; no retry, no partial result."""
        samples = list(self.predictor.get_risk_batch(points))
        if len(samples) != len(points):
            raise PredictionError(
                f"Predictor returned {len(samples)} samples for {len(points)} points"
            )
        return samples

    def analyze_route(self, path: Sequence) -> RouteRiskAnalysis:
        sampled = self.sample_route(path)
        samples = self.acquire_risks(sampled)
        route = [Coordinate(*p) for p in path]

        total_distance = path_distance(route)
        probabilities = [s.flood_probability for s in samples]
        max_risk = max(probabilities) if probabilities else 0.0
        average_risk = sum(probabilities) / len(probabilities) if probabilities else 0.0
        overall = overall_risk(max_risk, average_risk)

        segments = detect_high_risk_segments(samples)
        estimated_time = estimate_travel_time(total_distance, samples, self.base_speed_kmh)
        recommended = is_route_recommended(overall, max_risk, segments)

        analysis = RouteRiskAnalysis(
            route_path=route,
            point_risks=samples,
            overall_risk=overall,
            max_risk=max_risk,
            average_risk=average_risk,
            total_distance=total_distance,
            estimated_time=estimated_time,
            is_recommended=recommended,
            high_risk_segments=segments,
        )
        print(
            f"[ROUTE] {len(route)} points → {len(samples)} samples, "
            f"{total_distance:.0f}m, overall={overall:.3f}, max={max_risk:.3f}, "
            f"{len(segments)} warning segments, recommended={recommended}"
        )
        return analysis

    def analyze_between(self, origin, destination) -> RouteRiskAnalysis:
        """Analyse the direct two-point route from origin to destination."""
        return self.analyze_route([origin, destination])

    def assess_edge(
        self,
        start,
        end,
        distance_m: float | None = None,
        traffic_speed_kmh: float = config.DEFAULT_TRAFFIC_SPEED_KMH,
        rain_multiplier: float = 1.0,
    ) -> EdgeAssessment:
        """
        Cost of one graph edge, in hours, with risk sampled at its midpoint.

        Speed is clamped to [5, 100] km/h.  rain_multiplier must be >= 1.
        """
        if rain_multiplier < config.MIN_RAIN_MULTIPLIER:
            raise ValueError(f"rain_multiplier must be >= {config.MIN_RAIN_MULTIPLIER}")
        distance = distance_m if distance_m is not None else haversine_distance(start, end)

        midpoint_risk = self.predictor.get_risk(interpolate(start, end, 0.5))
        severity = flood_severity(midpoint_risk.flood_probability)
        speed = min(max(traffic_speed_kmh, config.MIN_SPEED_KMH), config.MAX_SPEED_KMH)

        cost = (distance / 1000.0) / speed * (1.0 + severity) * rain_multiplier
        return EdgeAssessment(cost, distance, midpoint_risk)

    def edge_cost(
        self,
        start,
        end,
        distance_m: float | None = None,
        traffic_speed_kmh: float = config.DEFAULT_TRAFFIC_SPEED_KMH,
        rain_multiplier: float = 1.0,
    ) -> float:
        return self.assess_edge(start, end, distance_m, traffic_speed_kmh, rain_multiplier).cost_hours

    def find_safe_point(
        self,
        destination,
        max_risk_threshold: float = config.SAFE_RISK_THRESHOLD,
        max_search_radius_m: float = config.SAFE_SEARCH_MAX_RADIUS_M,
        directions: int = config.SAFE_SEARCH_DIRECTIONS,
    ) -> Coordinate | None:
        """
        Nearest low-risk point around a flooded destination.

        Probes rings of growing radius at evenly spaced bearings and returns
        the first point at or below max_risk_threshold.
        """
        for radius in config.SAFE_SEARCH_RADII_M:
            if radius > max_search_radius_m:
                break
            for i in range(directions):
                heading = 360.0 / directions * i
                candidate = destination_point(destination, radius, heading)
                if self.predictor.get_risk(candidate).flood_probability <= max_risk_threshold:
                    print(f"[ROUTE] Safe point found {radius:.0f}m from destination (bearing {heading:.0f}°)")
                    return candidate

        print(f"[ROUTE] No safe point within {max_search_radius_m:.0f}m of destination")
        return None
