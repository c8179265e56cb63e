#!/usr/bin/env python3
"""
main.py – CLI entry point for the Flood-Risk Route Costing Engine.

Usage:
    python main.py --route route.geojson --risk-raster output/flood_risk.tif
    python main.py --origin 15.08,120.62 --destination 15.10,120.64 \\
                   --elevation-raster dem.tif --rainfall 80

The pipeline:
    1. Load the route (GeoJSON LineString or JSON [[lat, lon], ...])
    2. Optionally simplify it (Douglas–Peucker)
    3. Build a predictor (flood raster, or elevation + weather rules)
    4. Sample the route, predict risk, aggregate → route analysis
    5. Optionally compare with an alternative route
    6. Print advisories and save the JSON report
"""

import argparse
import json
import os
import sys

# Ensure project root is on the path so `import config` works
sys.path.insert(0, os.path.dirname(__file__))

import config
from floodroute.decision_support import generate_route_report
from floodroute.errors import FloodRouteError
from floodroute.geodesy import Coordinate, simplify_path
from floodroute.prediction import (
    RasterRiskPredictor,
    RasterSampler,
    RuleBasedPredictor,
    weather_condition_for_rainfall,
)
from floodroute.route_risk import RouteRiskEngine


def parse_coordinate(text: str) -> Coordinate:
    """'lat,lon' → Coordinate."""
    try:
        lat, lon = (float(v) for v in text.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected LAT,LON, got {text!r}")
    return Coordinate(lat, lon)


def load_route(path: str) -> list[Coordinate]:
    """
    Read a route file.  GeoJSON geometries are [lon, lat]; a bare JSON list
    is taken as [[lat, lon], ...].
    """
    with open(path) as f:
        data = json.load(f)

    if isinstance(data, list):
        return [Coordinate(float(lat), float(lon)) for lat, lon in data]

    if data.get("type") == "FeatureCollection":
        data = next(
            (feat for feat in data.get("features", [])
             if feat.get("geometry", {}).get("type") == "LineString"),
            None,
        )
        if data is None:
            raise ValueError(f"No LineString feature in {path}")
    if data.get("type") == "Feature":
        data = data["geometry"]
    if data.get("type") != "LineString":
        raise ValueError(f"Unsupported route geometry in {path}: {data.get('type')}")
    return [Coordinate(float(lat), float(lon)) for lon, lat in data["coordinates"]]


def build_predictor(args):
    if args.risk_raster:
        return RasterRiskPredictor.from_files(args.risk_raster, args.depth_raster)
    if args.elevation_raster:
        weather = args.weather or weather_condition_for_rainfall(args.rainfall)
        dem = RasterSampler.open(args.elevation_raster)
        print(f"[PREDICT] Rule-based model – weather={weather}, rain={args.rainfall}mm")
        return RuleBasedPredictor(dem.value_at, weather_condition=weather, rain_24h_mm=args.rainfall)
    raise ValueError("Either --risk-raster or --elevation-raster is required")


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Flood-risk-aware route analysis and edge costing",
    )
    route = p.add_mutually_exclusive_group(required=True)
    route.add_argument("--route", help="Route file (GeoJSON LineString or JSON [[lat, lon], ...])")
    route.add_argument("--origin", type=parse_coordinate, help="Origin as LAT,LON")
    p.add_argument("--destination", type=parse_coordinate, help="Destination as LAT,LON")
    p.add_argument("--compare", help="Alternative route file to compare against")
    p.add_argument("--risk-raster", help="Flood probability GeoTIFF")
    p.add_argument("--depth-raster", help="Flood depth GeoTIFF (metres)")
    p.add_argument("--elevation-raster", help="DEM GeoTIFF for the rule-based model")
    p.add_argument("--weather", default=None, help="Weather condition (e.g. heavy_rain)")
    p.add_argument("--rainfall", type=float, default=0.0, help="24h rainfall in mm")
    p.add_argument("--speed", type=float, default=config.DEFAULT_TRAFFIC_SPEED_KMH, help="Base speed km/h")
    p.add_argument("--simplify", type=float, default=None, help="Douglas–Peucker tolerance")
    p.add_argument("--find-safe-point", action="store_true",
                   help="Search a low-risk point near the destination if the route is not recommended")
    p.add_argument("--out-dir", default=config.OUTPUT_DIR, help="Report output directory")
    args = p.parse_args(argv)
    if args.origin is not None and args.destination is None:
        p.error("--origin requires --destination")
    return args


def main(argv=None) -> int:
    args = parse_args(argv)

    print("=" * 60)
    print("  FLOOD-RISK ROUTE ANALYSIS")
    print("=" * 60)

    try:
        path = load_route(args.route) if args.route else [args.origin, args.destination]
        if args.simplify is not None:
            before = len(path)
            path = simplify_path(path, args.simplify)
            print(f"[ROUTE] Simplified {before} → {len(path)} points (tolerance {args.simplify})")

        engine = RouteRiskEngine(build_predictor(args), base_speed_kmh=args.speed)
        analysis = engine.analyze_route(path)
        alternative = engine.analyze_route(load_route(args.compare)) if args.compare else None

        safe_point = None
        if args.find_safe_point and not analysis.is_recommended:
            safe_point = engine.find_safe_point(analysis.route_path[-1])
    except (FloodRouteError, ValueError, OSError) as e:
        print(f"[ERROR] Route could not be assessed: {e}")
        return 1

    params = {"speed_kmh": args.speed, "rainfall_mm": args.rainfall, "weather": args.weather}
    if safe_point is not None:
        params["safe_point"] = [safe_point.lat, safe_point.lon]
    report = generate_route_report(analysis, alternative=alternative, params=params, out_dir=args.out_dir)

    print()
    print(report["summary_text"])
    print("\n" + "=" * 60)
    print(f"  📊  Report → {report['path']}")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
