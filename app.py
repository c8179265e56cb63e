#!/usr/bin/env python3
"""
app.py – Flask JSON API for flood-risk route analysis.

Endpoints:
    GET  /api/health        → liveness + which predictor is loaded
    POST /api/route-risk    → { path: [[lat, lon], ...] } → analysis + advisories
    POST /api/edge-cost     → { start, end, distance_m?, traffic_speed_kmh?, rain_multiplier? }
    POST /api/compare       → { first: [[lat, lon], ...], second: [...] } → safer route
"""

import os
import sys
import threading

from flask import Flask, jsonify, request

# Ensure project root on path
sys.path.insert(0, os.path.dirname(__file__))

import config
from floodroute.errors import PredictionError
from floodroute.geodesy import Coordinate
from floodroute.prediction import RasterRiskPredictor
from floodroute.route_risk import RouteRiskEngine, route_advisories, select_safer_route

app = Flask(__name__)

# Engine built lazily from the flood raster in OUTPUT_DIR
_engine = None
_engine_lock = threading.Lock()


def get_engine() -> RouteRiskEngine:
    """Lazy-init the engine once."""
    global _engine
    with _engine_lock:
        if _engine is None:
            risk_tif = os.path.join(config.OUTPUT_DIR, config.RISK_GEOTIFF)
            _engine = RouteRiskEngine(RasterRiskPredictor.from_files(risk_tif))
            print(f"[APP] Engine ready (raster: {risk_tif})")
        return _engine


def _json_body() -> dict:
    data = request.get_json(force=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("request body must be a JSON object")
    return data


def _parse_path(raw) -> list[Coordinate]:
    if not isinstance(raw, list):
        raise ValueError("path must be a list of [lat, lon] pairs")
    return [_parse_point(p, "path point") for p in raw]


def _parse_point(raw, name: str) -> Coordinate:
    if not isinstance(raw, (list, tuple)) or len(raw) != 2:
        raise ValueError(f"{name} must be [lat, lon]")
    return Coordinate(float(raw[0]), float(raw[1]))


@app.errorhandler(ValueError)
def bad_request(e):
    return jsonify({"error": str(e)}), 400


@app.errorhandler(PredictionError)
def prediction_failed(e):
    print(f"[APP] Prediction failed: {e}")
    return jsonify({"error": f"Flood risk could not be assessed: {e}"}), 502


# ── Routes ──────────────────────────────────────────────────────────────────


@app.route("/api/health")
def health():
    return jsonify({"status": "ok", "engine_loaded": _engine is not None})


@app.route("/api/route-risk", methods=["POST"])
def route_risk():
    """
    Accepts JSON: { path: [[lat, lon], ...] }
    Returns: analysis dict plus advisories.
    """
    data = _json_body()
    path = _parse_path(data.get("path"))
    analysis = get_engine().analyze_route(path)
    result = analysis.to_dict()
    result["advisories"] = route_advisories(analysis)
    return jsonify(result)


@app.route("/api/edge-cost", methods=["POST"])
def edge_cost():
    data = _json_body()
    start = _parse_point(data.get("start"), "start")
    end = _parse_point(data.get("end"), "end")
    distance = data.get("distance_m")
    assessment = get_engine().assess_edge(
        start,
        end,
        distance_m=float(distance) if distance is not None else None,
        traffic_speed_kmh=float(data.get("traffic_speed_kmh", config.DEFAULT_TRAFFIC_SPEED_KMH)),
        rain_multiplier=float(data.get("rain_multiplier", 1.0)),
    )
    return jsonify({
        "cost_hours": assessment.cost_hours,
        "distance_m": assessment.distance_m,
        "midpoint_risk": assessment.midpoint_risk.to_dict(),
    })


@app.route("/api/compare", methods=["POST"])
def compare():
    data = _json_body()
    engine = get_engine()
    first = engine.analyze_route(_parse_path(data.get("first")))
    second = engine.analyze_route(_parse_path(data.get("second")))
    safer = select_safer_route(first, second)
    return jsonify({
        "safer": "first" if safer is first else "second",
        "first": {"overall_risk": first.overall_risk, "max_risk": first.max_risk,
                  "total_distance": first.total_distance, "is_recommended": first.is_recommended},
        "second": {"overall_risk": second.overall_risk, "max_risk": second.max_risk,
                   "total_distance": second.total_distance, "is_recommended": second.is_recommended},
    })


if __name__ == "__main__":
    print("🌊 Flood route API starting...")
    print("   POST http://localhost:5050/api/route-risk")
    app.run(debug=False, port=5050, threaded=True)
