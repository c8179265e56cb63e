"""
Configuration constants for the Flood-Risk Route Costing Engine.

Model:
  OverallRisk = 0.6 × MaxRisk + 0.4 × AverageRisk
  EdgeCost    = (Distance_km / Speed) × (1 + FloodSeverity) × RainMultiplier

Probabilities are in [0, 1], distances in metres, speeds in km/h.
"""

# ── Default Area of Interest (Pampanga, Philippines) ────────────────────────
DEFAULT_LAT = 15.0794
DEFAULT_LON = 120.6200
DEFAULT_RADIUS_KM = 5  # small default for fast testing

# ── Geodesy ─────────────────────────────────────────────────────────────────
EARTH_RADIUS_M = 6_371_000.0
POLYGON_EPSILON_DEG = 1e-8   # ray-casting nudge at vertex latitudes

# ── Route Sampling & Travel Time ────────────────────────────────────────────
SAMPLE_INTERVAL_M = 100.0
DEFAULT_TRAFFIC_SPEED_KMH = 40.0
MIN_SPEED_KMH = 5.0
MAX_SPEED_KMH = 100.0
FLOOD_SLOWDOWN = 0.7         # risk can cut effective speed by at most 70%
MIN_SPEED_FACTOR = 0.3

# ── Risk Levels (probability upper bounds, exclusive) ───────────────────────
RISK_LEVEL_BOUNDS = {
    "minimal":  0.1,   # 0.0 – 0.1  → Minimal
    "low":      0.3,   # 0.1 – 0.3  → Low
    "moderate": 0.6,   # 0.3 – 0.6  → Moderate
    "high":     0.8,   # 0.6 – 0.8  → High
                       # 0.8 – 1.0  → Severe
}

# ── Route Aggregation ───────────────────────────────────────────────────────
MAX_RISK_WEIGHT = 0.6
AVERAGE_RISK_WEIGHT = 0.4
NOT_RECOMMENDED_OVERALL = 0.6
NOT_RECOMMENDED_MAX = 0.8
MAX_HIGH_RISK_SEGMENTS = 3

# ── Advisories (thresholds on max risk) ─────────────────────────────────────
ADVISORY_SEVERE = 0.8
ADVISORY_HIGH = 0.6
ADVISORY_MODERATE = 0.3
ADVISORY_SEGMENT_DISTANCE_M = 1000.0

# ── Edge Costing ────────────────────────────────────────────────────────────
# Severity is convex so a search routes around severe edges.
SEVERITY_SCALE = {
    "low":      0.5,    # p × 0.5     for 0.1 ≤ p < 0.3
    "moderate": 2.0,    # p × 2.0     for 0.3 ≤ p < 0.6
    "high":     10.0,   # p² × 10.0   for p ≥ 0.6
}
MIN_RAIN_MULTIPLIER = 1.0
MAX_RAIN_MULTIPLIER = 3.0    # heavy rain (rule-based rain adjustment)

# ── Safe-Point Search ───────────────────────────────────────────────────────
SAFE_SEARCH_RADII_M = [100.0, 250.0, 500.0, 1000.0, 2000.0, 5000.0]
SAFE_SEARCH_MAX_RADIUS_M = 5000.0
SAFE_SEARCH_DIRECTIONS = 8
SAFE_RISK_THRESHOLD = 0.3

# ── Rule-Based Predictor (calibrated on satellite flood history) ────────────
# (upper elevation bound in metres, base flood probability)
ELEVATION_BASE_RISK = [
    (5.0,   0.35),
    (10.0,  0.25),
    (20.0,  0.15),
    (50.0,  0.08),
    (100.0, 0.03),
]
HIGH_GROUND_BASE_RISK = 0.01

WEATHER_MULTIPLIERS = {
    "clear":         0.5,
    "cloudy":        0.8,
    "light_rain":    1.2,
    "moderate_rain": 1.8,
    "heavy_rain":    2.5,
    "thunderstorm":  3.0,
    "typhoon":       5.0,
}
RAIN_FACTOR_DIVISOR_MM = 100.0

# (elevation bound in metres, depth in cm at probability 1.0)
DEPTH_SCALE_CM = [
    (5.0,  100.0),
    (10.0, 60.0),
]
DEFAULT_DEPTH_SCALE_CM = 30.0

# 24 h rainfall (mm) → weather condition, checked top-down
RAINFALL_CONDITIONS = [
    (125.0, "typhoon"),
    (50.0,  "heavy_rain"),
    (20.0,  "moderate_rain"),
    (5.0,   "light_rain"),
]

# ── Raster Sampling ─────────────────────────────────────────────────────────
RASTER_FALLBACK_VALUE = 0.0  # outside the raster or nodata

# ── Road Network ────────────────────────────────────────────────────────────
NETWORK_TYPE = "drive"
ROAD_MAX_RETRIES = 3
FLOOD_COST_WEIGHT = "flood_cost"

# ── Output Paths ────────────────────────────────────────────────────────────
OUTPUT_DIR = "output"
RISK_GEOTIFF = "flood_risk.tif"
ROUTE_REPORT_JSON = "route_risk_report.json"
