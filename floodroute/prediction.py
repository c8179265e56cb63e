"""
Prediction Module – Flood risk collaborators consumed by the route engine.

The engine only depends on the RiskPredictor contract.  Two reference
backends live here:

    RasterRiskPredictor – samples a flood-probability GeoTIFF (and optional
                          depth GeoTIFF) at each coordinate.
    RuleBasedPredictor  – BaseRisk(elevation) × WeatherMultiplier × RainFactor,
                          calibrated on satellite-derived flood history.
"""

from __future__ import annotations

import math
from typing import Callable, Protocol, Sequence

import numpy as np
import rasterio
from rasterio.errors import RasterioError

import config
from floodroute.errors import PredictionError
from floodroute.geodesy import Coordinate, geo_to_pixel
from floodroute.risk_model import RiskSample


class RiskPredictor(Protocol):
    """
    Point flood-risk backend.

    get_risk_batch must return one sample per coordinate, in order, and fail
    as a whole (PredictionError) rather than return partial results.
    """

    def get_risk(self, coordinate) -> RiskSample:
        ...

    def get_risk_batch(self, coordinates: Sequence) -> list[RiskSample]:
        ...


# ── Raster sampling ─────────────────────────────────────────────────────────

class RasterSampler:
    """Nearest-pixel lookup on a single raster band held in memory."""

    def __init__(self, band: np.ndarray, transform, nodata: float | None = None,
                 fallback: float = config.RASTER_FALLBACK_VALUE):
        self.band = np.asarray(band, dtype=np.float64)
        self.transform = transform
        self.nodata = nodata
        self.fallback = fallback

    @classmethod
    def open(cls, path: str, band_index: int = 1, **kwargs) -> RasterSampler:
        """Read one band of a GeoTIFF into memory."""
        try:
            with rasterio.open(path) as src:
                band = src.read(band_index)
                transform = src.transform
                nodata = src.nodata
        except RasterioError as exc:
            raise PredictionError(f"Cannot read raster {path}: {exc}") from exc
        rows, cols = band.shape
        print(f"[PREDICT] Loaded raster {path} ({cols}×{rows})")
        return cls(band, transform, nodata=nodata, **kwargs)

    def value_at(self, coordinate) -> float:
        col, row = geo_to_pixel(coordinate, self.transform)
        rows, cols = self.band.shape
        if not (0 <= row < rows and 0 <= col < cols):
            return self.fallback
        value = float(self.band[row, col])
        if math.isnan(value) or (self.nodata is not None and value == self.nodata):
            return self.fallback
        return value


class RasterRiskPredictor:
    """Flood probability (and optionally depth in metres) from rasters."""

    def __init__(self, probability: RasterSampler, depth: RasterSampler | None = None):
        self.probability = probability
        self.depth = depth

    @classmethod
    def from_files(cls, probability_path: str, depth_path: str | None = None) -> RasterRiskPredictor:
        depth = RasterSampler.open(depth_path) if depth_path else None
        return cls(RasterSampler.open(probability_path), depth)

    def get_risk(self, coordinate) -> RiskSample:
        coordinate = Coordinate(*coordinate)
        probability = self.probability.value_at(coordinate)
        depth = self.depth.value_at(coordinate) if self.depth is not None else 0.0
        try:
            return RiskSample(
                coordinate=coordinate,
                flood_probability=probability,
                flood_depth=depth,
                features={"raster_probability": probability, "raster_depth": depth},
            )
        except ValueError as exc:
            raise PredictionError(f"Invalid raster value at {coordinate}: {exc}") from exc

    def get_risk_batch(self, coordinates: Sequence) -> list[RiskSample]:
        return [self.get_risk(c) for c in coordinates]


# ── Rule-based calculator ───────────────────────────────────────────────────

def base_risk_for_elevation(elevation_m: float) -> float:
    """Historical flood probability by elevation band (lower = wetter)."""
    for upper, risk in config.ELEVATION_BASE_RISK:
        if elevation_m < upper:
            return risk
    return config.HIGH_GROUND_BASE_RISK


def weather_multiplier(condition: str) -> float:
    return config.WEATHER_MULTIPLIERS.get(condition.lower(), 1.0)


def weather_condition_for_code(code: int) -> str:
    """Map an OpenWeatherMap condition code onto a weather category."""
    if 200 <= code < 300:
        return "thunderstorm"
    if 300 <= code < 400:
        return "light_rain"
    if 500 <= code < 505:
        if code == 500:
            return "light_rain"
        if code == 501:
            return "moderate_rain"
        return "heavy_rain"
    if 505 <= code < 600:
        return "heavy_rain"
    if 600 <= code < 700:
        return "light_rain"  # snow counts as rain
    if code == 800:
        return "clear"
    return "cloudy"


def weather_condition_for_rainfall(rainfall_mm: float) -> str:
    for threshold, condition in config.RAINFALL_CONDITIONS:
        if rainfall_mm >= threshold:
            return condition
    return "cloudy"


def apply_rain_multiplier(base_risk: float, rain_multiplier: float) -> float:
    """Scale a risk by live rainfall; multiplier clamped to [1, 3], result to [0, 1]."""
    multiplier = min(max(rain_multiplier, config.MIN_RAIN_MULTIPLIER), config.MAX_RAIN_MULTIPLIER)
    return min(max(base_risk * multiplier, 0.0), 1.0)


def estimate_depth_m(risk: float, elevation_m: float) -> float:
    scale_cm = config.DEFAULT_DEPTH_SCALE_CM
    for upper, cm in config.DEPTH_SCALE_CM:
        if elevation_m < upper:
            scale_cm = cm
            break
    return risk * scale_cm / 100.0


class RuleBasedPredictor:
    """
    FloodRisk = clamp(BaseRisk(elevation) × Weather × (1 + Rain24h / 100), 0, 1)

    elevation_at is any callable returning metres for a coordinate, e.g.
    RasterSampler.open("dem.tif").value_at.
    """

    def __init__(
        self,
        elevation_at: Callable[[Coordinate], float],
        weather_condition: str = "cloudy",
        rain_24h_mm: float = 0.0,
    ):
        self.elevation_at = elevation_at
        self.weather_condition = weather_condition
        self.rain_24h_mm = rain_24h_mm

    def calculate(self, elevation_m: float) -> tuple[float, dict[str, float]]:
        base = base_risk_for_elevation(elevation_m)
        weather = weather_multiplier(self.weather_condition)
        rain_factor = 1.0 + self.rain_24h_mm / config.RAIN_FACTOR_DIVISOR_MM
        risk = min(max(base * weather * rain_factor, 0.0), 1.0)
        features = {
            "elevation": float(elevation_m),
            "base_risk": base,
            "weather_multiplier": weather,
            "rain_factor": rain_factor,
        }
        return risk, features

    def get_risk(self, coordinate) -> RiskSample:
        coordinate = Coordinate(*coordinate)
        try:
            elevation = float(self.elevation_at(coordinate))
        except Exception as exc:
            raise PredictionError(f"Elevation lookup failed at {coordinate}: {exc}") from exc

        risk, features = self.calculate(elevation)
        return RiskSample(
            coordinate=coordinate,
            flood_probability=risk,
            flood_depth=estimate_depth_m(risk, elevation),
            features=features,
        )

    def get_risk_batch(self, coordinates: Sequence) -> list[RiskSample]:
        return [self.get_risk(c) for c in coordinates]
