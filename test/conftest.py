import numpy as np
import pytest
import rasterio
from rasterio.transform import from_origin

from floodroute.errors import PredictionError
from floodroute.geodesy import Coordinate, haversine_distance
from floodroute.route_risk import RouteRiskEngine
from floodroute.risk_model import RiskSample

# Three points along a meridian, ~500 m apart
ROUTE = [(15.0, 120.0), (15.0045, 120.0), (15.009, 120.0)]


class FakePredictor:
    """Constant background probability with optional hotspots."""

    def __init__(self, probability=0.05, hotspots=None, hotspot_radius_m=1.0):
        self.probability = probability
        self.hotspots = hotspots or {}
        self.hotspot_radius_m = hotspot_radius_m
        self.single_calls = 0
        self.batch_calls = 0

    def probability_at(self, coordinate):
        for point, probability in self.hotspots.items():
            if haversine_distance(point, coordinate) <= self.hotspot_radius_m:
                return probability
        return self.probability

    def _sample(self, coordinate):
        return RiskSample(Coordinate(*coordinate), self.probability_at(coordinate))

    def get_risk(self, coordinate):
        self.single_calls += 1
        return self._sample(coordinate)

    def get_risk_batch(self, coordinates):
        self.batch_calls += 1
        return [self._sample(c) for c in coordinates]


class FailingPredictor:
    def get_risk(self, coordinate):
        raise PredictionError("backend unreachable")

    def get_risk_batch(self, coordinates):
        raise PredictionError("backend unreachable")


@pytest.fixture
def fake_predictor() -> FakePredictor:
    return FakePredictor()


@pytest.fixture
def engine(fake_predictor) -> RouteRiskEngine:
    return RouteRiskEngine(fake_predictor)


@pytest.fixture
def risk_raster(tmp_path) -> str:
    """2×2 flood probability GeoTIFF, 0.01° pixels, top-left at (15.1, 120.0)."""
    path = tmp_path / "flood_risk.tif"
    data = np.array([[0.05, 0.5], [0.9, np.nan]], dtype="float32")
    with rasterio.open(
        path, "w",
        driver="GTiff", height=2, width=2, count=1, dtype="float32",
        crs="EPSG:4326", transform=from_origin(120.0, 15.1, 0.01, 0.01), nodata=np.nan,
    ) as dst:
        dst.write(data, 1)
    return str(path)
