import pytest

from conftest import ROUTE, FailingPredictor, FakePredictor
from floodroute.errors import EmptyRouteError, PredictionError
from floodroute.geodesy import Coordinate, destination_point, haversine_distance
from floodroute.risk_model import RiskLevel, RiskSample, RouteRiskAnalysis, RouteSegment
from floodroute.route_risk import (
    RouteRiskEngine,
    detect_high_risk_segments,
    estimate_travel_time,
    flood_severity,
    is_route_recommended,
    overall_risk,
    route_advisories,
    select_safer_route,
)


def _samples(probabilities, step=0.001):
    return [RiskSample((15.0 + i * step, 120.0), p) for i, p in enumerate(probabilities)]


def _analysis(overall, max_risk, distance, recommended=True, estimated_time=600.0, segments=()):
    return RouteRiskAnalysis(
        route_path=[(15.0, 120.0), (15.01, 120.0)],
        point_risks=[],
        overall_risk=overall,
        max_risk=max_risk,
        average_risk=0.0,
        total_distance=distance,
        estimated_time=estimated_time,
        is_recommended=recommended,
        high_risk_segments=segments,
    )


# ── Sampling ────────────────────────────────────────────────────────────────

def test_sample_route_rejects_empty_path(engine) -> None:
    with pytest.raises(EmptyRouteError):
        engine.sample_route([])


def test_empty_route_error_is_a_value_error(engine) -> None:
    with pytest.raises(ValueError):
        engine.analyze_route([])


def test_sample_route_single_point(engine) -> None:
    assert engine.sample_route([(15.0, 120.0)]) == [Coordinate(15.0, 120.0)]


def test_sample_route_spacing_and_endpoints(engine) -> None:
    sampled = engine.sample_route(ROUTE)
    assert len(sampled) == 13
    assert sampled[0] == Coordinate(*ROUTE[0])
    assert sampled[6] == pytest.approx(ROUTE[1])
    assert sampled[-1] == pytest.approx(ROUTE[-1])
    for a, b in zip(sampled, sampled[1:]):
        assert haversine_distance(a, b) <= engine.sample_interval_m + 1e-6


def test_sample_route_duplicate_points_add_nothing(engine) -> None:
    assert engine.sample_route([(15.0, 120.0), (15.0, 120.0)]) == [Coordinate(15.0, 120.0)]


def test_engine_rejects_invalid_parameters(fake_predictor) -> None:
    with pytest.raises(ValueError):
        RouteRiskEngine(fake_predictor, sample_interval_m=0)
    with pytest.raises(ValueError):
        RouteRiskEngine(fake_predictor, base_speed_kmh=-5)


# ── Prediction acquisition ──────────────────────────────────────────────────

def test_analyze_route_uses_one_batch_call(engine, fake_predictor) -> None:
    engine.analyze_route(ROUTE)
    assert fake_predictor.batch_calls == 1
    assert fake_predictor.single_calls == 0


def test_short_batch_raises_prediction_error() -> None:
    class ShortPredictor(FakePredictor):
        def get_risk_batch(self, coordinates):
            return super().get_risk_batch(coordinates)[:-1]

    with pytest.raises(PredictionError):
        RouteRiskEngine(ShortPredictor()).analyze_route(ROUTE)


def test_predictor_failure_propagates() -> None:
    engine = RouteRiskEngine(FailingPredictor())
    with pytest.raises(PredictionError, match="backend unreachable"):
        engine.analyze_route(ROUTE)
    with pytest.raises(PredictionError):
        engine.edge_cost(ROUTE[0], ROUTE[1])


# ── Route analysis ──────────────────────────────────────────────────────────

def test_dry_route_is_recommended(engine) -> None:
    analysis = engine.analyze_route(ROUTE)
    assert len(analysis.point_risks) == 13
    assert analysis.max_risk == pytest.approx(0.05)
    assert analysis.average_risk == pytest.approx(0.05)
    assert analysis.overall_risk < 0.1
    assert analysis.high_risk_segments == ()
    assert analysis.is_recommended
    assert analysis.route_path == tuple(Coordinate(*p) for p in ROUTE)
    assert analysis.total_distance == pytest.approx(
        haversine_distance(ROUTE[0], ROUTE[1]) + haversine_distance(ROUTE[1], ROUTE[2])
    )


def test_single_severe_point_blocks_route() -> None:
    predictor = FakePredictor(probability=0.05, hotspots={ROUTE[1]: 0.9})
    analysis = RouteRiskEngine(predictor).analyze_route(ROUTE)

    assert analysis.max_risk == pytest.approx(0.9)
    assert analysis.average_risk == pytest.approx((12 * 0.05 + 0.9) / 13)
    assert analysis.overall_risk == pytest.approx(0.6 * 0.9 + 0.4 * (12 * 0.05 + 0.9) / 13)
    assert analysis.high_risk_segments == (RouteSegment(6, 6, RiskLevel.SEVERE, 0.0),)
    assert not analysis.is_recommended
    assert analysis.high_risk_point_count == 1


def test_analyze_between_is_direct_route(engine) -> None:
    analysis = engine.analyze_between(ROUTE[0], ROUTE[2])
    assert analysis.route_path == (Coordinate(*ROUTE[0]), Coordinate(*ROUTE[2]))
    assert analysis.total_distance == pytest.approx(haversine_distance(ROUTE[0], ROUTE[2]))


def test_overall_risk_weights_max_over_average() -> None:
    assert overall_risk(1.0, 0.0) == pytest.approx(0.6)
    assert overall_risk(0.0, 1.0) == pytest.approx(0.4)
    assert overall_risk(0.5, 0.5) == pytest.approx(0.5)


# ── Segments ────────────────────────────────────────────────────────────────

def test_detect_segments_splits_on_level_changes() -> None:
    samples = _samples([0.05, 0.4, 0.45, 0.7, 0.2, 0.9])
    segments = detect_high_risk_segments(samples)

    assert [(s.start_index, s.end_index, s.risk_level) for s in segments] == [
        (1, 2, RiskLevel.MODERATE),
        (3, 3, RiskLevel.HIGH),
        (5, 5, RiskLevel.SEVERE),
    ]
    assert segments[0].segment_distance == pytest.approx(
        haversine_distance(samples[1].coordinate, samples[2].coordinate)
    )
    assert segments[1].segment_distance == 0.0


def test_detect_segments_run_to_last_sample() -> None:
    segments = detect_high_risk_segments(_samples([0.1, 0.35, 0.4, 0.5]))
    assert [(s.start_index, s.end_index) for s in segments] == [(1, 3)]


def test_detect_segments_none_when_dry() -> None:
    assert detect_high_risk_segments(_samples([0.0, 0.1, 0.29])) == []
    assert detect_high_risk_segments([]) == []


def test_segments_cover_only_warning_samples() -> None:
    probabilities = [0.1, 0.5, 0.65, 0.65, 0.2, 0.85, 0.31, 0.05, 0.95]
    samples = _samples(probabilities)
    segments = detect_high_risk_segments(samples)

    covered = set()
    for segment in segments:
        run = samples[segment.start_index:segment.end_index + 1]
        assert all(s.risk_level == segment.risk_level for s in run)
        assert all(s.requires_warning for s in run)
        covered.update(range(segment.start_index, segment.end_index + 1))
    assert covered == {i for i, s in enumerate(samples) if s.requires_warning}


# ── Recommendation ──────────────────────────────────────────────────────────

def test_recommendation_rules() -> None:
    moderate = RouteSegment(0, 0, RiskLevel.MODERATE, 0.0)
    severe = RouteSegment(0, 0, RiskLevel.SEVERE, 0.0)

    assert is_route_recommended(0.3, 0.5, [])
    assert not is_route_recommended(0.61, 0.5, [])
    assert not is_route_recommended(0.3, 0.81, [])
    assert not is_route_recommended(0.3, 0.5, [severe])
    assert is_route_recommended(0.3, 0.5, [moderate] * 3)
    assert not is_route_recommended(0.3, 0.5, [moderate] * 4)


def test_many_moderate_segments_not_recommended() -> None:
    samples = _samples([0.4, 0.05, 0.4, 0.05, 0.4, 0.05, 0.4])
    segments = detect_high_risk_segments(samples)
    assert len(segments) == 4
    assert not is_route_recommended(0.3, 0.4, segments)


# ── Travel time ─────────────────────────────────────────────────────────────

def test_travel_time_dry_and_flooded() -> None:
    end = destination_point((15.0, 120.0), 1000.0, 0.0)
    dry = [RiskSample((15.0, 120.0), 0.0), RiskSample(end, 0.0)]
    flooded = [RiskSample((15.0, 120.0), 1.0), RiskSample(end, 1.0)]

    assert estimate_travel_time(1000.0, dry, 40.0) == pytest.approx(90.0, rel=1e-6)
    assert estimate_travel_time(1000.0, flooded, 40.0) == pytest.approx(300.0, rel=1e-6)


def test_travel_time_without_samples_uses_distance() -> None:
    assert estimate_travel_time(2000.0, [], 40.0) == pytest.approx(180.0)


def test_travel_time_grows_with_risk(engine) -> None:
    dry = engine.analyze_route(ROUTE)
    wet = RouteRiskEngine(FakePredictor(probability=0.5)).analyze_route(ROUTE)
    assert wet.estimated_time > dry.estimated_time


# ── Edge cost ───────────────────────────────────────────────────────────────

def test_flood_severity_bands() -> None:
    assert flood_severity(0.0) == 0.0
    assert flood_severity(0.05) == 0.0
    assert flood_severity(0.2) == pytest.approx(0.1)
    assert flood_severity(0.5) == pytest.approx(1.0)
    assert flood_severity(0.9) == pytest.approx(8.1)
    assert flood_severity(1.0) == pytest.approx(10.0)


def test_flood_severity_is_monotonic() -> None:
    values = [flood_severity(i / 500) for i in range(501)]
    assert all(b >= a for a, b in zip(values, values[1:]))


def test_edge_cost_low_risk(engine) -> None:
    cost = engine.edge_cost((15.0, 120.0), (15.009, 120.0), distance_m=1000.0, traffic_speed_kmh=40.0)
    assert cost == pytest.approx(0.025)


def test_edge_cost_samples_midpoint(fake_predictor, engine) -> None:
    assessment = engine.assess_edge(ROUTE[0], ROUTE[2])
    assert fake_predictor.single_calls == 1
    assert assessment.midpoint_risk.coordinate.lat == pytest.approx(ROUTE[1][0])
    assert assessment.distance_m == pytest.approx(haversine_distance(ROUTE[0], ROUTE[2]))


def test_edge_cost_grows_with_rain_and_risk() -> None:
    start, end = (15.0, 120.0), (15.009, 120.0)
    engine = RouteRiskEngine(FakePredictor(probability=0.5))
    costs = [engine.edge_cost(start, end, 1000.0, 40.0, rain) for rain in (1.0, 1.5, 2.0, 3.0)]
    assert costs == sorted(costs)
    assert costs[-1] == pytest.approx(3 * costs[0])

    by_risk = [
        RouteRiskEngine(FakePredictor(probability=p)).edge_cost(start, end, 1000.0, 40.0)
        for p in (0.0, 0.2, 0.45, 0.7, 0.95)
    ]
    assert all(b > a for a, b in zip(by_risk[1:], by_risk[2:]))
    assert by_risk[0] <= by_risk[1]


def test_edge_cost_clamps_speed(engine) -> None:
    start, end = (15.0, 120.0), (15.009, 120.0)
    assert engine.edge_cost(start, end, 1000.0, 0.5) == engine.edge_cost(start, end, 1000.0, 5.0)
    assert engine.edge_cost(start, end, 1000.0, 400.0) == engine.edge_cost(start, end, 1000.0, 100.0)


def test_edge_cost_rejects_rain_below_one(engine) -> None:
    with pytest.raises(ValueError):
        engine.edge_cost((15.0, 120.0), (15.009, 120.0), rain_multiplier=0.5)


# ── Route choice and advisories ─────────────────────────────────────────────

def test_select_safer_route_by_overall_risk() -> None:
    a, b = _analysis(0.2, 0.9, 5000.0), _analysis(0.3, 0.1, 100.0)
    assert select_safer_route(a, b) is a
    assert select_safer_route(b, a) is a


def test_select_safer_route_by_max_then_distance() -> None:
    a, b = _analysis(0.3, 0.4, 5000.0), _analysis(0.3, 0.5, 100.0)
    assert select_safer_route(a, b) is a
    assert select_safer_route(b, a) is a

    c, d = _analysis(0.3, 0.4, 900.0), _analysis(0.3, 0.4, 1000.0)
    assert select_safer_route(c, d) is c
    assert select_safer_route(d, c) is c


def test_select_safer_route_full_tie_returns_second() -> None:
    a, b = _analysis(0.3, 0.4, 1000.0), _analysis(0.3, 0.4, 1000.0)
    assert select_safer_route(a, b) is b
    assert select_safer_route(b, a) is a


def test_advisories_for_severe_route() -> None:
    segments = (RouteSegment(0, 10, RiskLevel.SEVERE, 1500.0),)
    analysis = _analysis(0.7, 0.9, 3000.0, recommended=False, estimated_time=601.0, segments=segments)
    assert route_advisories(analysis) == [
        "This route passes through high-risk flood areas",
        "Severe flood risk detected on this route",
        "Consider delaying travel or finding an alternative route",
        "1.5 km of high-risk segments",
        "Estimated travel time: 11 minutes",
    ]


def test_advisories_for_moderate_and_dry_routes() -> None:
    moderate = _analysis(0.3, 0.45, 1000.0, estimated_time=120.0)
    assert route_advisories(moderate) == [
        "Moderate flood risk on some segments",
        "Stay alert for weather updates",
        "Estimated travel time: 2 minutes",
    ]
    high = _analysis(0.5, 0.7, 1000.0, estimated_time=60.0)
    assert route_advisories(high)[0] == "High flood risk areas ahead"
    dry = _analysis(0.05, 0.05, 1000.0, estimated_time=90.0)
    assert route_advisories(dry) == ["Estimated travel time: 2 minutes"]


@pytest.mark.parametrize(
    "max_risk,band",
    [
        (0.8, ["High flood risk areas ahead", "Proceed with caution and monitor weather conditions"]),
        (0.6, ["Moderate flood risk on some segments", "Stay alert for weather updates"]),
        (0.3, []),
    ],
)
def test_advisory_band_thresholds_are_exclusive(max_risk, band) -> None:
    analysis = _analysis(0.3, max_risk, 1000.0, estimated_time=60.0)
    assert route_advisories(analysis) == band + ["Estimated travel time: 1 minutes"]


# ── Safe point search ───────────────────────────────────────────────────────

def test_find_safe_point_nearest_ring() -> None:
    destination = (15.0, 120.0)
    target = destination_point(destination, 250.0, 90.0)
    predictor = FakePredictor(probability=0.9, hotspots={target: 0.1})
    found = RouteRiskEngine(predictor).find_safe_point(destination)

    assert found is not None
    assert haversine_distance(found, target) < 1.0
    assert haversine_distance(found, destination) == pytest.approx(250.0, abs=1e-3)


def test_find_safe_point_none_when_everything_flooded() -> None:
    predictor = FakePredictor(probability=0.9)
    assert RouteRiskEngine(predictor).find_safe_point((15.0, 120.0)) is None
    assert predictor.single_calls == 6 * 8


def test_find_safe_point_respects_max_radius() -> None:
    destination = (15.0, 120.0)
    target = destination_point(destination, 2000.0, 0.0)
    predictor = FakePredictor(probability=0.9, hotspots={target: 0.0})
    engine = RouteRiskEngine(predictor)
    assert engine.find_safe_point(destination, max_search_radius_m=1000.0) is None
    assert engine.find_safe_point(destination) is not None
