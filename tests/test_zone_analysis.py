from __future__ import annotations

from streets.models import NormalizedStreet
from streets.services import analysis as analysis_module
from streets.services.analysis import analyze_streets, build_endpoint_graph, estimate_minutes


def _street(source_id: str, coords, highway: str = "residential") -> NormalizedStreet:
    return NormalizedStreet(
        source_id=source_id,
        name=source_id,
        coordinates=coords,
        tags={"highway": highway},
    )


def _types(analysis) -> set[str]:
    return {suggestion["type"] for suggestion in analysis.suggestions}


def test_estimate_minutes_uses_door_to_door_pace() -> None:
    assert estimate_minutes(1500.0) == 60
    assert estimate_minutes(0.0) == 0


def test_empty_zone_is_flagged() -> None:
    analysis = analyze_streets([])

    assert analysis.total_streets == 0
    assert _types(analysis) == {"empty"}
    assert analysis.is_well_sized is False


def test_small_zone_with_a_dead_end() -> None:
    analysis = analyze_streets([_street("a", [[0.0, 0.0], [0.0, 0.004]])])

    assert analysis.estimated_minutes < 90
    assert "too_small" in _types(analysis)
    assert "many_dead_ends" in _types(analysis)
    assert analysis.components == 1


def test_large_zone_suggests_a_split_count() -> None:
    analysis = analyze_streets([_street("long", [[0.0, 0.0], [0.0, 0.1]])])

    too_large = next(s for s in analysis.suggestions if s["type"] == "too_large")
    assert too_large["suggested_splits"] == 4
    assert analysis.as_dict()["estimated_hours"] > 7


def test_disconnected_streets_are_listed() -> None:
    streets = [
        _street("a", [[0.0, 0.0], [0.0, 0.004]]),
        _street("b", [[0.0, 0.004], [0.004, 0.004]]),
        _street("far", [[0.05, 0.05], [0.05, 0.054]]),
    ]

    analysis = analyze_streets(streets)

    disconnected = next(s for s in analysis.suggestions if s["type"] == "disconnected_streets")
    assert disconnected["street_ids"] == ["far"]
    assert analysis.components == 2


def test_service_road_share_is_reported() -> None:
    streets = [
        _street("a", [[0.0, 0.0], [0.0, 0.004]], highway="service"),
        _street("b", [[0.0, 0.004], [0.004, 0.004]]),
    ]

    analysis = analyze_streets(streets)

    assert "many_service_roads" in _types(analysis)


def test_endpoint_graph_snaps_nearby_endpoints() -> None:
    streets = [
        _street("a", [[0.0, 0.0], [0.0, 0.004]]),
        _street("b", [[0.0, 0.0040001], [0.004, 0.004]]),
    ]

    graph = build_endpoint_graph(streets)

    assert graph.number_of_edges() == 2
    assert graph.number_of_nodes() == 3


def test_dead_end_and_service_road_thresholds_are_independent(monkeypatch) -> None:
    monkeypatch.setattr(analysis_module, "DEAD_END_SHARE_THRESHOLD", 1.0)
    streets = [_street("cour", [[0.0, 0.0], [0.0, 0.004]], highway="service")]

    analysis = analyze_streets(streets)

    assert "many_dead_ends" not in _types(analysis)
    assert "many_service_roads" in _types(analysis)
