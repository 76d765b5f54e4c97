"""
tests/test_spatial.py
Spatial attribution: densification, hotspots, uniformity, composite flag, color ramp.
"""

import logging

import pytest

from conftest import COMPOSITE_REGIONS, make_obs
from fusion.config import ConfigError, SpatialConfig
from fusion.spatial import SpatialAttributionMapper, score_to_color, score_to_opacity
from fusion.types import DetectorStatus, RegionId, Severity

mapper = SpatialAttributionMapper()


def _uniform(value):
    return {region: value for region in RegionId}


def test_composite_scenario():
    analysis = mapper.map(COMPOSITE_REGIONS)
    assert analysis.uniformity_score < 0.5
    assert analysis.is_composite
    assert "COMPOSITE" in analysis.explanation


def test_anchor_cells_and_midpoints():
    grid = mapper.map(COMPOSITE_REGIONS).grid
    assert grid.cell(0, 0).score == pytest.approx(0.90)
    assert grid.cell(0, 2).score == pytest.approx(0.10)
    assert grid.cell(2, 0).score == pytest.approx(0.85)
    assert grid.cell(2, 2).score == pytest.approx(0.15)
    assert grid.cell(1, 1).score == pytest.approx(0.50)
    # edge cells average their two nearest named neighbours
    assert grid.cell(0, 1).score == pytest.approx(0.50)
    assert grid.cell(1, 0).score == pytest.approx(0.875)
    assert grid.cell(1, 2).score == pytest.approx(0.125)
    assert grid.cell(2, 1).score == pytest.approx(0.50)


def test_hotspots_sorted_with_severity():
    analysis = mapper.map({
        RegionId.top_left: 0.62,
        RegionId.top_right: 0.70,
        RegionId.bottom_left: 0.90,
        RegionId.bottom_right: 0.20,
        RegionId.center: 0.30,
    })
    scores = [h.score for h in analysis.hotspots]
    assert scores == sorted(scores, reverse=True)
    by_region = {h.region: h for h in analysis.hotspots}
    assert by_region["Bottom-Left"].severity == Severity.high
    assert by_region["Top-Right"].severity == Severity.medium
    assert by_region["Top-Left"].severity == Severity.low
    assert all(h.score >= 0.6 for h in analysis.hotspots)
    assert "top-left" in analysis.suspicious_regions
    assert "bottom-right" not in analysis.suspicious_regions


def test_perfectly_uniform_grid():
    analysis = mapper.map(_uniform(0.37))
    assert analysis.uniformity_score == 1.0
    assert not analysis.is_composite
    assert mapper.uniformity([0.3] * 9) == 1.0


def test_uniformity_bounds():
    for scores in ([0.0, 1.0] * 5, [0.2, 0.4, 0.9], [0.5]):
        assert 0.0 <= mapper.uniformity(scores) <= 1.0
    assert mapper.uniformity([0.0, 1.0] * 5) == 0.0


def test_mediocre_image_is_never_composite():
    noisy = [[0.55, 0.60, 0.50], [0.58, 0.52, 0.55], [0.50, 0.60, 0.57]]
    analysis = mapper.map(_uniform(0.55), secondary_grid=noisy)
    assert not analysis.is_composite
    assert not mapper.is_composite([0.55] * 9, 0.0)


def test_composite_needs_both_extremes():
    # low uniformity but no clearly-real region
    assert not mapper.is_composite([0.4, 1.0, 0.4, 1.0], 0.2)
    # both extremes present
    assert mapper.is_composite([0.1, 0.9, 0.1, 0.9], 0.2)


def test_secondary_grid_is_blended():
    analysis = mapper.map(_uniform(0.5), secondary_grid=[[1.0] * 3] * 3)
    assert all(score == pytest.approx(0.65) for score in analysis.grid.scores())


def test_secondary_grid_wrong_shape_is_ignored(caplog):
    with caplog.at_level(logging.WARNING, logger="trust_spatial"):
        analysis = mapper.map(_uniform(0.5), secondary_grid=[[1.0, 1.0]])
    assert analysis.grid.scores() == [0.5] * 9
    assert caplog.records


def test_missing_anchors_use_fallback():
    analysis = mapper.map({RegionId.top_left: 0.9}, fallback_score=0.3)
    assert analysis.grid.cell(2, 2).score == pytest.approx(0.3)
    assert analysis.grid.cell(0, 0).score == pytest.approx(0.9)


def test_anomalies_attach_to_anchor_cells():
    analysis = mapper.map(
        {**COMPOSITE_REGIONS},
        anchor_anomalies={RegionId.top_left: ["warped text", "melted hands"]},
    )
    assert analysis.grid.cell(0, 0).anomaly_tags == ("warped text", "melted hands")
    assert analysis.grid.cell(0, 1).anomaly_tags == ()
    top = analysis.hotspots[0]
    assert top.region == "Top-Left"
    assert top.anomalies == ("warped text", "melted hands")


def test_cell_bounds_are_normalized():
    cell = mapper.map(_uniform(0.5)).grid.cell(1, 2)
    assert cell.bounds.x == pytest.approx(2 / 3)
    assert cell.bounds.y == pytest.approx(1 / 3)
    assert cell.bounds.width == pytest.approx(1 / 3)


def test_map_observations_weighted_anchor_mean():
    observations = [
        make_obs("vision_llm", 0.8, region_scores={RegionId.top_left: 0.8}),
        make_obs("dct", 0.4, region_scores={RegionId.top_left: 0.4}),
        make_obs("huggingface", 0.0, status=DetectorStatus.error, region_scores={RegionId.top_left: 0.0}),
    ]
    weights = {"vision_llm": 0.75, "dct": 0.25, "huggingface": 0.0}
    analysis = mapper.map_observations(observations, weights, fallback_score=0.5)
    assert analysis.grid.cell(0, 0).score == pytest.approx(0.7)
    assert analysis.grid.cell(2, 2).score == pytest.approx(0.5)


def test_larger_grid():
    big = SpatialAttributionMapper(SpatialConfig(rows=4, cols=5))
    analysis = big.map(COMPOSITE_REGIONS)
    assert analysis.grid.rows == 4 and analysis.grid.cols == 5
    assert analysis.grid.cell(0, 0).score == pytest.approx(0.90)
    assert analysis.grid.cell(3, 4).score == pytest.approx(0.15)
    assert analysis.hotspots[0].region == "R0C0"


def test_grid_must_be_at_least_two_by_two():
    with pytest.raises(ConfigError):
        SpatialAttributionMapper(SpatialConfig(rows=1))


# ── Color ramp ────────────────────────────────────────────────────────────────

def test_color_ramp_stops():
    assert score_to_color(0.0) == "#22c55e"
    assert score_to_color(0.5) == "#eab308"
    assert score_to_color(1.0) == "#ef4444"


def test_color_ramp_is_monotonic():
    reds = [int(score_to_color(i / 100)[1:3], 16) for i in range(101)]
    assert reds == sorted(reds)
    assert score_to_color(0.42) == score_to_color(0.42)


def test_opacity_range():
    assert score_to_opacity(0.0) == pytest.approx(0.3)
    assert score_to_opacity(1.0) == pytest.approx(0.7)


def test_center_anchor_cell_keeps_anchor_score_on_even_grids():
    big = SpatialAttributionMapper(SpatialConfig(rows=4, cols=4))
    grid = big.map(COMPOSITE_REGIONS, anchor_anomalies={RegionId.center: ["seam"]}).grid
    assert grid.cell(2, 2).score == pytest.approx(0.50)
    assert grid.cell(2, 2).anomaly_tags == ("seam",)


def test_two_by_two_grid_keeps_corners():
    small = SpatialAttributionMapper(SpatialConfig(rows=2, cols=2))
    grid = small.map(COMPOSITE_REGIONS).grid
    assert grid.cell(1, 1).score == pytest.approx(0.15)
    assert grid.cell(0, 0).score == pytest.approx(0.90)
