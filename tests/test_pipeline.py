"""Tests for the aggregate pipeline."""

import pytest

from py_heatmap.config import Settings, default_categories
from py_heatmap.core import merge_category_records, records_from_elements
from py_heatmap.core.boundary import BoundaryGroup
from py_heatmap.core.grid import GridConfig, RegionConfig
from py_heatmap.core.models import BoundarySegment, BusinessRecord, GeoPoint
from py_heatmap.core.pipeline import HeatmapPipeline
from py_heatmap.core.scoring import ScoringOptions

A = GeoPoint(45.10, -121.90)
B = GeoPoint(45.10, -121.80)
C = GeoPoint(45.20, -121.80)
D = GeoPoint(45.20, -121.90)


def record(record_id, lat, lon, category="books"):
    return BusinessRecord(
        id=record_id, name=f"Business {record_id}", location=GeoPoint(lat, lon), category=category
    )


@pytest.fixture
def grid_config():
    region = RegionConfig(south=45.0, west=-122.0, north=45.5, east=-121.5)
    return GridConfig(region=region, cell_size_km=20.0, lat_step=0.25, lon_step=0.25)


@pytest.fixture
def pipeline(grid_config):
    return HeatmapPipeline(grid_config)


@pytest.fixture
def square_group():
    segments = [
        BoundarySegment(id=1, coordinates=(A, B)),
        BoundarySegment(id=2, coordinates=(C, B)),
        BoundarySegment(id=3, coordinates=(C, D)),
        BoundarySegment(id=4, coordinates=(D, A)),
    ]
    return BoundaryGroup(area_id=100, name="Square", segments=segments, declared_segments=4)


class TestRun:
    """Test grid scoring runs."""

    def test_ranked_result(self, pipeline):
        records = [record(1, 45.125, -121.875), record(2, 45.4, -121.6)]
        result = pipeline.run(records)

        assert len(result.cells) == 4
        assert result.record_count == 2
        assert result.max_score == result.cells[0].proximity_score == 100.0
        assert result.cells[0].id == 0
        assert result.elapsed_s >= 0

    def test_idempotent(self, pipeline):
        records = [record(i, 45.05 + i * 0.1, -121.95 + i * 0.08) for i in range(4)]
        first = pipeline.run(records)
        second = pipeline.run(records)

        assert [(c.id, c.proximity_score) for c in first.cells] == [
            (c.id, c.proximity_score) for c in second.cells
        ]

    def test_fresh_grid_each_run(self, pipeline):
        first = pipeline.run([record(1, 45.1, -121.9)])
        second = pipeline.run([])

        assert first.max_score > 0
        assert second.max_score == 0.0
        assert all(c.nearest_business is None for c in second.cells)
        assert first.cells[0].nearest_business is not None

    def test_scoring_options_passed_through(self, grid_config):
        pipeline = HeatmapPipeline(grid_config, scoring_options=ScoringOptions(workers=2))
        assert pipeline.scorer.options.workers == 2
        assert len(pipeline.run([record(1, 45.1, -121.9)]).cells) == 4

    def test_reference_latitude_defaults_to_region_north(self, pipeline):
        assert pipeline.reconstructor.options.reference_lat == 45.5


class TestAggregateAreas:
    """Test neighborhood reconstruction and fallback."""

    def test_reconstructed_area(self, pipeline, square_group):
        aggregation = pipeline.aggregate_areas([square_group])

        assert not aggregation.approximate_areas
        assert [a.name for a in aggregation.areas] == ["Square"]
        assert aggregation.diagnostics[100].complete
        assert aggregation.failed == {}
        assert aggregation.scores == []

    def test_records_bucketed(self, pipeline, square_group):
        records = [record(1, 45.15, -121.85), record(2, 45.3, -121.6)]
        aggregation = pipeline.aggregate_areas([square_group], records)

        assert len(aggregation.scores) == 1
        assert [r.id for r in aggregation.scores[0].records] == [1]

    def test_failure_isolated(self, pipeline, square_group):
        """One bad boundary does not stop the others."""
        empty = BoundaryGroup(area_id=200, name="Empty", segments=[])
        line = BoundaryGroup(
            area_id=300, name="Line",
            segments=[BoundarySegment(id=9, coordinates=(A, B))],
        )
        aggregation = pipeline.aggregate_areas([empty, square_group, line])

        assert [a.id for a in aggregation.areas] == [100]
        assert set(aggregation.failed) == {200, 300}
        assert not aggregation.approximate_areas

    def test_best_effort_kept(self, pipeline):
        group = BoundaryGroup(
            area_id=400, name="Partial",
            segments=[
                BoundarySegment(id=1, coordinates=(A, B)),
                BoundarySegment(id=2, coordinates=(B, C)),
                BoundarySegment(id=3, coordinates=(C, D)),
            ],
            declared_segments=4,
        )
        aggregation = pipeline.aggregate_areas([group])

        result = aggregation.diagnostics[400]
        assert result.best_effort
        assert (result.segments_used, result.segments_total) == (3, 4)
        assert [a.id for a in aggregation.areas] == [400]

    def test_fallback_when_nothing_survives(self, pipeline):
        empty = BoundaryGroup(area_id=200, name="Empty", segments=[])
        aggregation = pipeline.aggregate_areas([empty], [record(1, 45.1, -121.9)])

        assert aggregation.approximate_areas
        assert len(aggregation.areas) == 16
        assert all(a.id < 0 for a in aggregation.areas)
        assert sum(s.count for s in aggregation.scores) == 1
        assert 200 in aggregation.failed

    def test_fallback_size(self, grid_config):
        pipeline = HeatmapPipeline(grid_config, fallback_grid_size=2)
        aggregation = pipeline.aggregate_areas([])

        assert aggregation.approximate_areas
        assert [a.name for a in aggregation.areas] == [
            "Grid 1-1", "Grid 1-2", "Grid 2-1", "Grid 2-2",
        ]


class TestAggregateRelations:
    """Test aggregation straight from a relation response."""

    def test_relation_response(self, pipeline):
        elements = [
            {
                "type": "relation", "id": 7,
                "tags": {"boundary": "administrative", "admin_level": "10", "name": "Kerns"},
                "members": [
                    {"type": "way", "ref": 11, "role": "outer"},
                    {"type": "way", "ref": 12, "role": "outer"},
                ],
            },
            {"type": "way", "id": 11, "nodes": [1, 2, 3]},
            {"type": "way", "id": 12, "nodes": [3, 4, 1]},
            {"type": "node", "id": 1, "lat": A.lat, "lon": A.lon},
            {"type": "node", "id": 2, "lat": B.lat, "lon": B.lon},
            {"type": "node", "id": 3, "lat": C.lat, "lon": C.lon},
            {"type": "node", "id": 4, "lat": D.lat, "lon": D.lon},
        ]
        aggregation = pipeline.aggregate_relations(elements, [record(1, 45.15, -121.85)])

        assert [a.name for a in aggregation.areas] == ["Kerns"]
        assert aggregation.scores[0].count == 1

    def test_no_neighborhoods(self, pipeline):
        elements = [{"type": "relation", "id": 8, "tags": {"boundary": "postal_code"}}]
        aggregation = pipeline.aggregate_relations(elements)

        assert aggregation.approximate_areas
        assert aggregation.failed == {}


class TestFromSettings:
    """Test building a pipeline from application settings."""

    def test_settings_wired_through(self):
        settings = Settings(
            _env_file=None, fallback_grid_size=2, decay_length_km=1.0,
            scoring_workers=3, coord_match_tolerance_deg=1e-3,
        )
        pipeline = HeatmapPipeline.from_settings(settings)

        assert pipeline.grid_config == settings.grid_config()
        assert pipeline.fallback_grid_size == 2
        assert pipeline.scorer.options.decay_length_km == 1.0
        assert pipeline.scorer.options.workers == 3
        assert pipeline.reconstructor.tolerance == 1e-3
        assert pipeline.reconstructor.options.reference_lat == settings.region_north
        assert len(pipeline.aggregate_areas([]).areas) == 4

    def test_region_preset(self, grid_config):
        settings = Settings(_env_file=None, min_area_km2=0.05)
        pipeline = HeatmapPipeline.from_settings(settings, grid_config)

        assert pipeline.grid_config is grid_config
        assert pipeline.reconstructor.options.reference_lat == 45.5
        assert pipeline.reconstructor.options.min_area_km2 == 0.05


class TestIngestedRun:
    """Test scoring records loaded from a raw category response."""

    def test_response_to_ranked_cells(self, pipeline):
        categories = default_categories()
        response = {
            "bookstores": [
                {"type": "node", "id": 1, "lat": 45.125, "lon": -121.875,
                 "tags": {"shop": "books", "name": "Corner Books"}},
                {"type": "node", "id": 2, "lat": 45.4, "lon": -121.6,
                 "tags": {"shop": "books", "name": "Target"}},
                {"type": "node", "id": 3, "lat": "north", "lon": -121.6,
                 "tags": {"shop": "books", "name": "Broken"}},
            ],
            "indie-coffee": [
                {"type": "way", "id": 4, "center": {"lat": 45.375, "lon": -121.625},
                 "tags": {"amenity": "cafe"}},
            ],
        }
        records = merge_category_records({
            category.id: records_from_elements(response.get(category.id, []), category)
            for category in categories
        })
        result = pipeline.run(records)

        assert sorted(r.id for r in records) == [1, 4]
        assert result.max_score == 100.0
        assert {c.id for c in result.cells[:2]} == {0, 3}
        by_id = {c.id: c for c in result.cells}
        assert list(by_id[3].counts_by_category) == ["indie-coffee"]
        assert by_id[3].contained_points[0].name == "Unnamed Business"
