"""Tests for proximity scoring."""

import math

import pytest

from py_heatmap.core.exceptions import InvalidCoordinateError
from py_heatmap.core.grid import GridConfig, RegionConfig, build_fallback_areas, build_grid
from py_heatmap.core.models import BBox, BusinessRecord, GeoPoint, NamedArea, Polygon
from py_heatmap.core.scoring import (
    ProximityScorer, ScoringOptions, assign_records_to_areas, normalized_intensity,
    score_from_distance, top_cells
)

# Half a kilometre of latitude along a meridian
HALF_KM_LAT = 0.5 / (2 * math.pi * 6371.0 / 360)


def record(record_id, lat, lon, category="books"):
    return BusinessRecord(
        id=record_id, name=f"Business {record_id}", location=GeoPoint(lat, lon), category=category
    )


@pytest.fixture
def column_config():
    """Three cells stacked north-south, centres half a kilometre apart."""
    region = RegionConfig(
        south=45.0, west=-122.0, north=45.0 + 2.5 * HALF_KM_LAT, east=-121.995
    )
    return GridConfig(region=region, cell_size_km=0.5, lat_step=HALF_KM_LAT, lon_step=0.01)


@pytest.fixture
def exact_config():
    """A 2 x 2 grid of 0.25 degree cells."""
    region = RegionConfig(south=45.0, west=-122.0, north=45.5, east=-121.5)
    return GridConfig(region=region, cell_size_km=20.0, lat_step=0.25, lon_step=0.25)


class TestScoreFunction:
    """Test the exponential decay."""

    def test_colocated(self):
        assert score_from_distance(0.0) == 100.0

    def test_decay_length(self):
        assert score_from_distance(0.5) == pytest.approx(100 / math.e)
        assert score_from_distance(0.5) == pytest.approx(36.79, abs=0.01)
        assert score_from_distance(1.0) == pytest.approx(13.53, abs=0.01)

    def test_no_records(self):
        assert score_from_distance(math.inf) == 0.0

    def test_monotonic(self):
        distances = [0.0, 0.01, 0.1, 0.5, 1.0, 2.5, 10.0, 100.0]
        scores = [score_from_distance(d) for d in distances]
        assert all(a >= b for a, b in zip(scores, scores[1:]))
        assert all(0.0 <= s <= 100.0 for s in scores)


class TestProximityScorer:
    """Test cell scoring against a record set."""

    def test_record_at_cell_centre(self, column_config):
        """A record at a centre scores exactly 100 there, ~37 half a km away."""
        cells = build_grid(column_config)
        centre = cells[0].center
        ranked = ProximityScorer().score(cells, [record(1, centre.lat, centre.lon)])

        assert [c.id for c in ranked] == [0, 1, 2]
        assert ranked[0].proximity_score == 100.0
        assert ranked[0].nearest_point_distance_km == 0.0
        assert ranked[1].nearest_point_distance_km == pytest.approx(0.5, abs=1e-6)
        assert ranked[1].proximity_score == pytest.approx(36.79, abs=0.01)
        assert ranked[2].proximity_score == pytest.approx(13.53, abs=0.01)

    def test_empty_record_set(self, exact_config):
        """No records: every cell scores 0 and has no nearest business."""
        cells = build_grid(exact_config)
        ranked = ProximityScorer().score(cells, [])

        assert len(ranked) == 4
        for cell in ranked:
            assert cell.proximity_score == 0.0
            assert cell.nearest_business is None
            assert math.isinf(cell.nearest_point_distance_km)
            assert cell.contained_points == []
        assert [c.id for c in ranked] == [0, 1, 2, 3]

    def test_nearest_business(self, exact_config):
        cells = build_grid(exact_config)
        near = record("near", 45.13, -121.88)
        far = record("far", 45.45, -121.55)
        ProximityScorer().score(cells, [far, near])

        by_id = {c.id: c for c in cells}
        assert by_id[0].nearest_business is near
        assert by_id[3].nearest_business is far

    def test_scores_in_range_and_ranked(self, exact_config):
        cells = build_grid(exact_config)
        records = [record(i, 45.1 + i * 0.07, -121.9 + i * 0.05) for i in range(5)]
        ranked = ProximityScorer().score(cells, records)

        scores = [c.proximity_score for c in ranked]
        assert scores == sorted(scores, reverse=True)
        assert all(0.0 <= s <= 100.0 for s in scores)

    def test_contained_points_by_category(self, exact_config):
        cells = build_grid(exact_config)
        records = [
            record(1, 45.1, -121.9, "books"),
            record(2, 45.2, -121.8, "books"),
            record(3, 45.15, -121.85, "music"),
            record(4, 45.4, -121.6, "music"),
        ]
        ProximityScorer().score(cells, records)
        first = next(c for c in cells if c.id == 0)

        assert [r.id for r in first.contained_points] == [1, 2, 3]
        assert first.business_count == 3
        assert {k: [r.id for r in v] for k, v in first.counts_by_category.items()} == {
            "books": [1, 2], "music": [3],
        }

    def test_category_agnostic_scoring(self, exact_config):
        """Score depends only on distance, never on category."""
        a = ProximityScorer().score(build_grid(exact_config), [record(1, 45.1, -121.9, "books")])
        b = ProximityScorer().score(build_grid(exact_config), [record(1, 45.1, -121.9, "cafe")])
        assert [c.proximity_score for c in a] == [c.proximity_score for c in b]

    def test_edge_record_double_counted(self, exact_config):
        """On a shared edge a record belongs to both cells by default."""
        cells = build_grid(exact_config)
        edge = record(1, 45.0 + 0.25, -121.9)
        ProximityScorer().score(cells, [edge])

        owners = sorted(c.id for c in cells if c.contained_points)
        assert owners == [0, 2]

    def test_edge_record_half_open(self, exact_config):
        cells = build_grid(exact_config)
        edge = record(1, 45.0 + 0.25, -121.9)
        ProximityScorer(ScoringOptions(edge_inclusive=False)).score(cells, [edge])

        owners = sorted(c.id for c in cells if c.contained_points)
        assert owners == [2]

    def test_rescoring_resets_cells(self, exact_config):
        cells = build_grid(exact_config)
        scorer = ProximityScorer()
        scorer.score(cells, [record(1, 45.1, -121.9)])
        scorer.score(cells, [])

        assert all(c.proximity_score == 0.0 and not c.contained_points for c in cells)

    def test_workers_match_single_thread(self, exact_config):
        records = [record(i, 45.05 + i * 0.09, -121.95 + i * 0.1) for i in range(5)]
        single = ProximityScorer().score(build_grid(exact_config), records)
        threaded = ProximityScorer(ScoringOptions(workers=3)).score(
            build_grid(exact_config), records
        )

        assert [(c.id, c.proximity_score) for c in single] == [
            (c.id, c.proximity_score) for c in threaded
        ]

    def test_decay_length_option(self, column_config):
        cells = build_grid(column_config)
        centre = cells[0].center
        ranked = ProximityScorer(ScoringOptions(decay_length_km=1.0)).score(
            cells, [record(1, centre.lat, centre.lon)]
        )
        assert ranked[1].proximity_score == pytest.approx(100 * math.exp(-0.5), abs=1e-4)

    @pytest.mark.parametrize("lat,lon", [
        (float("nan"), -121.9),
        (45.1, float("inf")),
        (95.0, -121.9),
    ])
    def test_invalid_coordinates(self, exact_config, lat, lon):
        bad = BusinessRecord(id="bad", name="Bad", location=GeoPoint(lat, lon), category="x")
        with pytest.raises(InvalidCoordinateError) as excinfo:
            ProximityScorer().score(build_grid(exact_config), [record(1, 45.1, -121.9), bad])
        assert excinfo.value.record_id == "bad"


class TestAreaAssignment:
    """Test bucketing records into named areas."""

    @pytest.fixture
    def triangle_area(self):
        ring = (GeoPoint(45.0, -122.0), GeoPoint(45.0, -121.0),
                GeoPoint(46.0, -122.0), GeoPoint(45.0, -122.0))
        return NamedArea(
            id=1, name="Triangle", boundary=Polygon(ring),
            bounds=BBox(45.0, 46.0, -122.0, -121.0), area_km2=4.0,
        )

    def test_inside_polygon_only(self, triangle_area):
        inside = record(1, 45.2, -121.8)
        corner = record(2, 45.9, -121.1)  # inside the bbox, outside the triangle
        outside = record(3, 47.0, -121.5)
        scores = assign_records_to_areas([triangle_area], [inside, corner, outside])

        assert [r.id for r in scores[0].records] == [1]
        assert scores[0].count == 1
        assert scores[0].density == pytest.approx(0.25)
        assert list(scores[0].by_category) == ["books"]

    def test_sorted_by_density(self):
        region = RegionConfig(south=45.0, west=-122.0, north=45.5, east=-121.5)
        areas = build_fallback_areas(region, size=2)
        records = [record(i, 45.4, -121.6) for i in range(3)] + [record(9, 45.1, -121.9)]
        scores = assign_records_to_areas(areas, records)

        assert scores[0].area.name == "Grid 2-2"
        assert scores[0].count == 3
        assert [s.count for s in scores] == sorted((s.count for s in scores), reverse=True)

    def test_input_order_kept(self, triangle_area):
        records = [record(i, 45.1 + 0.01 * (5 - i), -121.9) for i in range(5)]
        records.append(record(9, 45.99, -121.01))
        scores = assign_records_to_areas([triangle_area], records)

        assert [r.id for r in scores[0].records] == [0, 1, 2, 3, 4]

    def test_no_records(self, triangle_area):
        scores = assign_records_to_areas([triangle_area], [])
        assert scores[0].count == 0
        assert scores[0].density == 0.0

    def test_invalid_coordinates(self, triangle_area):
        bad = BusinessRecord(id="bad", name="Bad", location=GeoPoint(45.2, 200.0), category="x")
        with pytest.raises(InvalidCoordinateError):
            assign_records_to_areas([triangle_area], [record(1, 45.2, -121.8), bad])


class TestPresentationHelpers:
    """Test normalisation and top-N selection."""

    def test_normalized_intensity(self, exact_config):
        cells = build_grid(exact_config)
        ProximityScorer().score(cells, [record(1, 45.1, -121.9)])
        intensity = normalized_intensity(cells)

        assert max(intensity.values()) == 1.0
        assert all(0.0 <= v <= 1.0 for v in intensity.values())

    def test_normalized_intensity_all_zero(self, exact_config):
        cells = build_grid(exact_config)
        assert set(normalized_intensity(cells).values()) == {0.0}

    def test_top_cells(self, column_config):
        cells = build_grid(column_config)
        centre = cells[0].center
        ranked = ProximityScorer().score(cells, [record(1, centre.lat, centre.lon)])

        assert [c.id for c in top_cells(ranked, 2)] == [0, 1]
        assert top_cells(build_grid(column_config), 50) == []
