"""
Example scoring a Portland grid against a business snapshot.

Usage:
    python examples/heatmap_demo.py [businesses-data.json] [region]

The snapshot holds the raw query-service response of each category:
{"<category-id>": [{"type": "node", "id", "lat", "lon", "tags"}, ...], ...}.
Without one, a handful of made-up businesses are used.
"""

import json
import sys

from py_heatmap.config import default_categories, get_region, settings
from py_heatmap.core import HeatmapPipeline, merge_category_records, records_from_elements
from py_heatmap.core.scoring import normalized_intensity, top_cells
from py_heatmap.logging_config import configure_logging


def load_snapshot(path):
    with open(path) as f:
        return json.load(f)


def sample_elements():
    def node(element_id, lat, lon, **tags):
        return {"type": "node", "id": element_id, "lat": lat, "lon": lon, "tags": tags}

    return {
        "vegan-restaurants": [
            node(1, 45.5122, -122.6587, name="Sweet Pea Baking", **{"diet:vegan": "only"}),
        ],
        "bookstores": [
            node(2, 45.5231, -122.6814, name="Powell's Books", shop="books"),
            # Filtered out as a chain
            node(6, 45.5289, -122.6980, name="Target", shop="books"),
        ],
        "music-venues": [
            node(3, 45.5518, -122.6756, name="Mississippi Studios", amenity="music_venue"),
        ],
        "record-stores": [
            node(4, 45.5233, -122.6354, name="Music Millennium", shop="music"),
        ],
        "theaters": [
            node(5, 45.5353, -122.6210, name="Hollywood Theatre", amenity="cinema"),
        ],
    }


def main():
    configure_logging(settings.log_level, settings.log_format)

    snapshot = load_snapshot(sys.argv[1]) if len(sys.argv) > 1 else sample_elements()
    region_name = sys.argv[2] if len(sys.argv) > 2 else "portland"
    categories = default_categories()

    by_category = {
        category.id: records_from_elements(snapshot.get(category.id, []), category)
        for category in categories
    }
    records = merge_category_records(by_category)

    pipeline = HeatmapPipeline.from_settings(settings, get_region(region_name))
    result = pipeline.run(records)
    intensity = normalized_intensity(result.cells)

    print(f"Scored {len(result.cells)} cells against {result.record_count} businesses "
          f"in {result.elapsed_s:.2f}s")
    print("\nTop areas:")
    for rank, cell in enumerate(top_cells(result.cells, settings.top_n), start=1):
        nearest = cell.nearest_business.name if cell.nearest_business else "-"
        distance = cell.nearest_point_distance_km
        distance_text = f"{distance * 1000:.0f}m" if distance < 1 else f"{distance:.2f}km"
        print(f"{rank:2d}. cell {cell.id:4d} (row {cell.row}, col {cell.col}) "
              f"score {cell.proximity_score:5.1f} intensity {intensity[cell.id]:.2f} "
              f"nearest {nearest} ({distance_text})")
        for category_id, members in cell.counts_by_category.items():
            category = categories.get(category_id)
            label = f"{category.icon} {category.name}" if category else category_id
            print(f"      {label}: {len(members)}")

    # No boundary data here, so this exercises the coarse fallback
    areas = pipeline.aggregate_areas([], records)
    print(f"\nApproximate areas: {areas.approximate_areas}")
    for score in areas.scores[:5]:
        print(f"  {score.area.name}: {score.count} businesses, "
              f"{score.density:.2f}/km² over {score.area.area_km2:.1f} km²")


if __name__ == "__main__":
    main()
