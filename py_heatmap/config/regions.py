"""
Region presets.

Degree steps are precomputed for each region's latitude and stored with
it, so a preset reproduces the same grid everywhere.
"""

from typing import Dict, List

from ..core.grid import GridConfig, RegionConfig

# Half-mile cells. At ~45.5°N one degree of latitude is ~111 km and one
# degree of longitude ~78 km.
HALF_MILE_KM = 0.804

REGIONS: Dict[str, GridConfig] = {
    "portland": GridConfig(
        region=RegionConfig(south=45.43, west=-122.84, north=45.65, east=-122.47),
        cell_size_km=HALF_MILE_KM,
        lat_step=0.00724,
        lon_step=0.0103,
    ),
}


def get_region(name: str) -> GridConfig:
    """Grid configuration of a named region preset."""
    if name not in REGIONS:
        raise KeyError(f"Unknown region '{name}'. Available: {', '.join(list_regions())}")
    return REGIONS[name]


def list_regions() -> List[str]:
    return sorted(REGIONS)
