"""
Regular grid over a fixed region.

The degree steps of a cell are precomputed once for a reference latitude
and are not re-derived per row, so cells drift slightly narrower in
longitude toward the north edge of the region. For a city-sized box the
error is negligible and every cell is treated as having the same nominal
area.
"""

import math
from typing import List, NamedTuple, Optional

import structlog

from .geometry import KM_PER_DEGREE_LAT, km_per_degree_lon, polygon_area_km2
from .models import BBox, GeoPoint, GridCell, NamedArea, Polygon

logger = structlog.get_logger()


class RegionConfig(NamedTuple):
    """Fixed rectangular region in degrees."""
    south: float
    west: float
    north: float
    east: float

    @property
    def lat_range(self) -> float:
        return self.north - self.south

    @property
    def lon_range(self) -> float:
        return self.east - self.west

    @property
    def reference_lat(self) -> float:
        """Latitude used for degree-to-km scaling (the northern bound)."""
        return self.north

    def bbox(self) -> BBox:
        return BBox(
            min_lat=self.south, max_lat=self.north, min_lon=self.west, max_lon=self.east
        )


class GridConfig(NamedTuple):
    """Configuration for grid generation."""
    region: RegionConfig
    cell_size_km: float
    lat_step: float
    lon_step: float

    @classmethod
    def for_region(
        cls,
        region: RegionConfig,
        cell_size_km: float,
        reference_lat: Optional[float] = None,
    ) -> "GridConfig":
        """Derive degree steps for square cells of ``cell_size_km``.

        Steps are computed at ``reference_lat`` (default: region centre).
        """
        if reference_lat is None:
            reference_lat = (region.south + region.north) / 2
        return cls(
            region=region,
            cell_size_km=cell_size_km,
            lat_step=cell_size_km / KM_PER_DEGREE_LAT,
            lon_step=cell_size_km / km_per_degree_lon(reference_lat),
        )

    @property
    def num_rows(self) -> int:
        return math.ceil(self.region.lat_range / self.lat_step)

    @property
    def num_cols(self) -> int:
        return math.ceil(self.region.lon_range / self.lon_step)

    @property
    def cell_area_km2(self) -> float:
        return self.cell_size_km * self.cell_size_km


def _rectangle(south: float, west: float, north: float, east: float) -> Polygon:
    return Polygon(
        (
            GeoPoint(south, west),
            GeoPoint(north, west),
            GeoPoint(north, east),
            GeoPoint(south, east),
            GeoPoint(south, west),
        ),
        closed=True,
    )


def build_grid(config: GridConfig) -> List[GridCell]:
    """
    Partition the region into rectangular cells in row-major order.

    Row 0 is the southern edge, column 0 the western edge. Edges are
    computed from the region origin so adjacent cells share exactly the
    same boundary value. The last row/column may extend past the region
    when its range is not a multiple of the step.

    Args:
        config: Region and cell step configuration

    Returns:
        ``num_rows * num_cols`` fresh cells with id ``row * num_cols + col``
    """
    region = config.region
    num_rows = config.num_rows
    num_cols = config.num_cols
    area = config.cell_area_km2

    cells = []
    for row in range(num_rows):
        south = region.south + row * config.lat_step
        north = region.south + (row + 1) * config.lat_step
        for col in range(num_cols):
            west = region.west + col * config.lon_step
            east = region.west + (col + 1) * config.lon_step

            cells.append(
                GridCell(
                    id=row * num_cols + col,
                    row=row,
                    col=col,
                    center=GeoPoint((south + north) / 2, (west + east) / 2),
                    ring=_rectangle(south, west, north, east),
                    bounds=BBox(min_lat=south, max_lat=north, min_lon=west, max_lon=east),
                    area_km2=area,
                )
            )

    logger.info("Grid built", rows=num_rows, cols=num_cols, cells=len(cells))
    return cells


def build_fallback_areas(region: RegionConfig, size: int = 4) -> List[NamedArea]:
    """
    Split the region into ``size x size`` equal named rectangles.

    Used when no neighborhood boundary can be reconstructed. Ids are
    negative so they never collide with real boundary ids.
    """
    if size < 1:
        raise ValueError(f"Fallback grid size must be positive, got {size}")

    lat_step = region.lat_range / size
    lon_step = region.lon_range / size
    areas = []
    for row in range(size):
        south = region.south + row * lat_step
        north = region.south + (row + 1) * lat_step
        for col in range(size):
            west = region.west + col * lon_step
            east = region.west + (col + 1) * lon_step
            ring = _rectangle(south, west, north, east)
            areas.append(
                NamedArea(
                    id=-(row * size + col + 1),
                    name=f"Grid {row + 1}-{col + 1}",
                    boundary=ring,
                    bounds=BBox(min_lat=south, max_lat=north, min_lon=west, max_lon=east),
                    area_km2=polygon_area_km2(ring.ring, region.reference_lat),
                )
            )

    logger.info("Fallback areas built", size=size, areas=len(areas))
    return areas
