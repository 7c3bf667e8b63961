"""Error taxonomy for the geospatial core."""

from typing import Optional


class HeatmapError(Exception):
    """Base class for all core failures."""


class EmptyInputError(HeatmapError):
    """No points or segments were supplied where at least one is required."""


class InvalidCoordinateError(HeatmapError, ValueError):
    """A latitude/longitude is non-finite or out of range."""

    def __init__(self, message: str, record_id: Optional[object] = None):
        super().__init__(message)
        self.record_id = record_id


class DegenerateGeometryError(HeatmapError):
    """A ring collapsed to fewer than 3 distinct points after cleaning."""


class UnreconstructableBoundaryError(HeatmapError):
    """No usable ring could be chained from a boundary's segments.

    Callers should fall back to another area source, e.g. a uniform grid.
    """

    def __init__(
        self,
        message: str,
        area_id: Optional[object] = None,
        segments_total: int = 0,
    ):
        super().__init__(message)
        self.area_id = area_id
        self.segments_total = segments_total
