"""
Data model for the heat map core.

Value types (GeoPoint, BBox, BusinessRecord, BoundarySegment, Polygon,
NamedArea) are immutable. GridCell is the one mutable structure: the grid
builder creates it and the proximity scorer fills in its score and
containment fields.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .exceptions import DegenerateGeometryError, InvalidCoordinateError

# Two coordinates closer than this (in degrees, per axis) are the same point.
# Roughly 10 m at city latitudes.
COORD_MATCH_TOLERANCE_DEG = 1e-4

CategoryId = str


def validate_coordinates(lat: float, lon: float, record_id: Any = None) -> None:
    """Raise InvalidCoordinateError unless lat/lon are finite and in range."""
    try:
        lat_f = float(lat)
        lon_f = float(lon)
    except (TypeError, ValueError):
        raise InvalidCoordinateError(
            f"Coordinates are not numeric: lat={lat!r}, lon={lon!r}", record_id
        )

    if not (math.isfinite(lat_f) and math.isfinite(lon_f)):
        raise InvalidCoordinateError(
            f"Coordinates are not finite: lat={lat_f}, lon={lon_f}", record_id
        )
    if not -90.0 <= lat_f <= 90.0:
        raise InvalidCoordinateError(f"Latitude out of range: {lat_f}", record_id)
    if not -180.0 <= lon_f <= 180.0:
        raise InvalidCoordinateError(f"Longitude out of range: {lon_f}", record_id)


@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 position in degrees. No projection is applied."""

    lat: float
    lon: float

    @classmethod
    def validated(cls, lat: float, lon: float) -> "GeoPoint":
        validate_coordinates(lat, lon)
        return cls(float(lat), float(lon))

    def matches(
        self, other: Optional["GeoPoint"], tolerance: float = COORD_MATCH_TOLERANCE_DEG
    ) -> bool:
        """True if both axes differ by less than ``tolerance`` degrees."""
        if other is None:
            return False
        return (
            abs(self.lat - other.lat) < tolerance
            and abs(self.lon - other.lon) < tolerance
        )


@dataclass(frozen=True)
class BBox:
    """Axis-aligned bounding box in degrees."""

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def contains(self, point: GeoPoint, inclusive: bool = True) -> bool:
        """Test membership.

        Inclusive boxes own all four edges; half-open boxes own only the
        south and west edges, so adjacent boxes never share a point.
        """
        if inclusive:
            return (
                self.min_lat <= point.lat <= self.max_lat
                and self.min_lon <= point.lon <= self.max_lon
            )
        return (
            self.min_lat <= point.lat < self.max_lat
            and self.min_lon <= point.lon < self.max_lon
        )

    @property
    def center(self) -> GeoPoint:
        return GeoPoint(
            (self.min_lat + self.max_lat) / 2, (self.min_lon + self.max_lon) / 2
        )


@dataclass(frozen=True)
class BusinessRecord:
    """A point-located business tagged with one category.

    Owned by the data layer; the core only reads it.
    """

    id: Any
    name: str
    location: GeoPoint
    category: CategoryId
    raw_attributes: Mapping[str, str] = field(
        default_factory=dict, compare=False, hash=False
    )

    @property
    def lat(self) -> float:
        return self.location.lat

    @property
    def lon(self) -> float:
        return self.location.lon


@dataclass(frozen=True)
class BoundarySegment:
    """One fragment of a boundary ring; first and last coordinates are its endpoints."""

    id: Any
    coordinates: Tuple[GeoPoint, ...]

    def __post_init__(self):
        if len(self.coordinates) < 2:
            raise DegenerateGeometryError(
                f"Segment {self.id} has {len(self.coordinates)} coordinates, need at least 2"
            )
        # Accept any sequence but store a tuple
        object.__setattr__(self, "coordinates", tuple(self.coordinates))

    @property
    def start(self) -> GeoPoint:
        return self.coordinates[0]

    @property
    def end(self) -> GeoPoint:
        return self.coordinates[-1]


def dedupe_consecutive(
    points: Sequence[GeoPoint], tolerance: float = COORD_MATCH_TOLERANCE_DEG
) -> List[GeoPoint]:
    """Drop points that match their predecessor within ``tolerance``."""
    cleaned: List[GeoPoint] = []
    for point in points:
        if not cleaned or not point.matches(cleaned[-1], tolerance):
            cleaned.append(point)
    return cleaned


def count_distinct(
    points: Sequence[GeoPoint],
    tolerance: float = COORD_MATCH_TOLERANCE_DEG,
    limit: Optional[int] = None,
) -> int:
    """
    Number of points that match no other point within ``tolerance``.

    Revisited points count once, so neither the closing point nor a chain
    that doubles back on itself adds to the count. Counting stops early
    once ``limit`` distinct points are found.
    """
    distinct: List[GeoPoint] = []
    for point in dedupe_consecutive(points, tolerance):
        if any(point.matches(seen, tolerance) for seen in distinct):
            continue
        distinct.append(point)
        if limit is not None and len(distinct) >= limit:
            break
    return len(distinct)


@dataclass(frozen=True)
class Polygon:
    """A ring of coordinates.

    When ``closed`` the first and last points coincide within tolerance and
    the ring holds at least 4 points (3 distinct plus the closing point).
    """

    ring: Tuple[GeoPoint, ...]
    closed: bool = True

    def __post_init__(self):
        object.__setattr__(self, "ring", tuple(self.ring))

    @classmethod
    def closed_ring(
        cls, points: Sequence[GeoPoint], tolerance: float = COORD_MATCH_TOLERANCE_DEG
    ) -> "Polygon":
        """Clean consecutive duplicates and force-close ``points``."""
        cleaned = dedupe_consecutive(points, tolerance)
        if count_distinct(cleaned, tolerance, limit=3) < 3:
            raise DegenerateGeometryError(
                f"Ring has fewer than 3 distinct points ({len(cleaned)} after cleaning)"
            )
        if not cleaned[-1].matches(cleaned[0], tolerance):
            cleaned.append(GeoPoint(cleaned[0].lat, cleaned[0].lon))
        return cls(tuple(cleaned), closed=True)

    def __len__(self) -> int:
        return len(self.ring)

    def __iter__(self):
        return iter(self.ring)


@dataclass(frozen=True)
class NamedArea:
    """A reconstructed (or synthesized) neighborhood polygon."""

    id: Any
    name: str
    boundary: Polygon
    bounds: BBox
    area_km2: float


@dataclass
class GridCell:
    """One rectangular cell of the region grid.

    Geometry fields are set once by the grid builder. Score and containment
    fields are recomputed in full by every scoring pass.
    """

    id: int
    row: int
    col: int
    center: GeoPoint
    ring: Polygon
    bounds: BBox
    area_km2: float

    proximity_score: float = 0.0
    nearest_point_distance_km: float = math.inf
    nearest_business: Optional[BusinessRecord] = None
    contained_points: List[BusinessRecord] = field(default_factory=list)
    counts_by_category: Dict[CategoryId, List[BusinessRecord]] = field(
        default_factory=dict
    )

    def reset_scores(self) -> None:
        """Clear everything the scorer owns."""
        self.proximity_score = 0.0
        self.nearest_point_distance_km = math.inf
        self.nearest_business = None
        self.contained_points = []
        self.counts_by_category = {}

    @property
    def business_count(self) -> int:
        return len(self.contained_points)
