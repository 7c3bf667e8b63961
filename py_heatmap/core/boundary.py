"""
Boundary reconstruction from fragmented relation data.

Administrative relations arrive as a bag of line segments (ways) with no
guaranteed order or orientation. This module chains them into a closed
ring by matching endpoints:

1. A single segment is closed on itself.
2. Otherwise each segment in turn seeds a chain that is greedily extended
   with any unused segment whose start or end matches the chain's current
   end (reversing it when the ends meet tail-to-tail).
3. The first seed whose chain consumes every segment wins outright.
4. Failing that, the seed that used the most segments is cleaned and
   force-closed ("best effort"). Ties go to the earliest seed.

Only one connected ring is produced per call. Disconnected groups (islands
of a multipolygon) need one call per group.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import structlog
from pydantic import BaseModel, ConfigDict, Field

from .exceptions import (
    DegenerateGeometryError,
    EmptyInputError,
    InvalidCoordinateError,
    UnreconstructableBoundaryError,
)
from .geometry import DEFAULT_REFERENCE_LAT, MIN_AREA_KM2, bounding_box, polygon_area_km2
from .models import (
    COORD_MATCH_TOLERANCE_DEG,
    BoundarySegment,
    GeoPoint,
    NamedArea,
    Polygon,
    count_distinct,
    dedupe_consecutive,
)

logger = structlog.get_logger()

NEIGHBORHOOD_PLACES = ("neighbourhood", "suburb", "quarter")


class ReconstructionOptions(BaseModel):
    """Boundary reconstruction options."""

    model_config = ConfigDict(frozen=True)

    coord_match_tolerance_deg: float = Field(
        default=COORD_MATCH_TOLERANCE_DEG,
        gt=0,
        description="Per-axis tolerance for endpoint matching, in degrees",
    )
    reference_lat: float = Field(
        default=DEFAULT_REFERENCE_LAT,
        ge=-90,
        le=90,
        description="Latitude used to scale area from degrees to km",
    )
    min_area_km2: float = Field(
        default=MIN_AREA_KM2, gt=0, description="Floor returned for degenerate area computations"
    )
    min_named_area_km2: float = Field(
        default=0.001, ge=0, description="Areas below this are discarded as degenerate"
    )


@dataclass
class ReconstructionResult:
    """A reconstructed ring plus chaining diagnostics.

    ``segments_used`` (K) and ``segments_total`` (N) let callers decide
    whether a best-effort ring is acceptable.
    """
    polygon: Polygon
    segments_used: int
    segments_total: int
    gap_closed: bool = False

    @property
    def ring(self) -> Tuple[GeoPoint, ...]:
        return self.polygon.ring

    @property
    def complete(self) -> bool:
        return self.segments_used == self.segments_total

    @property
    def best_effort(self) -> bool:
        return self.segments_used < self.segments_total


@dataclass
class _Chain:
    points: List[GeoPoint]
    used: int


class BoundaryReconstructor:
    """Chains boundary segments into one closed ring."""

    def __init__(self, options: Optional[ReconstructionOptions] = None):
        self.options = options or ReconstructionOptions()
        self.tolerance = self.options.coord_match_tolerance_deg

    def reconstruct(
        self,
        segments: Sequence[BoundarySegment],
        expected_total: Optional[int] = None,
        area_id: Any = None,
    ) -> ReconstructionResult:
        """
        Build a closed ring from ``segments``.

        Args:
            segments: Fragments of one boundary, any order or orientation
            expected_total: Number of segments the source declared, if some
                could not be resolved before reaching here. Defaults to
                ``len(segments)``.
            area_id: Used only in log events and error payloads

        Returns:
            ReconstructionResult. Partial success is never an error.

        Raises:
            EmptyInputError: No segments were supplied
            UnreconstructableBoundaryError: No ring with 3 distinct points
                could be built
        """
        if not segments:
            raise EmptyInputError(f"No boundary segments supplied for area {area_id}")

        total = max(expected_total or 0, len(segments))

        if len(segments) == 1:
            return self._close_single(segments[0], total, area_id)

        best: Optional[_Chain] = None
        for seed in range(len(segments)):
            chain = self._grow_chain(segments, seed)

            if chain.used == len(segments):
                polygon, gap_closed = self._close_full_chain(chain.points, area_id, total)
                logger.debug(
                    "Boundary chained",
                    area_id=area_id,
                    seed=seed,
                    used=chain.used,
                    total=total,
                    gap_closed=gap_closed,
                )
                return ReconstructionResult(
                    polygon=polygon,
                    segments_used=chain.used,
                    segments_total=total,
                    gap_closed=gap_closed,
                )

            # Strictly greater: the earliest seed keeps a tie
            if best is None or chain.used > best.used:
                best = chain

        return self._close_best_effort(best, total, area_id)

    def _grow_chain(self, segments: Sequence[BoundarySegment], seed: int) -> _Chain:
        points = list(segments[seed].coordinates)
        used = {seed}
        current_end = points[-1]

        progress = True
        while progress and len(used) < len(segments):
            progress = False
            for idx, segment in enumerate(segments):
                if idx in used:
                    continue
                if current_end.matches(segment.start, self.tolerance):
                    points.extend(segment.coordinates[1:])
                    current_end = segment.end
                elif current_end.matches(segment.end, self.tolerance):
                    points.extend(reversed(segment.coordinates[:-1]))
                    current_end = segment.start
                else:
                    continue
                used.add(idx)
                progress = True
                break

        return _Chain(points=points, used=len(used))

    def _close_single(
        self, segment: BoundarySegment, total: int, area_id: Any
    ) -> ReconstructionResult:
        points = list(segment.coordinates)
        if count_distinct(points, self.tolerance, limit=3) < 3:
            raise UnreconstructableBoundaryError(
                f"Single segment {segment.id} of area {area_id} has fewer than 3 distinct points",
                area_id=area_id,
                segments_total=total,
            )

        gap_closed = not points[-1].matches(points[0], self.tolerance)
        if gap_closed:
            points.append(GeoPoint(points[0].lat, points[0].lon))
        return ReconstructionResult(
            polygon=Polygon(tuple(points), closed=True),
            segments_used=1,
            segments_total=total,
            gap_closed=gap_closed,
        )

    def _close_full_chain(
        self, points: List[GeoPoint], area_id: Any, total: int
    ) -> Tuple[Polygon, bool]:
        if count_distinct(points, self.tolerance, limit=3) < 3:
            raise UnreconstructableBoundaryError(
                f"Chained boundary of area {area_id} has fewer than 3 distinct points",
                area_id=area_id,
                segments_total=total,
            )

        if points[-1].matches(points[0], self.tolerance):
            return Polygon(tuple(points), closed=True), False

        while len(points) > 1 and points[-1].matches(points[-2], self.tolerance):
            points.pop()
        points.append(GeoPoint(points[0].lat, points[0].lon))
        return Polygon(tuple(points), closed=True), True

    def _close_best_effort(
        self, best: _Chain, total: int, area_id: Any
    ) -> ReconstructionResult:
        cleaned = dedupe_consecutive(best.points, self.tolerance)
        try:
            polygon = Polygon.closed_ring(cleaned, self.tolerance)
        except DegenerateGeometryError as e:
            raise UnreconstructableBoundaryError(
                f"Best-effort chain for area {area_id} is degenerate: {e}",
                area_id=area_id,
                segments_total=total,
            ) from e

        logger.info(
            "Boundary reconstructed best-effort",
            area_id=area_id,
            used=best.used,
            total=total,
        )
        return ReconstructionResult(
            polygon=polygon,
            segments_used=best.used,
            segments_total=total,
            gap_closed=not cleaned[-1].matches(cleaned[0], self.tolerance),
        )


@dataclass
class BoundaryGroup:
    """The segments of one named boundary, as delivered by a data source."""
    area_id: Any
    name: str
    segments: List[BoundarySegment]
    # Members the source declared, including any that failed to resolve
    declared_segments: int = 0
    tags: Mapping[str, str] = field(default_factory=dict)

    @property
    def expected_total(self) -> int:
        return max(self.declared_segments, len(self.segments))


@dataclass
class RelationIndex:
    """Raw relation response grouped by element type and keyed by id."""
    relations: Dict[Any, dict] = field(default_factory=dict)
    ways: Dict[Any, dict] = field(default_factory=dict)
    nodes: Dict[Any, dict] = field(default_factory=dict)

    @classmethod
    def from_elements(cls, elements: Iterable[Mapping[str, Any]]) -> "RelationIndex":
        index = cls()
        for element in elements:
            kind = element.get("type")
            if kind == "relation":
                index.relations[element.get("id")] = element
            elif kind == "way":
                index.ways[element.get("id")] = element
            elif kind == "node":
                index.nodes[element.get("id")] = element
        return index


def is_neighborhood_relation(tags: Optional[Mapping[str, str]]) -> bool:
    """Administrative level-10 boundaries and neighbourhood-like places."""
    tags = tags or {}
    if tags.get("boundary") == "administrative" and str(tags.get("admin_level")) == "10":
        return True
    return tags.get("place") in NEIGHBORHOOD_PLACES


def _way_coordinates(way: Mapping[str, Any], nodes: Mapping[Any, dict]) -> List[GeoPoint]:
    # Ways fetched with inline geometry skip the node lookup
    if way.get("geometry"):
        raw = way["geometry"]
    else:
        raw = [nodes.get(node_id) for node_id in way.get("nodes", [])]

    coords = []
    for node in raw:
        if not node or node.get("lat") is None or node.get("lon") is None:
            continue
        try:
            coords.append(GeoPoint.validated(node["lat"], node["lon"]))
        except InvalidCoordinateError as e:
            logger.warning(
                "Skipping boundary node with invalid coordinates",
                way_id=way.get("id"),
                node_id=node.get("id"),
                error=str(e),
            )
    return coords


def segments_for_relation(
    relation: Mapping[str, Any], index: RelationIndex
) -> Tuple[List[BoundarySegment], int]:
    """
    Resolve the outer way members of ``relation`` into segments.

    Members with role ``outer`` or no role count. Ways that are missing
    from the response, or resolve to fewer than 2 coordinates, are skipped.

    Returns:
        (segments, number of outer way members declared)
    """
    outer_members = [
        m
        for m in relation.get("members", [])
        if m.get("type") == "way" and (not m.get("role") or m.get("role") == "outer")
    ]

    segments = []
    for member in outer_members:
        way = index.ways.get(member.get("ref"))
        if way is None:
            # Inline member geometry from "out geom" responses
            if member.get("geometry"):
                way = {"geometry": member["geometry"]}
            else:
                continue
        coords = _way_coordinates(way, index.nodes)
        if len(coords) < 2:
            continue
        segments.append(BoundarySegment(id=member.get("ref"), coordinates=tuple(coords)))

    return segments, len(outer_members)


def groups_from_elements(elements: Iterable[Mapping[str, Any]]) -> List[BoundaryGroup]:
    """Turn a raw relation response into one BoundaryGroup per neighborhood relation."""
    index = RelationIndex.from_elements(elements)

    groups = []
    for relation_id, relation in index.relations.items():
        tags = relation.get("tags") or {}
        if not is_neighborhood_relation(tags):
            continue
        segments, declared = segments_for_relation(relation, index)
        groups.append(
            BoundaryGroup(
                area_id=relation_id,
                name=tags.get("name") or tags.get("name:en") or "Unnamed Neighborhood",
                segments=segments,
                declared_segments=declared,
                tags=tags,
            )
        )

    logger.info(
        "Boundary groups extracted",
        relations=len(index.relations),
        groups=len(groups),
        ways=len(index.ways),
        nodes=len(index.nodes),
    )
    return groups


def build_named_area(
    group: BoundaryGroup, reconstructor: BoundaryReconstructor
) -> Tuple[NamedArea, ReconstructionResult]:
    """Reconstruct ``group`` into a NamedArea with bounds and area."""
    result = reconstructor.reconstruct(
        group.segments, expected_total=group.expected_total, area_id=group.area_id
    )
    ring = result.polygon.ring
    area = NamedArea(
        id=group.area_id,
        name=group.name,
        boundary=result.polygon,
        bounds=bounding_box(ring),
        area_km2=polygon_area_km2(
            ring, reconstructor.options.reference_lat, reconstructor.options.min_area_km2
        ),
    )
    return area, result
