"""
Proximity scoring of grid cells and density of named areas.

Each cell is scored against the full point universe: the distance from
its centre to the nearest record decays exponentially,

    score = 100 * exp(-d / 0.5 km)

so a co-located record scores 100, 0.5 km about 37 and 1 km about 14.
Category selection in the presentation layer never reaches the scorer.
"""

import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
import structlog
from pydantic import BaseModel, ConfigDict, Field

from .exceptions import InvalidCoordinateError
from .geometry import distances_km, point_in_polygon
from .models import BusinessRecord, CategoryId, GridCell, NamedArea, validate_coordinates

logger = structlog.get_logger()


class ScoringOptions(BaseModel):
    """Proximity scoring options."""

    model_config = ConfigDict(frozen=True)

    decay_length_km: float = Field(
        default=0.5, gt=0, description="Distance at which the score falls to 1/e"
    )
    max_score: float = Field(default=100.0, gt=0, description="Score of a co-located record")
    edge_inclusive: bool = Field(
        default=True,
        description="Count records on a shared cell edge in every touching cell. "
        "False uses half-open [min, max) bounds so each record has one owner.",
    )
    workers: int = Field(default=1, ge=1, description="Threads used to score cells")


def score_from_distance(
    distance_km: float, decay_length_km: float = 0.5, max_score: float = 100.0
) -> float:
    """Exponential decay score. Infinite distance (no records) scores 0."""
    if math.isinf(distance_km):
        return 0.0
    return max_score * math.exp(-distance_km / decay_length_km)


@dataclass
class _PointArrays:
    records: Sequence[BusinessRecord]
    lats: np.ndarray
    lons: np.ndarray


def _as_arrays(records: Sequence[BusinessRecord]) -> _PointArrays:
    lats = np.fromiter((r.location.lat for r in records), dtype=float, count=len(records))
    lons = np.fromiter((r.location.lon for r in records), dtype=float, count=len(records))

    bad = ~(
        np.isfinite(lats)
        & np.isfinite(lons)
        & (np.abs(lats) <= 90.0)
        & (np.abs(lons) <= 180.0)
    )
    if bad.any():
        record = records[int(np.argmax(bad))]
        # Re-run the scalar check for a precise message
        validate_coordinates(record.location.lat, record.location.lon, record.id)
        raise InvalidCoordinateError(f"Invalid coordinates for record {record.id}", record.id)

    return _PointArrays(records=records, lats=lats, lons=lons)


class ProximityScorer:
    """Scores grid cells by distance to the nearest record."""

    def __init__(self, options: Optional[ScoringOptions] = None):
        self.options = options or ScoringOptions()

    def score(
        self, cells: List[GridCell], records: Sequence[BusinessRecord]
    ) -> List[GridCell]:
        """
        Score every cell in place and return them ranked.

        Every score and containment field is recomputed from scratch. An
        empty record set is an expected condition and leaves all scores at 0.

        Args:
            cells: Cells from the grid builder
            records: Full point universe, unfiltered

        Returns:
            New list of the same cells, sorted by descending score. Ties
            keep their input order.

        Raises:
            InvalidCoordinateError: A record has non-finite or out-of-range
                coordinates
        """
        points = _as_arrays(records)

        if self.options.workers > 1 and len(cells) > 1:
            chunk = math.ceil(len(cells) / self.options.workers)
            chunks = [cells[i:i + chunk] for i in range(0, len(cells), chunk)]
            with ThreadPoolExecutor(max_workers=self.options.workers) as pool:
                # list() re-raises any worker exception
                list(pool.map(lambda part: self._score_cells(part, points), chunks))
        else:
            self._score_cells(cells, points)

        ranked = sorted(cells, key=lambda c: c.proximity_score, reverse=True)

        logger.info(
            "Cells scored",
            cells=len(cells),
            records=len(records),
            max_score=round(ranked[0].proximity_score, 2) if ranked else 0.0,
            workers=self.options.workers,
        )
        return ranked

    def _score_cells(self, cells: Sequence[GridCell], points: _PointArrays) -> None:
        for cell in cells:
            self._score_cell(cell, points)

    def _score_cell(self, cell: GridCell, points: _PointArrays) -> None:
        cell.reset_scores()
        if len(points.records) == 0:
            return

        distances = distances_km(cell.center, points.lats, points.lons)
        # argmin returns the first minimum: earlier records win exact ties
        nearest = int(np.argmin(distances))
        cell.nearest_point_distance_km = float(distances[nearest])
        cell.nearest_business = points.records[nearest]
        cell.proximity_score = score_from_distance(
            cell.nearest_point_distance_km,
            self.options.decay_length_km,
            self.options.max_score,
        )

        b = cell.bounds
        if self.options.edge_inclusive:
            inside = (
                (points.lats >= b.min_lat) & (points.lats <= b.max_lat)
                & (points.lons >= b.min_lon) & (points.lons <= b.max_lon)
            )
        else:
            inside = (
                (points.lats >= b.min_lat) & (points.lats < b.max_lat)
                & (points.lons >= b.min_lon) & (points.lons < b.max_lon)
            )

        for idx in np.flatnonzero(inside):
            record = points.records[idx]
            cell.contained_points.append(record)
            cell.counts_by_category.setdefault(record.category, []).append(record)


@dataclass
class AreaScore:
    """Records inside one named area."""
    area: NamedArea
    records: List[BusinessRecord] = field(default_factory=list)
    by_category: Dict[CategoryId, List[BusinessRecord]] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.records)

    @property
    def density(self) -> float:
        """Records per km². Area is floored upstream so this never divides by zero."""
        return self.count / self.area.area_km2


def assign_records_to_areas(
    areas: Sequence[NamedArea], records: Sequence[BusinessRecord]
) -> List[AreaScore]:
    """
    Bucket records into the areas whose polygon contains them.

    A bounding-box test filters candidates before the ray-casting test.
    Overlapping areas may both claim a record.

    Returns:
        One AreaScore per area, sorted by descending density
    """
    points = _as_arrays(records)

    scores = []
    for area in areas:
        score = AreaScore(area=area)
        ring = area.boundary.ring
        b = area.bounds
        candidates = (
            (points.lats >= b.min_lat) & (points.lats <= b.max_lat)
            & (points.lons >= b.min_lon) & (points.lons <= b.max_lon)
        )
        for idx in np.flatnonzero(candidates):
            record = records[idx]
            if point_in_polygon(record.location, ring):
                score.records.append(record)
                score.by_category.setdefault(record.category, []).append(record)
        scores.append(score)

    scores.sort(key=lambda s: s.density, reverse=True)
    logger.info("Records assigned to areas", areas=len(areas), records=len(records))
    return scores


def normalized_intensity(cells: Sequence[GridCell]) -> Dict[int, float]:
    """Each cell's score relative to the best score in ``cells`` (0..1)."""
    max_score = max((c.proximity_score for c in cells), default=0.0)
    if max_score <= 0:
        return {c.id: 0.0 for c in cells}
    return {c.id: c.proximity_score / max_score for c in cells}


def top_cells(cells: Sequence[GridCell], n: int = 50) -> List[GridCell]:
    """The first ``n`` cells with a positive score, in the given (ranked) order."""
    return [c for c in cells if c.proximity_score > 0][:n]
