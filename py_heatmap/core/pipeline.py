"""
Aggregate pipeline: grid -> proximity scores, and boundaries -> named areas.

The pipeline is stateless. Every run builds a fresh grid and rescores
every cell; nothing is cached between runs.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import structlog

from .boundary import (
    BoundaryGroup,
    BoundaryReconstructor,
    ReconstructionOptions,
    ReconstructionResult,
    build_named_area,
    groups_from_elements,
)
from .exceptions import HeatmapError
from .grid import GridConfig, build_fallback_areas, build_grid
from .models import BusinessRecord, GridCell, NamedArea
from .scoring import AreaScore, ProximityScorer, ScoringOptions, assign_records_to_areas

logger = structlog.get_logger()


@dataclass
class PipelineResult:
    """Ranked cells of one scoring run."""
    cells: List[GridCell]
    max_score: float
    record_count: int
    elapsed_s: float


@dataclass
class AreaAggregation:
    """Named areas built from boundary data, plus what went wrong."""
    areas: List[NamedArea]
    scores: List[AreaScore] = field(default_factory=list)
    failed: Dict[Any, str] = field(default_factory=dict)
    diagnostics: Dict[Any, ReconstructionResult] = field(default_factory=dict)
    # True when the areas are the coarse grid fallback
    approximate_areas: bool = False


class HeatmapPipeline:
    """Orchestrates grid building, proximity scoring and boundary reconstruction."""

    def __init__(
        self,
        grid_config: GridConfig,
        scoring_options: Optional[ScoringOptions] = None,
        reconstruction_options: Optional[ReconstructionOptions] = None,
        fallback_grid_size: int = 4,
    ):
        self.grid_config = grid_config
        self.scorer = ProximityScorer(scoring_options)
        if reconstruction_options is None:
            reconstruction_options = ReconstructionOptions(
                reference_lat=grid_config.region.reference_lat
            )
        self.reconstructor = BoundaryReconstructor(reconstruction_options)
        self.fallback_grid_size = fallback_grid_size

    @classmethod
    def from_settings(
        cls, settings: Any, grid_config: Optional[GridConfig] = None
    ) -> "HeatmapPipeline":
        """
        Build a pipeline from application settings.

        Args:
            settings: A ``py_heatmap.config.Settings`` instance
            grid_config: Region preset to use instead of the settings' own
                region. Area scaling then follows the preset's latitude.
        """
        reconstruction_options = settings.reconstruction_options()
        if grid_config is None:
            grid_config = settings.grid_config()
        else:
            reconstruction_options = reconstruction_options.model_copy(
                update={"reference_lat": grid_config.region.reference_lat}
            )

        return cls(
            grid_config,
            scoring_options=settings.scoring_options(),
            reconstruction_options=reconstruction_options,
            fallback_grid_size=settings.fallback_grid_size,
        )

    def run(self, records: Sequence[BusinessRecord]) -> PipelineResult:
        """
        Build the grid and score it against ``records``.

        Call again whenever the record set changes; there is no incremental
        path.
        """
        started = time.perf_counter()
        cells = build_grid(self.grid_config)
        ranked = self.scorer.score(cells, records)
        elapsed = time.perf_counter() - started

        max_score = ranked[0].proximity_score if ranked else 0.0
        logger.info(
            "Pipeline run complete",
            cells=len(ranked),
            records=len(records),
            max_score=round(max_score, 2),
            elapsed_s=round(elapsed, 3),
        )
        return PipelineResult(
            cells=ranked,
            max_score=max_score,
            record_count=len(records),
            elapsed_s=elapsed,
        )

    def aggregate_areas(
        self,
        groups: Iterable[BoundaryGroup],
        records: Optional[Sequence[BusinessRecord]] = None,
    ) -> AreaAggregation:
        """
        Reconstruct each boundary group into a NamedArea.

        A group that fails is logged and listed in ``failed``; the others
        are unaffected. If nothing survives, the coarse grid fallback is
        returned with ``approximate_areas`` set.

        Args:
            groups: Boundary segment groups, one per area
            records: Optional records to bucket into the resulting areas
        """
        min_area = self.reconstructor.options.min_named_area_km2
        areas: List[NamedArea] = []
        failed: Dict[Any, str] = {}
        diagnostics: Dict[Any, ReconstructionResult] = {}

        for group in groups:
            try:
                area, result = build_named_area(group, self.reconstructor)
            except HeatmapError as e:
                logger.warning(
                    "Area reconstruction failed",
                    area_id=group.area_id,
                    name=group.name,
                    error=str(e),
                )
                failed[group.area_id] = str(e)
                continue

            diagnostics[group.area_id] = result
            if area.area_km2 <= min_area:
                failed[group.area_id] = f"area {area.area_km2:.5f} km² below minimum"
                continue
            areas.append(area)

        approximate = False
        if not areas:
            logger.warning("No areas reconstructed, using grid fallback", failed=len(failed))
            areas = build_fallback_areas(self.grid_config.region, self.fallback_grid_size)
            approximate = True

        scores = assign_records_to_areas(areas, records) if records is not None else []
        logger.info(
            "Areas aggregated",
            areas=len(areas),
            failed=len(failed),
            best_effort=sum(1 for r in diagnostics.values() if r.best_effort),
            approximate=approximate,
        )
        return AreaAggregation(
            areas=areas,
            scores=scores,
            failed=failed,
            diagnostics=diagnostics,
            approximate_areas=approximate,
        )

    def aggregate_relations(
        self,
        elements: Iterable[Mapping[str, Any]],
        records: Optional[Sequence[BusinessRecord]] = None,
    ) -> AreaAggregation:
        """Aggregate areas straight from a raw relation response."""
        return self.aggregate_areas(groups_from_elements(elements), records)
