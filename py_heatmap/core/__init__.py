"""
Core geospatial computation.
"""

from .exceptions import (
    HeatmapError, EmptyInputError, InvalidCoordinateError,
    DegenerateGeometryError, UnreconstructableBoundaryError,
)
from .models import (
    COORD_MATCH_TOLERANCE_DEG, GeoPoint, BBox, BusinessRecord, BoundarySegment,
    Polygon, NamedArea, GridCell,
)
from .geometry import distance_km, bounding_box, polygon_area_km2, point_in_polygon
from .grid import RegionConfig, GridConfig, build_grid, build_fallback_areas
from .boundary import (
    BoundaryReconstructor, ReconstructionOptions, ReconstructionResult, BoundaryGroup,
)
from .scoring import ProximityScorer, ScoringOptions, AreaScore
from .pipeline import HeatmapPipeline, PipelineResult, AreaAggregation
from .categories import TagRule, CategoryDefinition, CategoryRegistry
from .records import records_from_elements, merge_category_records

__all__ = ['HeatmapError', 'EmptyInputError', 'InvalidCoordinateError',
           'DegenerateGeometryError', 'UnreconstructableBoundaryError',
           'COORD_MATCH_TOLERANCE_DEG', 'GeoPoint', 'BBox', 'BusinessRecord',
           'BoundarySegment', 'Polygon', 'NamedArea', 'GridCell',
           'distance_km', 'bounding_box', 'polygon_area_km2', 'point_in_polygon',
           'RegionConfig', 'GridConfig', 'build_grid', 'build_fallback_areas',
           'BoundaryReconstructor', 'ReconstructionOptions', 'ReconstructionResult',
           'BoundaryGroup', 'ProximityScorer', 'ScoringOptions', 'AreaScore',
           'HeatmapPipeline', 'PipelineResult', 'AreaAggregation',
           'TagRule', 'CategoryDefinition', 'CategoryRegistry',
           'records_from_elements', 'merge_category_records']
