"""
Conversion of an already-fetched query response into BusinessRecords.

This is the boundary where invalid coordinates are rejected, so the
scorer only ever sees finite, in-range points. Nothing here does I/O.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import structlog

from .categories import CategoryDefinition
from .exceptions import InvalidCoordinateError
from .models import BusinessRecord, GeoPoint

logger = structlog.get_logger()

# Chains and big-box retailers kept off the map
DEFAULT_EXCLUDED_CHAINS = (
    "subway", "starbucks", "mcdonald", "dunkin", "taco bell", "domino",
    "burger king", "pizza hut", "wendy", "dairy queen", "little caesar",
    "kfc", "sonic", "chipotle", "arby", "papa john", "popeyes",
    "chick-fil-a", "chick fil a", "panera", "jack in the box",
    "autozone", "bi-mart", "bi mart", "target", "michael's", "michaels", "ross",
)

UNNAMED = "Unnamed Business"


def is_excluded_chain(name: Optional[str], chains: Sequence[str] = DEFAULT_EXCLUDED_CHAINS) -> bool:
    """Case-insensitive substring match of ``name`` against ``chains``."""
    lowered = (name or "").lower()
    return any(chain in lowered for chain in chains)


def element_location(element: Mapping[str, Any]) -> Optional[GeoPoint]:
    """Location of a node, or the centre of a way. None when absent."""
    kind = element.get("type")
    if kind == "node":
        lat, lon = element.get("lat"), element.get("lon")
    elif kind == "way" and element.get("center"):
        lat, lon = element["center"].get("lat"), element["center"].get("lon")
    else:
        return None

    if lat is None or lon is None:
        return None
    return GeoPoint.validated(lat, lon)


def record_from_element(
    element: Mapping[str, Any], category_id: str
) -> Optional[BusinessRecord]:
    """
    Build a BusinessRecord from one tagged element.

    Returns:
        The record, or None if the element has no location

    Raises:
        InvalidCoordinateError: The location is non-finite or out of range
    """
    location = element_location(element)
    if location is None:
        return None

    tags = element.get("tags") or {}
    name = tags.get("name") or tags.get("name:en") or UNNAMED
    return BusinessRecord(
        id=element.get("id"),
        name=name,
        location=location,
        category=category_id,
        raw_attributes={str(k): str(v) for k, v in tags.items()},
    )


def records_from_elements(
    elements: Iterable[Mapping[str, Any]],
    category: CategoryDefinition,
    excluded_chains: Sequence[str] = DEFAULT_EXCLUDED_CHAINS,
) -> List[BusinessRecord]:
    """
    Filter and convert one category's response into records.

    Elements failing the category's tag rules, excluded chains, and
    elements without a valid location are dropped. Duplicates at the same
    6-decimal position keep the first occurrence.
    """
    by_position: Dict[str, BusinessRecord] = {}
    invalid = 0

    for element in elements:
        tags = element.get("tags") or {}
        if not category.matches(tags):
            continue
        if is_excluded_chain(tags.get("name") or tags.get("name:en"), excluded_chains):
            continue

        try:
            record = record_from_element(element, category.id)
        except InvalidCoordinateError as e:
            invalid += 1
            logger.warning(
                "Skipping element with invalid coordinates",
                element_id=element.get("id"),
                category=category.id,
                error=str(e),
            )
            continue
        if record is None:
            continue

        key = f"{record.lat:.6f},{record.lon:.6f}"
        if key not in by_position:
            by_position[key] = record

    records = list(by_position.values())
    logger.info(
        "Category records loaded",
        category=category.id,
        records=len(records),
        invalid=invalid,
    )
    return records


def merge_category_records(
    by_category: Mapping[str, Sequence[BusinessRecord]],
    excluded_chains: Sequence[str] = DEFAULT_EXCLUDED_CHAINS,
) -> List[BusinessRecord]:
    """Flatten per-category records into one universe, re-applying the chain filter."""
    merged = [record for records in by_category.values() for record in records]
    kept = [r for r in merged if not is_excluded_chain(r.name, excluded_chains)]

    if len(kept) != len(merged):
        logger.info("Excluded chain businesses", excluded=len(merged) - len(kept))
    logger.info("Records merged", records=len(kept), categories=len(by_category))
    return kept
