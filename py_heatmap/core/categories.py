"""
Category model.

A CategoryRegistry is an immutable value handed to whoever needs it; there
is no module-level registry to mutate. The scorer itself never looks at
categories beyond bucketing records by id.
"""

import re
from typing import Dict, Iterator, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class TagRule(BaseModel):
    """All ``conditions`` must hold: tag present and matching the regex (case-insensitive)."""

    model_config = ConfigDict(frozen=True)

    conditions: Dict[str, str]

    def matches(self, tags: Mapping[str, str]) -> bool:
        for key, pattern in self.conditions.items():
            value = tags.get(key)
            if value is None or not re.search(pattern, str(value), re.IGNORECASE):
                return False
        return True


class CategoryDefinition(BaseModel):
    """A category id with display metadata and tag-matching rules."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    icon: str = "📍"
    color: str = "#666666"
    include: Tuple[TagRule, ...] = Field(
        default=(), description="Any matching rule admits an element"
    )
    exclude: Tuple[TagRule, ...] = Field(
        default=(), description="Any matching rule rejects an element"
    )
    exclude_names: Tuple[str, ...] = Field(
        default=(), description="Name substrings that reject an element"
    )

    def matches(self, tags: Mapping[str, str]) -> bool:
        if not any(rule.matches(tags) for rule in self.include):
            return False
        if any(rule.matches(tags) for rule in self.exclude):
            return False
        name = (tags.get("name") or "").lower()
        return not any(word in name for word in self.exclude_names)


class CategoryRegistry(BaseModel):
    """Immutable, ordered set of category definitions."""

    model_config = ConfigDict(frozen=True)

    categories: Tuple[CategoryDefinition, ...] = ()

    def get(self, category_id: str) -> Optional[CategoryDefinition]:
        for category in self.categories:
            if category.id == category_id:
                return category
        return None

    def ids(self) -> Tuple[str, ...]:
        return tuple(c.id for c in self.categories)

    def __contains__(self, category_id: object) -> bool:
        return self.get(category_id) is not None

    def __iter__(self) -> Iterator[CategoryDefinition]:
        return iter(self.categories)

    def __len__(self) -> int:
        return len(self.categories)

