"""Domain entities for multi-source filter state reconciliation."""

from dataclasses import dataclass, field as dataclass_field
from enum import Enum
from typing import Any


class FilterStateSourceType(str, Enum):
    """Extraction pipeline that produced a filter signal."""

    TEMPLATE_PARAM = "template_param"
    SEMANTIC_MAPPING = "semantic_mapping"
    PLACEHOLDER_EXTRACTION = "placeholder_extraction"
    RESIDUAL_EXTRACTION = "residual_extraction"


class ConflictResolution(str, Enum):
    """How a value conflict between sources is settled.

    Only HIGHEST_CONFIDENCE is non-blocking.
    """

    HIGHEST_CONFIDENCE = "highest_confidence"
    REQUIRES_CLARIFICATION = "requires_clarification"
    AI_JUDGMENT = "ai_judgment"


@dataclass
class FilterStateSource:
    """One signal about one filter."""

    source: FilterStateSourceType
    value: Any
    confidence: float
    original_text: str = ""
    field: str | None = None
    operator: str | None = None
    warnings: list[str] = dataclass_field(default_factory=list)
    error: str | None = None


@dataclass
class FilterStateConflict:
    """Distinct values reported by confident sources for the same filter."""

    sources: list[FilterStateSource]
    resolution: ConflictResolution
    resolved_value: Any = None


@dataclass
class MergedFilterState:
    """Reconciled view of every source describing the same filter."""

    original_text: str
    normalized_text: str
    value: Any
    resolved: bool
    confidence: float
    field: str | None = None
    operator: str | None = None
    resolved_via: list[FilterStateSourceType] = dataclass_field(default_factory=list)
    all_sources: list[FilterStateSource] = dataclass_field(default_factory=list)
    warnings: list[str] = dataclass_field(default_factory=list)
    conflicts: list[FilterStateConflict] = dataclass_field(default_factory=list)


@dataclass
class ResidualFilter:
    """A filter left over after template matching that may need clarification."""

    original_text: str
    field: str | None = None
    operator: str | None = None
    value: Any = None
