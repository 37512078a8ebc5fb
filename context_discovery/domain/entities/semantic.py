"""Domain entities for semantic index search results and their form aggregation."""

from dataclasses import dataclass, field


@dataclass
class SemanticSearchResult:
    """A form field or non-form column matching a searched concept."""

    source: str  # "form" | "non_form"
    id: str
    field_name: str
    semantic_concept: str
    data_type: str
    confidence: float
    form_name: str | None = None  # form results only
    table_name: str | None = None  # non-form results only
    similarity_score: float | None = None


@dataclass
class FieldInContext:
    """A field selected for the context bundle."""

    field_name: str
    field_id: str
    semantic_concept: str
    data_type: str
    confidence: float


@dataclass
class FormInContext:
    """A form and the fields it contributes to the context bundle."""

    form_name: str
    form_id: str = ""
    reason: str = ""
    confidence: float = 0.0
    fields: list[FieldInContext] = field(default_factory=list)
