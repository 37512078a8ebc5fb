"""Domain entities for terminology mapping: user phrases resolved to stored values."""

import math
from dataclasses import dataclass

DEFAULT_OPTION_CONFIDENCE = 0.7
OPTION_LIMIT = 50


@dataclass
class FormOptionCandidate:
    """One form option definition that may match a user phrase."""

    option_value: str
    field_name: str
    semantic_concept: str
    confidence: float
    form_name: str | None = None
    option_code: str | None = None
    source: str = "form_option"


@dataclass
class TerminologyMapping:
    """The canonical value chosen for one user phrase."""

    user_term: str
    field_name: str
    field_value: str
    semantic_concept: str
    source: str  # "form_option" | "non_form_value"
    confidence: float
    form_name: str | None = None


def coerce_confidence(value: float | int | str | None, default: float = DEFAULT_OPTION_CONFIDENCE) -> float:
    """Parse a stored confidence, clamping to [0, 1] and falling back to ``default``."""
    if isinstance(value, bool):
        return default
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return default
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return default
    return max(0.0, min(1.0, float(value)))


def combine_concept(base: str | None, category: str | None) -> str:
    """Join a field concept with an option category as ``base:category``."""
    base = (base or "").strip()
    category = (category or "").strip()
    if base and category:
        return f"{base}:{category}"
    return base or category or "unknown"
