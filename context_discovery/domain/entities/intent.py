"""Domain entities for intent classification: the structured reading of a question."""

from dataclasses import dataclass, field as dataclass_field
from enum import Enum


class IntentType(str, Enum):
    """Analytical goal of a question."""

    OUTCOME_ANALYSIS = "outcome_analysis"
    TREND_ANALYSIS = "trend_analysis"
    COHORT_COMPARISON = "cohort_comparison"
    RISK_ASSESSMENT = "risk_assessment"
    QUALITY_METRICS = "quality_metrics"
    OPERATIONAL_METRICS = "operational_metrics"


class IntentScope(str, Enum):
    """Population the question is about."""

    PATIENT_COHORT = "patient_cohort"
    INDIVIDUAL_PATIENT = "individual_patient"
    AGGREGATE = "aggregate"


@dataclass
class TimeRange:
    """Relative time window, e.g. "last 6 months"."""

    unit: str  # "days" | "weeks" | "months" | "years"
    value: int


@dataclass
class IntentFilter:
    """A data constraint extracted from the question.

    ``value`` is ``None`` until the filter has been resolved against real
    form option values by the terminology mapper.
    """

    concept: str
    user_phrase: str
    field: str | None = None
    operator: str | None = None
    value: str | None = None
    # Populated by TerminologyMapper.map_filters
    mapping_confidence: float | None = None
    overridden: bool = False
    mapping_error: str | None = None


@dataclass
class IntentResult:
    """Structured intent produced once per request by the classifier."""

    type: IntentType
    scope: IntentScope
    metrics: list[str] = dataclass_field(default_factory=list)
    filters: list[IntentFilter] = dataclass_field(default_factory=list)
    time_range: TimeRange | None = None
    confidence: float = 0.0
    reasoning: str = ""
