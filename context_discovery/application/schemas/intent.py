"""Pydantic schemas for validating the LLM's intent classification JSON."""

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from context_discovery.domain.entities import (
    IntentFilter,
    IntentResult,
    IntentScope,
    IntentType,
    TimeRange,
)


class TimeRangePayload(BaseModel):
    """Relative time window as returned by the model."""

    unit: Literal["days", "weeks", "months", "years"]
    value: int = Field(..., ge=0)


class IntentFilterPayload(BaseModel):
    """One extracted filter; the model may name the phrase ``userTerm`` or ``userPhrase``."""

    model_config = ConfigDict(extra="ignore")

    concept: str = ""
    user_term: str = Field(
        default="",
        validation_alias=AliasChoices("userTerm", "userPhrase", "user_term", "user_phrase"),
    )
    field: str | None = None
    operator: str | None = None
    value: str | None = None

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, v: Any) -> str | None:
        if v is None:
            return None
        text = str(v).strip()
        return text or None


class IntentClassificationPayload(BaseModel):
    """Strict shape of a classification response."""

    model_config = ConfigDict(extra="ignore")

    type: IntentType
    scope: IntentScope
    metrics: list[str] = Field(..., min_length=1)
    filters: list[IntentFilterPayload] = Field(default_factory=list)
    time_range: TimeRangePayload | None = Field(
        default=None,
        validation_alias=AliasChoices("timeRange", "time_range"),
    )
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasoning: str = Field(..., min_length=1)

    def to_intent_result(self) -> IntentResult:
        return IntentResult(
            type=self.type,
            scope=self.scope,
            metrics=list(self.metrics),
            filters=[
                IntentFilter(
                    concept=f.concept,
                    user_phrase=f.user_term,
                    field=f.field,
                    operator=f.operator,
                    value=f.value,
                )
                for f in self.filters
            ],
            time_range=(
                TimeRange(unit=self.time_range.unit, value=self.time_range.value)
                if self.time_range
                else None
            ),
            confidence=self.confidence,
            reasoning=self.reasoning,
        )
