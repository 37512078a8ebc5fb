"""Context assembler: combines step outputs into a scored ContextBundle.

Pure: no I/O, no shared state. The overall confidence weighs intent (0.3),
forms (0.3), terminology (0.25) and join paths (0.15); every component and
the result are clamped to [0, 1].
"""

import math
import uuid
from datetime import datetime, timezone
from typing import Any

from context_discovery.domain.entities import (
    ContextBundle,
    ContextBundleMetadata,
    FormInContext,
    IntentResult,
    JoinPath,
    TerminologyMapping,
)
from context_discovery.domain.exceptions import DiscoveryValidationError

DEFAULT_VERSION = "1.0"

INTENT_WEIGHT = 0.3
FORMS_WEIGHT = 0.3
TERMINOLOGY_WEIGHT = 0.25
JOIN_WEIGHT = 0.15


class ContextAssembler:
    """Builds the final ContextBundle for one discovery run."""

    def __init__(self, default_version: str = DEFAULT_VERSION):
        self._default_version = default_version

    def assemble(
        self,
        customer_id: str,
        question: str,
        intent: IntentResult,
        *,
        forms: list[FormInContext] | None = None,
        terminology: list[TerminologyMapping] | None = None,
        join_paths: list[JoinPath] | None = None,
        discovery_run_id: str | None = None,
        duration_ms: int | None = None,
        version: str | None = None,
        metadata_overrides: dict[str, Any] | None = None,
    ) -> ContextBundle:
        """Assemble the bundle and compute its overall confidence.

        Raises:
            DiscoveryValidationError: If ``customer_id`` or ``question`` is blank.
        """
        if not customer_id or not customer_id.strip():
            raise DiscoveryValidationError("customer_id")
        if not question or not question.strip():
            raise DiscoveryValidationError("question")

        forms = list(forms or [])
        terminology = list(terminology or [])
        join_paths = list(join_paths or [])

        return ContextBundle(
            customer_id=customer_id,
            question=question.strip(),
            intent=intent,
            forms=forms,
            terminology=terminology,
            join_paths=join_paths,
            overall_confidence=overall_confidence(intent, forms, terminology, join_paths),
            metadata=self._build_metadata(
                metadata_overrides or {}, discovery_run_id, duration_ms, version
            ),
        )

    def _build_metadata(
        self,
        overrides: dict[str, Any],
        discovery_run_id: str | None,
        duration_ms: int | None,
        version: str | None,
    ) -> ContextBundleMetadata:
        duration = duration_ms if isinstance(duration_ms, int) and duration_ms >= 0 else 0
        return ContextBundleMetadata(
            discovery_run_id=overrides.get("discovery_run_id")
            or discovery_run_id
            or str(uuid.uuid4()),
            timestamp=overrides.get("timestamp") or datetime.now(timezone.utc).isoformat(),
            duration_ms=overrides.get("duration_ms", duration),
            version=overrides.get("version") or version or self._default_version,
        )


def overall_confidence(
    intent: IntentResult,
    forms: list[FormInContext],
    terminology: list[TerminologyMapping],
    join_paths: list[JoinPath],
) -> float:
    intent_score = _clamp(intent.confidence if intent else 0.0)
    forms_score = _average(_form_confidences(forms))
    terminology_score = _average([_clamp(t.confidence) for t in terminology])
    join_score = _average([_clamp(p.confidence) for p in join_paths])
    return _clamp(
        intent_score * INTENT_WEIGHT
        + forms_score * FORMS_WEIGHT
        + terminology_score * TERMINOLOGY_WEIGHT
        + join_score * JOIN_WEIGHT
    )


def _form_confidences(forms: list[FormInContext]) -> list[float]:
    """Per-field confidences, or the form's own confidence when no field is scored."""
    values: list[float] = []
    for form in forms:
        scored = [
            _clamp(f.confidence if f.confidence is not None else form.confidence)
            for f in form.fields
        ]
        scored = [v for v in scored if v > 0]
        if scored:
            values.extend(scored)
        elif form.confidence is not None:
            values.append(_clamp(form.confidence))
    return values


def _average(values: list[float]) -> float:
    if not values:
        return 0.0
    return _clamp(sum(values) / len(values))


def _clamp(value: float | None) -> float:
    if value is None or not isinstance(value, (int, float)) or not math.isfinite(value):
        return 0.0
    return max(0.0, min(1.0, float(value)))
