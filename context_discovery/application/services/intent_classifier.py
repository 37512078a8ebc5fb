"""LLM-backed intent classifier.

Asks the chat provider for a strict JSON description of the question
(intent type, scope, metrics, filters, time range), validates it with
pydantic and caches the result per (customer, question).

Recoverable failures (timeouts, provider errors, unparsable or invalid
JSON) never raise: the classifier returns a low-confidence default intent
so the pipeline can continue.
"""

import asyncio
import json
import logging
import re
import time
from typing import Any

from pydantic import ValidationError

from context_discovery.application.interfaces import ChatProvider, IntentClassifier
from context_discovery.application.schemas.intent import IntentClassificationPayload
from context_discovery.domain.entities import (
    ChatMessage,
    IntentResult,
    IntentScope,
    IntentType,
)
from context_discovery.infrastructure.cache.ttl_cache import MISSING, TTLCache

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_CACHE_TTL_SECONDS = 3600
MAX_PROMPT_CONCEPTS = 20

# ── Prompts ──────────────────────────────────────────────────────────

INTENT_SYSTEM_PROMPT = """\
You are an expert healthcare data analyst specializing in wound care analytics.
Your task: analyze a natural-language question and extract structured intent
for SQL generation.

## Extract
1. type: the primary analytical goal
2. scope: patient_cohort, individual_patient or aggregate
3. metrics: key measurements to calculate (be specific, e.g. "average_healing_rate")
4. filters: data constraints (wound type, status, location, ...)
5. timeRange: optional period, e.g. "last 6 months"

## Intent Types
- outcome_analysis: patient outcomes and results (default for most clinical questions)
- trend_analysis: changes over time
- cohort_comparison: explicit comparison between groups
- risk_assessment: identifying at-risk patients
- quality_metrics: clinical quality indicators
- operational_metrics: operational efficiency

## Filter Categories
- wound_classification: DFU (Diabetic Foot Ulcer), VLU (Venous Leg Ulcer), arterial, pressure ulcer, ...
- wound_status: active, healing, closed, chronic, acute
- infection_status: infected, uninfected, risk_of_infection
- body_location: lower leg, foot, heel, thigh, upper limb, ...
- patient_type: diabetic, vascular, elderly, immunocompromised
- clinic_unit: wound clinic, vascular, podiatry, ...

For each filter preserve the user's exact phrasing in "userTerm" and put the
semantic category in "concept". Leave "value" null unless the question states
the exact stored value.

## Response Format (strict JSON, no markdown)

{
  "type": "outcome_analysis",
  "scope": "patient_cohort",
  "metrics": ["average_healing_rate"],
  "filters": [{"concept": "wound_classification", "userTerm": "diabetic wounds", "value": null}],
  "timeRange": {"unit": "months", "value": 6},
  "confidence": 0.95,
  "reasoning": "Outcome metric for a specific cohort over a defined period"
}

timeRange is null when no period is mentioned. confidence is between 0.0 and 1.0.
Respond ONLY with valid JSON. Start with { and end with }.
"""


def build_user_prompt(question: str, ontology_concepts: list[tuple[str, str]] | None = None) -> str:
    """Build the user message, listing up to 20 ontology concepts for reference."""
    lines = [
        "Please classify the following question and extract its structured intent:",
        "",
        f'Question: "{question}"',
        "",
    ]
    if ontology_concepts:
        lines.append("Available clinical concepts for reference:")
        for idx, (name, concept_type) in enumerate(ontology_concepts[:MAX_PROMPT_CONCEPTS], start=1):
            lines.append(f"{idx}. {name} (Type: {concept_type})")
        lines.append("")
    lines.append(
        "IMPORTANT: Respond with ONLY valid JSON. Do not include markdown code blocks. "
        "Start with { and end with }."
    )
    return "\n".join(lines)


# ── Fallbacks ────────────────────────────────────────────────────────

def degraded_intent(reason: str) -> IntentResult:
    """Safe default returned when classification fails."""
    return IntentResult(
        type=IntentType.OUTCOME_ANALYSIS,
        scope=IntentScope.PATIENT_COHORT,
        metrics=["unclassified_metric"],
        filters=[],
        confidence=0.0,
        reasoning=f"Classification failed: {reason}. Please rephrase your question.",
    )


_HEURISTICS: list[tuple[re.Pattern[str], IntentType, IntentScope, str, float, str]] = [
    (re.compile(r"^how many"), IntentType.OUTCOME_ANALYSIS, IntentScope.AGGREGATE,
     "count", 0.85, "Detected 'how many' pattern → simple count query"),
    (re.compile(r"^count\s+"), IntentType.OUTCOME_ANALYSIS, IntentScope.AGGREGATE,
     "count", 0.85, "Detected count pattern"),
    (re.compile(r"average|avg"), IntentType.OUTCOME_ANALYSIS, IntentScope.PATIENT_COHORT,
     "average", 0.75, "Detected average/aggregation pattern"),
    (re.compile(r"trend|over time|change|getting|faster|slower"), IntentType.TREND_ANALYSIS,
     IntentScope.PATIENT_COHORT, "trend", 0.75, "Detected trend analysis pattern"),
    (re.compile(r"compare|vs\.?|versus|difference|between"), IntentType.COHORT_COMPARISON,
     IntentScope.PATIENT_COHORT, "comparison", 0.7, "Detected comparison pattern"),
    (re.compile(r"^(show|list|get|find|retrieve)"), IntentType.OUTCOME_ANALYSIS,
     IntentScope.PATIENT_COHORT, "list", 0.7, "Detected list/show pattern"),
]


def heuristic_intent(question: str) -> IntentResult:
    """Keyword-based classification used when the model answers with all nulls."""
    lower = question.lower().strip()
    for pattern, intent_type, scope, metric, confidence, reasoning in _HEURISTICS:
        if pattern.search(lower):
            return IntentResult(
                type=intent_type,
                scope=scope,
                metrics=[metric],
                confidence=confidence,
                reasoning=f"{reasoning} (heuristic fallback)",
            )
    return IntentResult(
        type=IntentType.OUTCOME_ANALYSIS,
        scope=IntentScope.PATIENT_COHORT,
        metrics=["data"],
        confidence=0.5,
        reasoning="Could not classify with LLM; using generic outcome analysis fallback",
    )


# ── Classifier ───────────────────────────────────────────────────────

class LLMIntentClassifier(IntentClassifier):
    """IntentClassifier backed by a ChatProvider."""

    def __init__(
        self,
        chat_provider: ChatProvider,
        *,
        model: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        cache: TTLCache[IntentResult] | None = None,
        ontology_concepts: list[tuple[str, str]] | None = None,
    ):
        self._chat_provider = chat_provider
        self._model = model
        self._timeout = timeout_seconds
        self._ontology_concepts = ontology_concepts or []
        self.cache: TTLCache[IntentResult] = (
            cache if cache is not None else TTLCache(DEFAULT_CACHE_TTL_SECONDS, name="intent")
        )

    async def classify(
        self,
        question: str,
        customer_id: str,
        *,
        model_id: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> IntentResult:
        if not question or not question.strip() or not customer_id:
            return degraded_intent("question and customer_id are required")
        if cancel_event is not None and cancel_event.is_set():
            return degraded_intent("operation aborted before starting")

        key = (customer_id, question)
        cached = self.cache.get(key)
        if cached is not MISSING:
            logger.debug("Intent cache hit for customer %s", customer_id)
            return cached

        model = model_id or self._model
        messages = [
            ChatMessage(role="system", content=INTENT_SYSTEM_PROMPT),
            ChatMessage(role="user", content=build_user_prompt(question, self._ontology_concepts)),
        ]

        start = time.monotonic()
        try:
            result = await asyncio.wait_for(
                self._chat_provider.complete(
                    messages=messages,
                    model=model,
                    temperature=0.3,
                    max_tokens=1000,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.error("Intent classification timed out after %.0fs", self._timeout)
            return degraded_intent(f"LLM provider timeout ({self._timeout:.0f} seconds)")
        except Exception as e:
            logger.error("Intent classification failed for customer %s: %s", customer_id, e)
            return degraded_intent(str(e))

        duration_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "Intent LLM call completed in %dms (model=%s, tokens=%d)",
            duration_ms,
            result.model or model,
            result.usage.total_tokens,
        )

        data = parse_json_object(result.content)
        if data is None:
            logger.warning("Failed to parse LLM intent response: %s", result.content[:200])
            return degraded_intent("could not parse LLM response as JSON")

        if _is_all_null(data):
            logger.warning("LLM returned all nulls for question %r; using heuristic fallback", question)
            intent = heuristic_intent(question)
        else:
            try:
                intent = IntentClassificationPayload.model_validate(data).to_intent_result()
            except ValidationError as e:
                logger.error("Invalid LLM intent response: %s", e)
                return degraded_intent(f"Invalid LLM response: {e.error_count()} validation error(s)")

        self.cache.set(key, intent)
        return intent


def parse_json_object(text: str) -> dict[str, Any] | None:
    """Extract a JSON object from a model reply.

    Strips markdown fences, then falls back to the outermost ``{...}`` span
    for replies wrapped in thinking tokens.
    """
    text = (text or "").strip()
    if text.startswith("```"):
        lines = text.split("\n")
        text = "\n".join(lines[1:-1] if len(lines) > 2 else lines[1:]).strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end <= start:
            return None
        try:
            data = json.loads(text[start : end + 1])
        except json.JSONDecodeError:
            return None
    return data if isinstance(data, dict) else None


def _is_all_null(data: dict[str, Any]) -> bool:
    return data.get("type") is None and not data.get("confidence")
