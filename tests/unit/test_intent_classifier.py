"""Unit tests for the LLMIntentClassifier: JSON parsing, validation and fallbacks."""

import asyncio
import json

import pytest

from context_discovery.application.interfaces import ChatProvider
from context_discovery.application.services.intent_classifier import (
    LLMIntentClassifier,
    build_user_prompt,
    heuristic_intent,
    parse_json_object,
)
from context_discovery.domain.entities import (
    ChatCompletionResult,
    ChatMessage,
    IntentScope,
    IntentType,
    TokenUsage,
)
from context_discovery.domain.exceptions import ChatProviderError


# ── Fakes ────────────────────────────────────────────────────────────


class FakeChatProvider(ChatProvider):
    """Fake chat provider returning a canned reply, an error or a slow answer."""

    def __init__(
        self,
        response_json: dict | None = None,
        raw_response: str | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ):
        self._response_json = response_json
        self._raw_response = raw_response
        self._error = error
        self._delay = delay
        self.calls: list[dict] = []

    @property
    def provider_name(self) -> str:
        return "fake"

    async def complete(self, messages, model, *, temperature=None, max_tokens=None):
        self.calls.append(
            {"messages": messages, "model": model, "temperature": temperature, "max_tokens": max_tokens}
        )
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error:
            raise self._error
        content = self._raw_response if self._raw_response is not None else json.dumps(self._response_json)
        return ChatCompletionResult(
            model=model,
            content=content,
            finish_reason="stop",
            usage=TokenUsage(prompt_tokens=100, completion_tokens=50, total_tokens=150),
            provider="fake",
        )


VALID_RESPONSE = {
    "type": "trend_analysis",
    "scope": "patient_cohort",
    "metrics": ["average_healing_rate"],
    "filters": [
        {"concept": "wound_classification", "userTerm": "diabetic wounds", "value": None},
        {"concept": "wound_status", "userPhrase": "healed", "field": "Status", "value": 1},
    ],
    "timeRange": {"unit": "months", "value": 6},
    "confidence": 0.92,
    "reasoning": "Healing trend for diabetic wounds over six months",
}


def _classifier(provider: FakeChatProvider, **kwargs) -> LLMIntentClassifier:
    return LLMIntentClassifier(provider, model="test/model", **kwargs)


# ── Parsing helpers ──────────────────────────────────────────────────


class TestParseJsonObject:

    def test_plain_json(self):
        assert parse_json_object('{"a": 1}') == {"a": 1}

    def test_markdown_fence(self):
        assert parse_json_object('```json\n{"a": 1}\n```') == {"a": 1}

    def test_surrounding_text(self):
        assert parse_json_object('<think>hmm</think> Here: {"a": {"b": 2}} done') == {"a": {"b": 2}}

    @pytest.mark.parametrize("text", ["", "no json here", "[1, 2]", "{broken"])
    def test_unparsable(self, text):
        assert parse_json_object(text) is None


def test_user_prompt_lists_at_most_twenty_concepts():
    concepts = [(f"concept_{i}", "clinical") for i in range(30)]
    prompt = build_user_prompt("How many wounds?", concepts)

    assert 'Question: "How many wounds?"' in prompt
    assert "20. concept_19 (Type: clinical)" in prompt
    assert "concept_20" not in prompt


@pytest.mark.parametrize(
    "question, expected_type, expected_metric",
    [
        ("How many patients have DFU?", IntentType.OUTCOME_ANALYSIS, "count"),
        ("Average area by clinic", IntentType.OUTCOME_ANALYSIS, "average"),
        ("Are wounds healing faster this year?", IntentType.TREND_ANALYSIS, "trend"),
        ("Compare VLU versus DFU", IntentType.COHORT_COMPARISON, "comparison"),
        ("List wound assessments", IntentType.OUTCOME_ANALYSIS, "list"),
        ("Wound data please", IntentType.OUTCOME_ANALYSIS, "data"),
    ],
)
def test_heuristic_intent(question, expected_type, expected_metric):
    intent = heuristic_intent(question)
    assert intent.type is expected_type
    assert intent.metrics == [expected_metric]
    assert 0.0 < intent.confidence < 1.0


# ── classify ─────────────────────────────────────────────────────────


class TestClassify:

    @pytest.mark.asyncio
    async def test_valid_response_is_mapped(self):
        provider = FakeChatProvider(VALID_RESPONSE)
        intent = await _classifier(provider).classify("Healing trend for diabetic wounds?", "cust-1")

        assert intent.type is IntentType.TREND_ANALYSIS
        assert intent.scope is IntentScope.PATIENT_COHORT
        assert intent.metrics == ["average_healing_rate"]
        assert intent.confidence == pytest.approx(0.92)
        assert intent.time_range.unit == "months"
        assert intent.time_range.value == 6
        assert [f.user_phrase for f in intent.filters] == ["diabetic wounds", "healed"]
        assert intent.filters[0].value is None
        assert intent.filters[1].value == "1"
        assert intent.filters[1].field == "Status"

    @pytest.mark.asyncio
    async def test_request_shape(self):
        provider = FakeChatProvider(VALID_RESPONSE)
        await _classifier(provider).classify("q?", "cust-1", model_id="other/model")

        call = provider.calls[0]
        assert call["model"] == "other/model"
        assert call["temperature"] == 0.3
        assert call["max_tokens"] == 1000
        assert [m.role for m in call["messages"]] == ["system", "user"]
        assert isinstance(call["messages"][0], ChatMessage)

    @pytest.mark.asyncio
    async def test_fenced_response_is_accepted(self):
        raw = "```json\n" + json.dumps(VALID_RESPONSE) + "\n```"
        intent = await _classifier(FakeChatProvider(raw_response=raw)).classify("q?", "cust-1")
        assert intent.type is IntentType.TREND_ANALYSIS

    @pytest.mark.asyncio
    async def test_all_null_response_uses_heuristic(self):
        provider = FakeChatProvider({"type": None, "scope": None, "metrics": None, "confidence": None})
        intent = await _classifier(provider).classify("How many open wounds?", "cust-1")

        assert intent.scope is IntentScope.AGGREGATE
        assert intent.metrics == ["count"]
        assert "heuristic" in intent.reasoning

    @pytest.mark.asyncio
    async def test_schema_violation_degrades(self):
        bad = dict(VALID_RESPONSE, type="sql_generation")
        intent = await _classifier(FakeChatProvider(bad)).classify("q?", "cust-1")

        assert intent.confidence == 0.0
        assert intent.type is IntentType.OUTCOME_ANALYSIS
        assert "Classification failed" in intent.reasoning

    @pytest.mark.asyncio
    async def test_empty_metrics_degrade(self):
        bad = dict(VALID_RESPONSE, metrics=[])
        intent = await _classifier(FakeChatProvider(bad)).classify("q?", "cust-1")
        assert intent.confidence == 0.0

    @pytest.mark.asyncio
    async def test_unparsable_response_degrades(self):
        intent = await _classifier(FakeChatProvider(raw_response="I cannot help")).classify("q?", "cust-1")
        assert intent.confidence == 0.0
        assert intent.metrics == ["unclassified_metric"]

    @pytest.mark.asyncio
    async def test_provider_error_degrades(self):
        provider = FakeChatProvider(error=ChatProviderError("fake", 502, "Bad gateway"))
        intent = await _classifier(provider).classify("q?", "cust-1")

        assert intent.confidence == 0.0
        assert "Bad gateway" in intent.reasoning

    @pytest.mark.asyncio
    async def test_timeout_degrades(self):
        provider = FakeChatProvider(VALID_RESPONSE, delay=1.0)
        intent = await _classifier(provider, timeout_seconds=0.05).classify("q?", "cust-1")

        assert intent.confidence == 0.0
        assert "timeout" in intent.reasoning

    @pytest.mark.asyncio
    async def test_cancelled_before_start_skips_provider(self):
        provider = FakeChatProvider(VALID_RESPONSE)
        cancel = asyncio.Event()
        cancel.set()

        intent = await _classifier(provider).classify("q?", "cust-1", cancel_event=cancel)

        assert intent.confidence == 0.0
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_blank_question_degrades(self):
        provider = FakeChatProvider(VALID_RESPONSE)
        intent = await _classifier(provider).classify("   ", "cust-1")
        assert intent.confidence == 0.0
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_successful_result_is_cached(self):
        provider = FakeChatProvider(VALID_RESPONSE)
        classifier = _classifier(provider)

        first = await classifier.classify("q?", "cust-1")
        second = await classifier.classify("q?", "cust-1")
        await classifier.classify("q?", "cust-2")

        assert first is second
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_degraded_result_is_not_cached(self):
        provider = FakeChatProvider(raw_response="nope")
        classifier = _classifier(provider)

        await classifier.classify("q?", "cust-1")
        await classifier.classify("q?", "cust-1")

        assert len(provider.calls) == 2
        assert len(classifier.cache) == 0
