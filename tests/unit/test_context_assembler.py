"""Unit tests for the ContextAssembler and the overall confidence formula."""

import math

import pytest

from context_discovery.application.services.context_assembler import (
    ContextAssembler,
    overall_confidence,
)
from context_discovery.domain.entities import (
    FieldInContext,
    FormInContext,
    IntentResult,
    IntentScope,
    IntentType,
    JoinPath,
    TerminologyMapping,
)
from context_discovery.domain.exceptions import DiscoveryValidationError


def _intent(confidence: float) -> IntentResult:
    return IntentResult(
        type=IntentType.OUTCOME_ANALYSIS,
        scope=IntentScope.PATIENT_COHORT,
        metrics=["average_healing_rate"],
        confidence=confidence,
        reasoning="test",
    )


def _field(confidence: float) -> FieldInContext:
    return FieldInContext(
        field_name="Area",
        field_id="f-1",
        semantic_concept="wound_area",
        data_type="decimal",
        confidence=confidence,
    )


def _mapping(confidence: float) -> TerminologyMapping:
    return TerminologyMapping(
        user_term="dfu",
        field_name="Wound Type",
        field_value="Diabetic Foot Ulcer",
        semantic_concept="wound_classification",
        source="form_option",
        confidence=confidence,
    )


@pytest.fixture
def assembler() -> ContextAssembler:
    return ContextAssembler()


class TestOverallConfidence:

    def test_empty_collections_use_intent_only(self):
        assert overall_confidence(_intent(0.5), [], [], []) == pytest.approx(0.15)

    def test_weighted_sum(self):
        forms = [FormInContext(form_name="Wound Assessment", confidence=0.8, fields=[_field(0.8), _field(0.6)])]
        terminology = [_mapping(1.0), _mapping(0.6)]
        joins = [JoinPath(path=["A", "B"], tables=["A", "B"], confidence=0.5)]

        value = overall_confidence(_intent(1.0), forms, terminology, joins)

        assert value == pytest.approx(0.3 + 0.7 * 0.3 + 0.8 * 0.25 + 0.5 * 0.15)

    def test_form_without_scored_fields_uses_form_confidence(self):
        forms = [FormInContext(form_name="Demographics", confidence=0.6)]
        assert overall_confidence(_intent(0.0), forms, [], []) == pytest.approx(0.18)

    @pytest.mark.parametrize("bad", [1.8, -0.4, math.nan, math.inf])
    def test_result_stays_in_unit_interval(self, bad):
        forms = [FormInContext(form_name="F", confidence=bad, fields=[_field(bad)])]
        value = overall_confidence(_intent(bad), forms, [_mapping(bad)], [])
        assert 0.0 <= value <= 1.0


class TestAssemble:

    def test_builds_bundle_with_metadata(self, assembler):
        bundle = assembler.assemble("cust-1", "  How many DFU wounds?  ", _intent(0.5))

        assert bundle.customer_id == "cust-1"
        assert bundle.question == "How many DFU wounds?"
        assert bundle.forms == []
        assert bundle.overall_confidence == pytest.approx(0.15)
        assert bundle.metadata.version == "1.0"
        assert bundle.metadata.duration_ms == 0
        assert bundle.metadata.discovery_run_id
        assert "T" in bundle.metadata.timestamp

    def test_metadata_overrides_are_deterministic(self, assembler):
        bundle = assembler.assemble(
            "cust-1",
            "q",
            _intent(0.5),
            discovery_run_id="ignored",
            metadata_overrides={
                "discovery_run_id": "run-1",
                "timestamp": "2024-01-01T00:00:00+00:00",
                "version": "2.0",
                "duration_ms": 42,
            },
        )

        assert bundle.metadata.discovery_run_id == "run-1"
        assert bundle.metadata.timestamp == "2024-01-01T00:00:00+00:00"
        assert bundle.metadata.version == "2.0"
        assert bundle.metadata.duration_ms == 42

    def test_explicit_run_id_and_default_version(self):
        bundle = ContextAssembler(default_version="3.1").assemble(
            "cust-1", "q", _intent(0.5), discovery_run_id="run-7", duration_ms=12
        )
        assert bundle.metadata.discovery_run_id == "run-7"
        assert bundle.metadata.version == "3.1"
        assert bundle.metadata.duration_ms == 12

    @pytest.mark.parametrize("customer_id, question", [("", "q"), ("   ", "q"), ("c", ""), ("c", "  ")])
    def test_blank_inputs_raise(self, assembler, customer_id, question):
        with pytest.raises(DiscoveryValidationError):
            assembler.assemble(customer_id, question, _intent(0.5))
