"""Unit tests for the PipelineLogger timed_step helper."""

import logging

import pytest

from context_discovery.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

LOGGER_NAME = "tests.pipeline"


@pytest.fixture
def plog(caplog) -> PipelineLogger:
    caplog.set_level(logging.DEBUG, logger=LOGGER_NAME)
    return PipelineLogger(LOGGER_NAME)


def test_timed_step_logs_details_on_start_and_completion(plog, caplog):
    with plog.timed_step(PipelineStage.INTENT, "Classifying intent", model="test/model") as timer:
        pass

    start, complete = [r.getMessage() for r in caplog.records if r.name == LOGGER_NAME]
    assert "Classifying intent" in start
    assert "model=test/model" in start
    assert "✓ Classifying intent" in complete
    assert "model=test/model" in complete
    assert timer.elapsed_ms >= 0


def test_timed_step_logs_error_and_reraises(plog, caplog):
    with pytest.raises(RuntimeError):
        with plog.timed_step(PipelineStage.JOIN_PLANNING, "Planning joins"):
            raise RuntimeError("graph unavailable")

    errors = [r for r in caplog.records if r.name == LOGGER_NAME and r.levelno == logging.ERROR]
    assert len(errors) == 1
    assert "failed after" in errors[0].getMessage()
    assert "graph unavailable" in errors[0].getMessage()
