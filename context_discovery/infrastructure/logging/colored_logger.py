"""Colored pipeline logger — ANSI-colored console logging for the discovery pipeline.

Provides a PipelineLogger with color-coded output per discovery step,
making it easy to follow one discovery run in the terminal.

Color scheme:
    Blue    — Intent classification / filter mapping
    Magenta — Parallel bundle (semantic search + terminology)
    Cyan    — Join path planning
    Green   — Assembly / audit / completion
    Red     — Errors
    Gray    — Timing / stats
"""

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any


# ── ANSI Color Codes ─────────────────────────────────────────────────

class _Colors:
    """ANSI escape codes for terminal colors."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN = "\033[96m"
    WHITE = "\033[97m"
    GRAY = "\033[90m"


# ── Pipeline Stage Definitions ───────────────────────────────────────

class PipelineStage:
    """Discovery steps with their colors and icons."""

    INTENT = ("INTENT", _Colors.BLUE, "🧠")
    FILTER_MAPPING = ("FILTER_MAP", _Colors.BLUE, "🔍")
    PARALLEL = ("PARALLEL", _Colors.MAGENTA, "🚀")
    SEMANTIC_SEARCH = ("SEMANTIC", _Colors.MAGENTA, "🔎")
    TERMINOLOGY = ("TERMINOLOGY", _Colors.YELLOW, "📖")
    JOIN_PLANNING = ("JOIN_PLAN", _Colors.CYAN, "🔗")
    ASSEMBLY = ("ASSEMBLY", _Colors.GREEN, "📦")
    AUDIT = ("AUDIT", _Colors.GRAY, "💾")
    PIPELINE = ("PIPELINE", _Colors.WHITE, "⚙️")
    ERROR = ("ERROR", _Colors.RED, "❌")
    COMPLETE = ("COMPLETE", _Colors.GREEN, "✅")


@dataclass
class StepTimer:
    """Elapsed time of a timed_step block, readable once the block exits."""

    started_at: float
    elapsed_ms: int = 0


# ── PipelineLogger ───────────────────────────────────────────────────

class PipelineLogger:
    """Color-coded logger for the discovery pipeline.

    Usage:
        log = PipelineLogger("ContextDiscoveryService")
        log.step_start(PipelineStage.INTENT, "Classifying question")
        log.detail("model=anthropic/claude-sonnet-4.5")
        log.step_complete(PipelineStage.INTENT, "outcome_analysis (0.92)")
    """

    def __init__(self, component_name: str):
        self._logger = logging.getLogger(component_name)
        self._component = component_name

    def step_start(self, stage: tuple[str, str, str], message: str, **kwargs: Any) -> None:
        """Log the start of a pipeline step with its stage color."""
        label, color, icon = stage
        formatted = (
            f"{color}{_Colors.BOLD}{icon} [{label}]{_Colors.RESET} "
            f"{color}{message}{_Colors.RESET}"
        )
        formatted += self._format_kwargs(kwargs)
        self._logger.info(formatted)

    def step_complete(self, stage: tuple[str, str, str], message: str, **kwargs: Any) -> None:
        """Log the successful completion of a pipeline step."""
        label, color, icon = stage
        formatted = (
            f"{color}{icon} [{label}]{_Colors.RESET} "
            f"{_Colors.GREEN}✓ {message}{_Colors.RESET}"
        )
        formatted += self._format_kwargs(kwargs)
        self._logger.info(formatted)

    def step_warning(self, stage: tuple[str, str, str], message: str, **kwargs: Any) -> None:
        """Log a non-fatal problem in yellow."""
        label, _, icon = stage
        formatted = (
            f"{_Colors.YELLOW}{icon} [{label}] ⚠ {message}{_Colors.RESET}"
        )
        formatted += self._format_kwargs(kwargs)
        self._logger.warning(formatted)

    def step_error(self, stage: tuple[str, str, str], message: str, error: BaseException | None = None) -> None:
        """Log a pipeline step error in red."""
        label, _, _ = stage
        formatted = (
            f"{_Colors.RED}{_Colors.BOLD}❌ [{label}]{_Colors.RESET} "
            f"{_Colors.RED}{message}{_Colors.RESET}"
        )
        if error:
            formatted += f" {_Colors.DIM}→ {type(error).__name__}: {error}{_Colors.RESET}"
        self._logger.error(formatted)

    def detail(self, message: str, **kwargs: Any) -> None:
        """Log additional detail (gray/dimmed)."""
        formatted = f"   {_Colors.GRAY}├─ {message}{_Colors.RESET}"
        if kwargs:
            details = " | ".join(f"{k}={v}" for k, v in kwargs.items())
            formatted += f" {_Colors.DIM}({details}){_Colors.RESET}"
        self._logger.info(formatted)

    def separator(self, title: str = "") -> None:
        """Log a visual separator line."""
        if title:
            self._logger.info(
                f"{_Colors.GRAY}{'─' * 10} {title} {'─' * max(0, 50 - len(title))}{_Colors.RESET}"
            )
        else:
            self._logger.info(f"{_Colors.GRAY}{'─' * 60}{_Colors.RESET}")

    def stats(self, **kwargs: Any) -> None:
        """Log statistics / timing information."""
        parts = [f"{k}: {v}" for k, v in kwargs.items()]
        formatted = f"   {_Colors.GRAY}📈 {' | '.join(parts)}{_Colors.RESET}"
        self._logger.info(formatted)

    @contextmanager
    def timed_step(
        self, stage: tuple[str, str, str], message: str, **kwargs: Any
    ) -> Iterator[StepTimer]:
        """Context manager that logs start/end and exposes the elapsed time.

        Usage:
            with log.timed_step(PipelineStage.JOIN_PLANNING, "Planning joins") as timer:
                paths = await planner.plan_join_paths(...)
            duration = timer.elapsed_ms
        """
        self.step_start(stage, message, **kwargs)
        timer = StepTimer(started_at=time.perf_counter())
        try:
            yield timer
        except BaseException as e:
            timer.elapsed_ms = _elapsed_ms(timer.started_at)
            self.step_error(stage, f"{message} — failed after {timer.elapsed_ms}ms", error=e)
            raise
        else:
            timer.elapsed_ms = _elapsed_ms(timer.started_at)
            self.step_complete(stage, f"{message} — {timer.elapsed_ms}ms", **kwargs)

    @staticmethod
    def _format_kwargs(kwargs: dict[str, Any]) -> str:
        if not kwargs:
            return ""
        details = " | ".join(f"{k}={v}" for k, v in kwargs.items())
        return f" {_Colors.GRAY}({details}){_Colors.RESET}"


def _elapsed_ms(started_at: float) -> int:
    return int((time.perf_counter() - started_at) * 1000)
