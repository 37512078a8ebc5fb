"""Domain-specific exceptions — framework-independent."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class DiscoveryValidationError(Exception):
    """Raised when a required request field is missing or blank."""

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or f"{field} is required")


class PipelineStepError(Exception):
    """Raised when a discovery step after classification fails.

    The original exception is chained as ``__cause__``; ``trail`` holds the
    step results recorded before the failure.
    """

    def __init__(self, step: str, cause: BaseException, trail: list[Any] | None = None):
        self.step = step
        self.cause = cause
        self.trail = list(trail or [])
        super().__init__(f"Discovery step '{step}' failed: {cause}")


class ParallelTaskCanceled(Exception):
    """A parallel task was canceled by the cancellation token."""

    def __init__(self, task_name: str, message: str = "canceled by signal"):
        self.task_name = task_name
        super().__init__(f"Task '{task_name}' {message}")


class ParallelTaskTimeout(Exception):
    """A parallel task did not finish before the shared deadline."""

    def __init__(self, task_name: str, timeout_ms: int):
        self.task_name = task_name
        self.timeout_ms = timeout_ms
        super().__init__(f"Task '{task_name}' timed out after {timeout_ms}ms")


class TaskFailureKind(str, Enum):
    """Discriminant for why a parallel task did not succeed."""

    FAILED = "failed"
    CANCELED = "canceled"
    TIMEOUT = "timeout"


@dataclass
class TaskFailure:
    """One entry of a ParallelExecutionError."""

    task_name: str
    kind: TaskFailureKind
    error: BaseException


class ParallelExecutionError(Exception):
    """Aggregate error raised once every parallel task settled or was canceled."""

    def __init__(self, failures: list[TaskFailure]):
        self.failures = failures
        details = ", ".join(
            f"{f.task_name} ({f.kind.value}): {f.error}" for f in failures
        )
        super().__init__(f"Parallel execution failed: {details}")

    @property
    def timed_out(self) -> bool:
        return any(f.kind is TaskFailureKind.TIMEOUT for f in self.failures)


class ChatProviderError(Exception):
    """Raised when a chat provider returns an error.

    Provider-agnostic — works for OpenRouter, Groq, OpenAI, etc.
    """

    def __init__(self, provider: str, status_code: int, message: str):
        self.provider = provider
        self.status_code = status_code
        self.message = message
        super().__init__(f"[{provider}] {status_code}: {message}")
