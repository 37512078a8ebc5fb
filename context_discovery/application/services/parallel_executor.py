"""Parallel executor: runs independent discovery steps concurrently.

All tasks share one deadline and one cancellation event. Each task's
outcome is recorded independently, so a failure in one task never hides
the result of another.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from context_discovery.domain.exceptions import (
    ParallelExecutionError,
    ParallelTaskCanceled,
    ParallelTaskTimeout,
    TaskFailure,
    TaskFailureKind,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
T1 = TypeVar("T1")
T2 = TypeVar("T2")
T3 = TypeVar("T3")

DEFAULT_TIMEOUT_MS = 30000


@dataclass
class ParallelTask(Generic[T]):
    """A named zero-argument coroutine function."""

    name: str
    fn: Callable[[], Awaitable[T]]


@dataclass
class ParallelTaskResult(Generic[T]):
    """Outcome of one task."""

    task_name: str
    success: bool
    value: T | None = None
    error: BaseException | None = None
    duration_ms: int = 0
    canceled_by_signal: bool = False


@dataclass
class ParallelExecutionResult(Generic[T]):
    """Aggregated outcome of a parallel run, results in input order."""

    results: list[ParallelTaskResult[T]] = field(default_factory=list)
    total_duration_ms: int = 0

    @property
    def successful(self) -> list[ParallelTaskResult[T]]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> list[ParallelTaskResult[T]]:
        return [r for r in self.results if not r.success and not r.canceled_by_signal]

    @property
    def canceled(self) -> list[ParallelTaskResult[T]]:
        return [r for r in self.results if r.canceled_by_signal]

    @property
    def all_succeeded(self) -> bool:
        return not self.failed and not self.canceled

    @property
    def any_failed(self) -> bool:
        return bool(self.failed)

    @property
    def was_canceled(self) -> bool:
        return bool(self.canceled)


class ParallelExecutor:
    """Executes independent async tasks with a shared deadline and cancel event."""

    async def execute_in_parallel(
        self,
        tasks: list[ParallelTask[Any]],
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        cancel_event: asyncio.Event | None = None,
        throw_on_error: bool = False,
        emit_telemetry: bool = True,
    ) -> ParallelExecutionResult[Any]:
        """Run ``tasks`` concurrently and collect one result per task.

        The wait races the task set, the deadline and ``cancel_event``.
        Tasks still running when the deadline passes or the event fires are
        recorded as canceled and their asyncio tasks are cancelled.

        Raises:
            ParallelExecutionError: When ``throw_on_error`` is set and any
                task failed or was canceled. Raised only after every task
                settled or was canceled.
        """
        if not tasks:
            return ParallelExecutionResult()

        loop = asyncio.get_running_loop()
        started = time.perf_counter()
        deadline = loop.time() + timeout_ms / 1000
        results: list[ParallelTaskResult[Any] | None] = [None] * len(tasks)
        pending: dict[asyncio.Task, int] = {}

        for index, task in enumerate(tasks):
            if cancel_event is not None and cancel_event.is_set():
                results[index] = ParallelTaskResult(
                    task_name=task.name,
                    success=False,
                    error=ParallelTaskCanceled(task.name, "canceled before execution"),
                    canceled_by_signal=True,
                )
                continue
            runner = asyncio.create_task(self._run_task(task, cancel_event), name=task.name)
            pending[runner] = index

        cancel_waiter: asyncio.Task | None = None
        if pending and cancel_event is not None:
            cancel_waiter = asyncio.create_task(cancel_event.wait())

        interrupted_by: str | None = None
        try:
            while pending:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    interrupted_by = "timeout"
                    break
                waiters: set[asyncio.Task] = set(pending)
                if cancel_waiter is not None:
                    waiters.add(cancel_waiter)
                done, _ = await asyncio.wait(
                    waiters, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
                )
                for finished in done:
                    if finished is cancel_waiter:
                        continue
                    results[pending.pop(finished)] = finished.result()
                if pending and cancel_waiter is not None and cancel_waiter.done():
                    interrupted_by = "cancel"
                    break
        finally:
            if cancel_waiter is not None and not cancel_waiter.done():
                cancel_waiter.cancel()
            for runner in pending:
                runner.cancel()

        elapsed = _elapsed_ms(started)
        for index in pending.values():
            name = tasks[index].name
            error: Exception
            if interrupted_by == "cancel":
                error = ParallelTaskCanceled(name, "aborted by signal")
            else:
                error = ParallelTaskTimeout(name, timeout_ms)
            results[index] = ParallelTaskResult(
                task_name=name,
                success=False,
                error=error,
                duration_ms=elapsed,
                canceled_by_signal=True,
            )

        result = ParallelExecutionResult(
            results=[r for r in results if r is not None],
            total_duration_ms=_elapsed_ms(started),
        )

        if emit_telemetry:
            self._emit_telemetry(result)

        if throw_on_error and not result.all_succeeded:
            raise ParallelExecutionError(_collect_failures(result))

        return result

    async def execute_two(
        self,
        task1: ParallelTask[T1],
        task2: ParallelTask[T2],
        **config: Any,
    ) -> tuple[T1, T2]:
        """Run two tasks and return their values in task order.

        Raises:
            ParallelExecutionError: If either task failed or was canceled.
        """
        config["throw_on_error"] = True
        result = await self.execute_in_parallel([task1, task2], **config)
        first, second = result.results
        return first.value, second.value

    async def execute_three(
        self,
        task1: ParallelTask[T1],
        task2: ParallelTask[T2],
        task3: ParallelTask[T3],
        **config: Any,
    ) -> tuple[T1, T2, T3]:
        """Run three tasks and return their values in task order."""
        config["throw_on_error"] = True
        result = await self.execute_in_parallel([task1, task2, task3], **config)
        first, second, third = result.results
        return first.value, second.value, third.value

    # ── Private helpers ──────────────────────────────────────────────

    @staticmethod
    async def _run_task(
        task: ParallelTask[Any], cancel_event: asyncio.Event | None
    ) -> ParallelTaskResult[Any]:
        started = time.perf_counter()
        try:
            value = await task.fn()
        except asyncio.CancelledError as exc:
            # The runner itself was cancelled by the executor or an outer scope.
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            error = ParallelTaskCanceled(task.name, "cancelled inside task")
            error.__cause__ = exc
            return ParallelTaskResult(
                task_name=task.name,
                success=False,
                error=error,
                duration_ms=_elapsed_ms(started),
                canceled_by_signal=True,
            )
        except Exception as exc:
            canceled = isinstance(exc, ParallelTaskCanceled) or (
                cancel_event is not None and cancel_event.is_set()
            )
            return ParallelTaskResult(
                task_name=task.name,
                success=False,
                error=exc,
                duration_ms=_elapsed_ms(started),
                canceled_by_signal=canceled,
            )
        return ParallelTaskResult(
            task_name=task.name,
            success=True,
            value=value,
            duration_ms=_elapsed_ms(started),
        )

    @staticmethod
    def _emit_telemetry(result: ParallelExecutionResult[Any]) -> None:
        logger.info(
            "Parallel execution completed: tasks=%d successful=%d failed=%d canceled=%d duration=%dms",
            len(result.results),
            len(result.successful),
            len(result.failed),
            len(result.canceled),
            result.total_duration_ms,
        )
        for task_result in result.results:
            logger.debug(
                "Task '%s': success=%s duration=%dms canceled=%s error=%s",
                task_result.task_name,
                task_result.success,
                task_result.duration_ms,
                task_result.canceled_by_signal,
                task_result.error,
            )


def _collect_failures(result: ParallelExecutionResult[Any]) -> list[TaskFailure]:
    failures: list[TaskFailure] = []
    for task_result in result.results:
        if task_result.success:
            continue
        if not task_result.canceled_by_signal:
            kind = TaskFailureKind.FAILED
        elif isinstance(task_result.error, ParallelTaskTimeout):
            kind = TaskFailureKind.TIMEOUT
        else:
            kind = TaskFailureKind.CANCELED
        failures.append(TaskFailure(task_result.task_name, kind, task_result.error))
    return failures


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
