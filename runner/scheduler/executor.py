"""TaskExecutor — runs task bodies with a per-task concurrency guard."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from runner.scheduler.models import (
    ALREADY_RUNNING,
    ExecutionOutcome,
    ExecutionResult,
    RunningExecution,
)

if TYPE_CHECKING:
    from runner.history.store import HistoryStore
    from runner.notifications.notifier import Notifier
    from runner.registry.models import TaskDescriptor

logger = logging.getLogger(__name__)


def _error_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class TaskExecutor:
    """Executes tasks, recording every attempt in the history store.

    At most one execution per task id runs at a time. The running set is
    plain in-process state: it is only touched from the event loop, and a
    restart clears it.

    Args:
        history: HistoryStore for start/end records.
        notifier: Notifier for success and failure events.
        timeout_seconds: Optional cap on a single run. None (the default)
            lets a body run forever, holding its slot.
    """

    def __init__(
        self,
        history: HistoryStore,
        notifier: Notifier,
        *,
        timeout_seconds: float | None = None,
    ) -> None:
        self._history = history
        self._notifier = notifier
        self._timeout = timeout_seconds
        self._running: dict[str, str] = {}

    async def execute(self, task: TaskDescriptor, *, is_scheduled: bool = False) -> ExecutionResult:
        """Run *task* unless it is already running.

        Returns a ``skipped`` result when another execution of the same task
        is in flight (the attempt is still recorded, as failed). If the body
        raises, the failure is recorded and notified, then re-raised.
        """
        execution_id = self._history.record_start(task.id, task.display_name)

        if task.id in self._running:
            logger.info("Task '%s' (%s) is already running, skipping", task.display_name, task.id)
            self._history.record_end(task.id, execution_id, success=False, error=ALREADY_RUNNING)
            return ExecutionResult(task.id, execution_id, ExecutionOutcome.SKIPPED)

        self._running[task.id] = execution_id
        logger.info(
            "Executing task: '%s' (%s) scheduled=%s",
            task.display_name,
            task.id,
            is_scheduled,
        )
        t0 = time.monotonic()
        try:
            await self._invoke(task)
        except asyncio.CancelledError:
            self._history.record_end(task.id, execution_id, success=False, error="Cancelled")
            logger.warning("Task '%s' (%s) was cancelled", task.display_name, task.id)
            raise
        except Exception as exc:
            message = _error_message(exc)
            self._history.record_end(task.id, execution_id, success=False, error=message)
            self._notifier.failure(task.display_name, message)
            logger.exception("Task '%s' (%s) failed", task.display_name, task.id)
            raise
        else:
            record = self._history.record_end(task.id, execution_id, success=True)
            if record is not None and record.duration is not None:
                duration_ms = record.duration
            else:
                duration_ms = int((time.monotonic() - t0) * 1000)
            self._notifier.success(task.display_name, duration_ms)
            logger.info(
                "Task '%s' (%s) completed successfully in %dms",
                task.display_name,
                task.id,
                duration_ms,
            )
            return ExecutionResult(task.id, execution_id, ExecutionOutcome.SUCCESS, duration_ms)
        finally:
            self._running.pop(task.id, None)

    async def _invoke(self, task: TaskDescriptor) -> None:
        if self._timeout is None:
            await task.body()
            return
        try:
            await asyncio.wait_for(task.body(), timeout=self._timeout)
        except TimeoutError as exc:
            msg = f"Timed out after {self._timeout:g}s"
            raise TimeoutError(msg) from exc

    # -- Introspection ---------------------------------------------------------

    def is_running(self, task_id: str) -> bool:
        return task_id in self._running

    def running_executions(self) -> list[RunningExecution]:
        return [RunningExecution(task_id, execution_id) for task_id, execution_id in self._running.items()]

    @property
    def running_ids(self) -> list[str]:
        return list(self._running)
