"""HistoryStore — durable JSON record of task executions.

The whole document lives in memory and is rewritten in full after every
mutation. That makes each write O(total history), which is fine at
personal-automation scale; ``prune()`` keeps it bounded.
"""

from __future__ import annotations

import logging
import shutil
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from pydantic import ValidationError

from runner.history.formatting import relative_time_text
from runner.history.models import (
    ExecutionRecord,
    ExecutionStatus,
    HistoryDocument,
    TaskHistory,
    TaskStats,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import tzinfo
    from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 10
DEFAULT_RETENTION_DAYS = 30


def _utc_now() -> datetime:
    return datetime.now(UTC)


class HistoryStore:
    """Persists execution history for every task in one JSON file.

    Pass *clock* to control timestamps (tests), and *timezone* for the
    calendar dates shown by ``last_run_text`` once a run is a month old.

    All methods are synchronous; each mutation is on disk before it returns.
    Write failures are logged and the in-memory state stays authoritative.
    """

    def __init__(
        self,
        path: Path,
        *,
        timezone: tzinfo | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._path = path
        self._timezone = timezone
        self._clock = clock or _utc_now
        self._doc = self._load()
        self._last_id = max(
            (int(e.id) for th in self._doc.functions.values() for e in th.executions if e.id.isdigit()),
            default=0,
        )

    @property
    def path(self) -> Path:
        return self._path

    # -- Persistence -----------------------------------------------------------

    def _load(self) -> HistoryDocument:
        if not self._path.exists():
            doc = HistoryDocument()
            self._doc = doc
            self._save()
            return doc
        try:
            return HistoryDocument.model_validate_json(self._path.read_bytes())
        except (OSError, ValidationError):
            logger.exception("Error loading history from %s, starting empty", self._path)
            self._preserve_unreadable()
            return HistoryDocument()

    def _preserve_unreadable(self) -> None:
        backup = self._path.with_name(self._path.name + ".corrupt")
        try:
            shutil.copyfile(self._path, backup)
            logger.warning("Copied unreadable history file to %s", backup)
        except OSError:
            logger.exception("Could not copy unreadable history file %s", self._path)

    def _save(self) -> None:
        tmp = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(
                self._doc.model_dump_json(by_alias=True, indent=2),
                encoding="utf-8",
            )
            tmp.replace(self._path)
        except OSError:
            logger.exception("Error saving history to %s", self._path)

    def _next_execution_id(self, now: datetime) -> str:
        """Millisecond timestamp, bumped so ids strictly increase in-process."""
        candidate = int(now.timestamp() * 1000)
        self._last_id = max(candidate, self._last_id + 1)
        return str(self._last_id)

    # -- Recording -------------------------------------------------------------

    def record_start(self, task_id: str, display_name: str) -> str:
        """Append a ``running`` record for *task_id* and return its execution id."""
        task_history = self._doc.functions.get(task_id)
        if task_history is None:
            task_history = TaskHistory(name=display_name)
            self._doc.functions[task_id] = task_history
        else:
            task_history.name = display_name

        now = self._clock()
        record = ExecutionRecord(
            id=self._next_execution_id(now),
            task_id=task_id,
            start_time=now,
        )
        task_history.executions.append(record)
        self._save()
        return record.id

    def record_end(
        self,
        task_id: str,
        execution_id: str,
        success: bool,
        error: str | None = None,
    ) -> ExecutionRecord | None:
        """Complete a record. Unknown task or execution ids are a logged no-op."""
        task_history = self._doc.functions.get(task_id)
        if task_history is None:
            logger.warning("record_end for unknown task %s (execution %s)", task_id, execution_id)
            return None

        record = next((e for e in task_history.executions if e.id == execution_id), None)
        if record is None:
            logger.warning("record_end for unknown execution %s of task %s", execution_id, task_id)
            return None

        record.complete(self._clock(), success=success, error=error)
        self._save()
        return record

    # -- Queries ---------------------------------------------------------------

    def task_ids(self) -> list[str]:
        """Ids of every task that has a history entry."""
        return list(self._doc.functions)

    def display_name(self, task_id: str) -> str | None:
        task_history = self._doc.functions.get(task_id)
        return task_history.name if task_history else None

    def last_execution(self, task_id: str) -> ExecutionRecord | None:
        task_history = self._doc.functions.get(task_id)
        if task_history is None or not task_history.executions:
            return None
        return task_history.executions[-1]

    def last_run_text(self, task_id: str, now: datetime | None = None) -> str:
        """Human-readable age of the last execution, e.g. "2 hours ago" or "Never"."""
        last = self.last_execution(task_id)
        if last is None:
            return "Never"
        when = last.end_time or last.start_time
        return relative_time_text(when, now or self._clock(), self._timezone)

    def history(self, task_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> list[ExecutionRecord]:
        """Most recent executions first, at most *limit* of them."""
        task_history = self._doc.functions.get(task_id)
        if task_history is None or limit <= 0:
            return []
        return list(reversed(task_history.executions[-limit:]))

    def stats(self, task_id: str) -> TaskStats:
        task_history = self._doc.functions.get(task_id)
        if task_history is None or not task_history.executions:
            return TaskStats()

        executions = task_history.executions
        successful = sum(1 for e in executions if e.status == ExecutionStatus.SUCCESS)
        failed = sum(1 for e in executions if e.status == ExecutionStatus.FAILED)
        durations = [e.duration for e in executions if e.duration is not None]
        average = sum(durations) / len(durations) if durations else 0.0

        return TaskStats(
            total_executions=len(executions),
            successful_executions=successful,
            failed_executions=failed,
            average_duration_ms=average,
            success_rate=successful / len(executions),
        )

    def running(self) -> list[ExecutionRecord]:
        """Every record still marked ``running``."""
        return [
            e
            for task_history in self._doc.functions.values()
            for e in task_history.executions
            if e.is_running
        ]

    # -- Maintenance -----------------------------------------------------------

    def prune(self, max_age_days: int = DEFAULT_RETENTION_DAYS, now: datetime | None = None) -> int:
        """Drop records that started more than *max_age_days* ago. Returns the count."""
        cutoff = (now or self._clock()) - timedelta(days=max_age_days)
        removed = 0
        for task_history in self._doc.functions.values():
            kept = [e for e in task_history.executions if e.start_time >= cutoff]
            removed += len(task_history.executions) - len(kept)
            task_history.executions = kept

        self._save()
        if removed:
            logger.info("Pruned %d execution record(s) older than %d days", removed, max_age_days)
        return removed

    def reconcile_interrupted(self, reason: str = "Interrupted") -> int:
        """Mark records left ``running`` by a previous process as failed.

        Only safe to call before any execution starts in this process.
        """
        stale = self.running()
        if not stale:
            return 0
        now = self._clock()
        for record in stale:
            record.complete(now, success=False, error=reason)
        self._save()
        logger.warning("Marked %d interrupted execution(s) as failed", len(stale))
        return len(stale)
