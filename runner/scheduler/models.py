"""Scheduler data types — execution outcomes, triggers and status snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime

    from runner.cron import CronExpression

# Error recorded when a trigger arrives while the task is still running.
ALREADY_RUNNING = "Already running"


class ExecutionOutcome(StrEnum):
    SUCCESS = "success"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class ExecutionResult:
    """What happened to one trigger. Failures are raised, not returned."""

    task_id: str
    execution_id: str
    outcome: ExecutionOutcome
    duration_ms: int | None = None

    @property
    def skipped(self) -> bool:
        return self.outcome == ExecutionOutcome.SKIPPED


@dataclass(frozen=True)
class RunningExecution:
    task_id: str
    execution_id: str


@dataclass
class ScheduledTrigger:
    """A live timer bound to one task's schedule.

    Attributes:
        task_id: The task this trigger fires.
        cron: Parsed schedule.
        job: The APScheduler job polling the schedule.
        last_fired: The minute this trigger last fired, so a matching minute
            fires once no matter how many ticks land in it.
    """

    task_id: str
    cron: CronExpression
    job: Any = field(default=None, repr=False)
    last_fired: datetime | None = None

    def should_fire(self, minute: datetime) -> bool:
        """Return True (and remember *minute*) the first time a due minute is seen."""
        if self.last_fired == minute:
            return False
        if not self.cron.matches(minute):
            return False
        self.last_fired = minute
        return True


@dataclass(frozen=True)
class SchedulerStatus:
    scheduled_count: int
    running_count: int
    scheduled_ids: list[str]
    running_ids: list[str]
