"""Scheduler — cron triggers, the execution guard and manual runs."""

from runner.scheduler.engine import SchedulerEngine
from runner.scheduler.executor import TaskExecutor
from runner.scheduler.models import (
    ALREADY_RUNNING,
    ExecutionOutcome,
    ExecutionResult,
    RunningExecution,
    ScheduledTrigger,
    SchedulerStatus,
)

__all__ = [
    "ALREADY_RUNNING",
    "ExecutionOutcome",
    "ExecutionResult",
    "RunningExecution",
    "ScheduledTrigger",
    "SchedulerEngine",
    "SchedulerStatus",
    "TaskExecutor",
]
