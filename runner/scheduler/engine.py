"""SchedulerEngine — APScheduler lifecycle and cron triggers."""

from __future__ import annotations

import asyncio
import logging
import zoneinfo
from datetime import datetime
from typing import TYPE_CHECKING, Any

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from runner.cron import CronExpression
from runner.errors import CronParseError, TaskNotFoundError
from runner.scheduler.models import ScheduledTrigger, SchedulerStatus

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from runner.notifications.notifier import Notifier
    from runner.registry.models import TaskDescriptor
    from runner.registry.registry import TaskRegistry
    from runner.scheduler.executor import TaskExecutor
    from runner.scheduler.models import ExecutionResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/New_York"
DEFAULT_TICK_SECONDS = 15.0
MAINTENANCE_PREFIX = "runner:"


class SchedulerEngine:
    """Maps scheduled tasks to APScheduler interval jobs.

    Every scheduled task gets a job that polls its cron expression each
    tick. A tick fires the task when the current minute matches and has
    not fired yet, so ticks shorter than a minute never double-fire.

    Args:
        registry: TaskRegistry to read tasks from.
        executor: TaskExecutor to run tasks.
        notifier: Optional Notifier for ``scheduled`` events.
        timezone: IANA timezone the cron expressions are evaluated in.
        tick_seconds: Poll interval, at most 60 seconds.
        clock: Returns the current time; defaults to the wall clock in
            *timezone*.
    """

    def __init__(
        self,
        registry: TaskRegistry,
        executor: TaskExecutor,
        notifier: Notifier | None = None,
        *,
        timezone: str = DEFAULT_TIMEZONE,
        tick_seconds: float = DEFAULT_TICK_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if not 0 < tick_seconds <= 60:
            msg = f"tick_seconds must be in (0, 60], got {tick_seconds}"
            raise ValueError(msg)
        self._registry = registry
        self._executor = executor
        self._notifier = notifier
        self._timezone = timezone
        self._tzinfo = zoneinfo.ZoneInfo(timezone)
        self._tick_seconds = tick_seconds
        self._scheduler = AsyncIOScheduler(timezone=timezone)
        self._clock = clock or self._wall_clock
        self._triggers: dict[str, ScheduledTrigger] = {}
        self._pending: set[asyncio.Task] = set()
        self._running = False

    def _wall_clock(self) -> datetime:
        return datetime.now(self._tzinfo)

    @property
    def running(self) -> bool:
        return self._running

    @property
    def timezone(self) -> str:
        return self._timezone

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Create triggers for every scheduled task and start the scheduler."""
        count = self._schedule_all()
        if not self._running:
            self._scheduler.start()
            self._running = True
        logger.info(
            "Scheduler started with %d scheduled task(s) (tz=%s, tick=%ss)",
            count,
            self._timezone,
            self._tick_seconds,
        )

    async def stop(self) -> None:
        """Remove all jobs and shut down. Running bodies keep running."""
        self._clear_triggers()
        self._scheduler.remove_all_jobs()
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            # AsyncIOScheduler shuts down from a loop callback; let it run.
            await asyncio.sleep(0)
            logger.info("Scheduler stopped")

    async def reschedule(self) -> int:
        """Drop every task trigger and rebuild from the registry.

        Maintenance jobs are left alone. Returns the number of triggers.
        """
        previous = dict(self._triggers)
        self._clear_triggers()
        count = self._schedule_all(previous)
        logger.info("Rescheduled %d task(s)", count)
        return count

    async def drain(self) -> None:
        """Wait for executions spawned by scheduled fires."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # -- Manual triggers -------------------------------------------------------

    async def run_now(self, task_id: str) -> ExecutionResult:
        """Run *task_id* immediately. Body failures propagate."""
        task = self._registry.lookup(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        logger.info("Manual trigger: %s", task_id)
        return await self._executor.execute(task, is_scheduled=False)

    # -- Introspection ---------------------------------------------------------

    def status(self) -> SchedulerStatus:
        running_ids = self._executor.running_ids
        scheduled_ids = sorted(self._triggers)
        return SchedulerStatus(
            scheduled_count=len(scheduled_ids),
            running_count=len(running_ids),
            scheduled_ids=scheduled_ids,
            running_ids=running_ids,
        )

    def next_run_time(self, task_id: str, after: datetime | None = None) -> datetime | None:
        """Next firing minute for *task_id*, or None if it never auto-fires."""
        task = self._registry.lookup(task_id)
        if task is None or task.schedule is None:
            return None
        try:
            cron = CronExpression.parse(task.schedule)
        except CronParseError:
            return None
        return cron.next_fire_time(after or self._clock())

    def add_maintenance_job(
        self,
        func: Callable[[], Awaitable[Any]],
        *,
        job_id: str,
        seconds: float,
    ):
        """Add an interval job that survives ``reschedule()``."""
        job = self._scheduler.add_job(
            func,
            trigger=IntervalTrigger(seconds=seconds, timezone=self._timezone),
            id=f"{MAINTENANCE_PREFIX}{job_id}",
            name=job_id,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        logger.debug("Added maintenance job %s every %ss", job_id, seconds)
        return job

    # -- Internal --------------------------------------------------------------

    def _schedule_all(self, previous: dict[str, ScheduledTrigger] | None = None) -> int:
        for task in self._registry.list_scheduled():
            self._add_trigger(task, previous or {})
        return len(self._triggers)

    def _add_trigger(self, task: TaskDescriptor, previous: dict[str, ScheduledTrigger]) -> None:
        try:
            cron = CronExpression.parse(task.schedule)
        except CronParseError as exc:
            logger.error("Invalid cron expression for task %s: %s", task.id, exc)
            return

        trigger = ScheduledTrigger(task_id=task.id, cron=cron)
        old = previous.get(task.id)
        if old is not None and old.cron.expression == cron.expression:
            trigger.last_fired = old.last_fired

        trigger.job = self._scheduler.add_job(
            self._tick,
            trigger=IntervalTrigger(seconds=self._tick_seconds, timezone=self._timezone),
            id=task.id,
            name=task.display_name,
            args=[task.id],
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        self._triggers[task.id] = trigger
        logger.info("Scheduled task %s (%s) with cron: %s", task.display_name, task.id, cron)
        if self._notifier is not None:
            self._notifier.scheduled(task.display_name, cron.expression)

    def _clear_triggers(self) -> None:
        for task_id in list(self._triggers):
            try:
                self._scheduler.remove_job(task_id)
            except JobLookupError:
                logger.debug("Job %s not found in scheduler (may already be removed)", task_id)
        self._triggers.clear()

    async def _tick(self, task_id: str, now: datetime | None = None) -> bool:
        """Job callback. Returns True if the tick spawned an execution."""
        trigger = self._triggers.get(task_id)
        if trigger is None:
            return False
        minute = (now or self._clock()).replace(second=0, microsecond=0)
        if not trigger.should_fire(minute):
            return False

        task = self._registry.lookup(task_id)
        if task is None:
            logger.warning("Scheduled task %s is no longer registered", task_id)
            return False

        logger.info("Running scheduled task: %s", task.display_name)
        pending = asyncio.create_task(self._run_scheduled(task))
        self._pending.add(pending)
        pending.add_done_callback(self._pending.discard)
        return True

    async def _run_scheduled(self, task: TaskDescriptor) -> None:
        try:
            await self._executor.execute(task, is_scheduled=True)
        except Exception as exc:
            # Already recorded and notified by the executor.
            logger.warning("Scheduled run of %s failed: %s", task.id, exc)
