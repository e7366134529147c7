"""RunnerApp — wires registry, history, notifications and scheduler together."""

from __future__ import annotations

import asyncio
import contextlib
import signal
from typing import TYPE_CHECKING

from runner.history import HistoryStore
from runner.notifications import LogSink, NotificationPolicy, Notifier, WebhookSink
from runner.registry import DirectoryTaskSource, SourceWatcher, TaskRegistry
from runner.scheduler import SchedulerEngine, TaskExecutor

if TYPE_CHECKING:
    from runner.context import RunnerContext
    from runner.scheduler import ExecutionResult

PRUNE_JOB_ID = "history-prune"
WATCH_JOB_ID = "task-watcher"


class RunnerApp:
    """The assembled runner.

    Every component is built here from the context's settings and exposed
    as an attribute, so the CLI and tests can reach them directly.
    """

    def __init__(self, context: RunnerContext) -> None:
        self.context = context
        settings = context.settings
        self._log = context.logger

        self.source = DirectoryTaskSource(settings.tasks_dir)
        self.registry = TaskRegistry(self.source)
        self.history = HistoryStore(settings.history_path, timezone=settings.tzinfo)

        self.notifier = Notifier(NotificationPolicy.from_settings(settings))
        self.notifier.register_sink(LogSink())
        if settings.notification_webhook_url:
            self.notifier.register_sink(WebhookSink(settings.notification_webhook_url))

        self.executor = TaskExecutor(
            self.history,
            self.notifier,
            timeout_seconds=settings.task_timeout_seconds,
        )
        self.engine = SchedulerEngine(
            self.registry,
            self.executor,
            self.notifier,
            timezone=settings.scheduler_timezone,
            tick_seconds=settings.scheduler_tick_seconds,
        )
        self.watcher: SourceWatcher | None = None
        self._stop_event = asyncio.Event()

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Load tasks, tidy history and start the scheduler."""
        settings = self.context.settings
        self.registry.reload()

        if settings.reconcile_interrupted_runs:
            self.history.reconcile_interrupted()

        self.prune_history()
        await self.engine.start()
        self.engine.add_maintenance_job(
            self._prune_job,
            job_id=PRUNE_JOB_ID,
            seconds=settings.history_prune_interval_hours * 3600,
        )

        if settings.auto_reload:
            self.watcher = SourceWatcher(self.source, self.reload)
            self.engine.add_maintenance_job(
                self.watcher.check,
                job_id=WATCH_JOB_ID,
                seconds=settings.auto_reload_interval_seconds,
            )
            self._log.info("Watching %s for task changes", settings.tasks_dir)

        self._log.info("Runner started with %d task(s)", len(self.registry))

    async def stop(self) -> None:
        """Stop firing triggers and wait for in-flight work to settle."""
        await self.engine.stop()
        await self.engine.drain()
        await self.notifier.drain()
        self._log.info("Runner stopped")

    async def reload(self) -> int:
        """Reload the registry and rebuild triggers.

        A failing reload keeps the previous table and emits a warning.
        Returns the number of registered tasks.
        """
        try:
            tasks = self.registry.reload()
            await self.engine.reschedule()
        except Exception as exc:
            self._log.exception("Task reload failed")
            self.notifier.warning("Reload Error", str(exc))
            return len(self.registry)
        self.notifier.info("Tasks Reloaded", f"Reloaded {len(tasks)} tasks")
        return len(tasks)

    async def run_now(self, task_id: str) -> ExecutionResult:
        return await self.engine.run_now(task_id)

    def prune_history(self, max_age_days: int | None = None) -> int:
        if max_age_days is None:
            max_age_days = self.context.settings.history_retention_days
        return self.history.prune(max_age_days)

    async def _prune_job(self) -> None:
        self.prune_history()

    # -- Daemon ----------------------------------------------------------------

    async def serve(self) -> None:
        """Run until SIGINT/SIGTERM or ``request_stop()``."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._stop_event.set)
            except (NotImplementedError, RuntimeError):
                self._log.debug("Signal handler for %s not supported", sig)

        await self.start()
        try:
            await self._stop_event.wait()
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                with contextlib.suppress(NotImplementedError, RuntimeError):
                    loop.remove_signal_handler(sig)
            await self.stop()

    def request_stop(self) -> None:
        self._stop_event.set()
