"""Notifier — fans lifecycle events out to registered sinks without blocking."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from runner.config import Settings
    from runner.notifications.sinks import NotificationSink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationPolicy:
    """Which event types are delivered. Suppressed events only reach the log."""

    notify_on_success: bool = False
    notify_on_failure: bool = True
    notify_on_scheduled: bool = False
    notify_on_info: bool = True
    notify_on_warning: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> NotificationPolicy:
        return cls(
            notify_on_success=settings.notify_on_success,
            notify_on_failure=settings.notify_on_failure,
            notify_on_scheduled=settings.notify_on_scheduled,
            notify_on_info=settings.notify_on_info,
            notify_on_warning=settings.notify_on_warning,
        )


class Notifier:
    """Routes runner events to every registered sink.

    Each delivery runs as its own asyncio task, so callers never wait on a
    sink. Must be used from within a running event loop. ``drain()`` waits
    for deliveries still in flight.
    """

    def __init__(self, policy: NotificationPolicy | None = None) -> None:
        self._policy = policy or NotificationPolicy()
        self._sinks: dict[str, NotificationSink] = {}
        self._pending: set[asyncio.Task] = set()

    @property
    def policy(self) -> NotificationPolicy:
        return self._policy

    def register_sink(self, sink: NotificationSink) -> None:
        """Register a sink. Raises ValueError on duplicate name."""
        if sink.name in self._sinks:
            msg = f"Sink '{sink.name}' is already registered"
            raise ValueError(msg)
        self._sinks[sink.name] = sink

    def get_sink(self, name: str) -> NotificationSink | None:
        return self._sinks.get(name)

    def list_sinks(self) -> list[str]:
        return list(self._sinks)

    # -- Events ----------------------------------------------------------------

    def success(self, display_name: str, duration_ms: int) -> None:
        if self._policy.notify_on_success:
            self._dispatch("on_success", display_name, duration_ms)

    def failure(self, display_name: str, error_message: str) -> None:
        if self._policy.notify_on_failure:
            self._dispatch("on_failure", display_name, error_message)

    def scheduled(self, display_name: str, schedule: str) -> None:
        if self._policy.notify_on_scheduled:
            self._dispatch("on_scheduled", display_name, schedule)

    def info(self, title: str, message: str) -> None:
        if self._policy.notify_on_info:
            self._dispatch("on_info", title, message)

    def warning(self, title: str, message: str) -> None:
        if self._policy.notify_on_warning:
            self._dispatch("on_warning", title, message)

    async def drain(self) -> None:
        """Wait for all in-flight deliveries to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # -- Internal --------------------------------------------------------------

    def _dispatch(self, method: str, *args: Any) -> None:
        for sink in self._sinks.values():
            task = asyncio.ensure_future(getattr(sink, method)(*args))
            self._pending.add(task)
            task.add_done_callback(lambda t, s=sink.name, m=method: self._done(t, s, m))

    def _done(self, task: asyncio.Task, sink_name: str, method: str) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Notification sink '%s' failed in %s", sink_name, method, exc_info=exc)
