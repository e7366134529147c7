"""LogSink — NotificationSink that writes events to the log."""

from __future__ import annotations

import logging

from runner.notifications.formatting import format_duration, format_schedule

logger = logging.getLogger(__name__)


class LogSink:
    """Writes every notification to the ``runner.notifications`` log."""

    @property
    def name(self) -> str:
        return "log"

    async def on_success(self, display_name: str, duration_ms: int) -> None:
        logger.info("Notification: %s completed in %s", display_name, format_duration(duration_ms))

    async def on_failure(self, display_name: str, error_message: str) -> None:
        logger.error("Notification: %s failed: %s", display_name, error_message)

    async def on_scheduled(self, display_name: str, schedule: str) -> None:
        logger.info("Notification: %s scheduled to run %s", display_name, format_schedule(schedule))

    async def on_info(self, title: str, message: str) -> None:
        logger.info("Notification: %s - %s", title, message)

    async def on_warning(self, title: str, message: str) -> None:
        logger.warning("Notification: %s - %s", title, message)
