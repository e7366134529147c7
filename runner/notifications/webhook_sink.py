"""WebhookSink — NotificationSink that POSTs events as JSON."""

from __future__ import annotations

import logging

import httpx

from runner.notifications.formatting import format_duration, format_schedule, truncate

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10


class WebhookSink:
    """Sends each event to an HTTP endpoint (ntfy, Slack workflow, etc.).

    The body is ``{"event": ..., "title": ..., "message": ...}``. Delivery
    failures are logged, never raised.
    """

    def __init__(self, url: str, *, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self._url = url
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "webhook"

    async def on_success(self, display_name: str, duration_ms: int) -> None:
        await self._post(
            "success",
            f"✅ {display_name}",
            f"Completed in {format_duration(duration_ms)}",
        )

    async def on_failure(self, display_name: str, error_message: str) -> None:
        await self._post(
            "failure",
            f"❌ {display_name}",
            f"Function failed: {truncate(error_message)}",
        )

    async def on_scheduled(self, display_name: str, schedule: str) -> None:
        await self._post(
            "scheduled",
            f"⏰ {display_name}",
            f"Scheduled to run: {format_schedule(schedule)}",
        )

    async def on_info(self, title: str, message: str) -> None:
        await self._post("info", f"ℹ️ {title}", message)

    async def on_warning(self, title: str, message: str) -> None:
        await self._post("warning", f"⚠️ {title}", message)

    async def _post(self, event: str, title: str, message: str) -> bool:
        payload = {"event": event, "title": title, "message": message}
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._url, json=payload)
        except httpx.HTTPError:
            logger.exception("Webhook notification failed (network error)")
            return False

        if resp.is_success:
            logger.debug("Webhook notification sent: %s", event)
            return True
        logger.error(
            "Webhook notification failed: status=%d body=%s",
            resp.status_code,
            resp.text[:200],
        )
        return False
