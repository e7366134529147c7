"""NotificationSink protocol — interface for every notification destination."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class NotificationSink(Protocol):
    """Protocol that all notification sinks must satisfy.

    Sinks own delivery. The runner never waits on them; whatever a sink
    raises is logged and dropped.
    """

    @property
    def name(self) -> str:
        """Unique sink identifier (e.g. 'log', 'webhook')."""
        ...

    async def on_success(self, display_name: str, duration_ms: int) -> None:
        """A task finished successfully."""
        ...

    async def on_failure(self, display_name: str, error_message: str) -> None:
        """A task failed."""
        ...

    async def on_scheduled(self, display_name: str, schedule: str) -> None:
        """A task was put on its schedule."""
        ...

    async def on_info(self, title: str, message: str) -> None:
        ...

    async def on_warning(self, title: str, message: str) -> None:
        ...
