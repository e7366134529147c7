"""Shared test fixtures."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from runner.history import HistoryStore
from runner.notifications import Notifier, NotificationPolicy

START = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    """Settable clock; ``advance()`` moves it forward."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeSink:
    """NotificationSink that records every event."""

    def __init__(self, sink_name: str = "fake") -> None:
        self._name = sink_name
        self.events: list[tuple] = []

    @property
    def name(self) -> str:
        return self._name

    async def on_success(self, display_name: str, duration_ms: int) -> None:
        self.events.append(("success", display_name, duration_ms))

    async def on_failure(self, display_name: str, error_message: str) -> None:
        self.events.append(("failure", display_name, error_message))

    async def on_scheduled(self, display_name: str, schedule: str) -> None:
        self.events.append(("scheduled", display_name, schedule))

    async def on_info(self, title: str, message: str) -> None:
        self.events.append(("info", title, message))

    async def on_warning(self, title: str, message: str) -> None:
        self.events.append(("warning", title, message))

    def of_kind(self, kind: str) -> list[tuple]:
        return [e for e in self.events if e[0] == kind]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def history_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "history.json"


@pytest.fixture
def history(history_path: Path, clock: FakeClock) -> HistoryStore:
    return HistoryStore(history_path, timezone=UTC, clock=clock)


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def notifier(sink: FakeSink) -> Notifier:
    """Notifier with every event type enabled and a recording sink."""
    n = Notifier(
        NotificationPolicy(
            notify_on_success=True,
            notify_on_failure=True,
            notify_on_scheduled=True,
            notify_on_info=True,
            notify_on_warning=True,
        )
    )
    n.register_sink(sink)
    return n
