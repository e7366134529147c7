"""TaskDescriptor — a validated, immutable task definition."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from runner.errors import TaskValidationError

TaskBody = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class TaskDescriptor:
    """A task discovered from a source.

    Attributes:
        id: Registry key: the unit's file or directory name, or an explicit
            ``id`` attribute on the unit.
        display_name: Human-readable name shown in listings and notifications.
        body: Async callable with no required arguments. It signals failure
            by raising.
        description: Optional free text.
        schedule: Cron expression, or None for manual-only tasks.
        location: Where the unit was loaded from (empty for in-memory units).
    """

    id: str
    display_name: str
    body: TaskBody = field(repr=False, compare=False)
    description: str = ""
    schedule: str | None = None
    location: str = ""

    @property
    def is_scheduled(self) -> bool:
        return self.schedule is not None


def validate_task(candidate: Mapping[str, Any], unit_id: str, location: str = "") -> TaskDescriptor:
    """Check a raw task unit and build a ``TaskDescriptor`` from it.

    *candidate* maps the unit's attributes (``name``, ``execute``,
    ``description``, ``schedule`` and optionally ``id``). Raises
    ``TaskValidationError`` with a human-readable reason when the shape is
    wrong. The cron syntax of ``schedule`` is not checked here: a task with
    an unparseable schedule is still registered and can be run manually.
    """
    name = candidate.get("name")
    if not name or not isinstance(name, str):
        msg = f"Task {unit_id} missing or invalid 'name' field"
        raise TaskValidationError(msg)

    execute = candidate.get("execute")
    if execute is None or not callable(execute):
        msg = f"Task {unit_id} missing or invalid 'execute' field"
        raise TaskValidationError(msg)
    if not _is_async_callable(execute):
        msg = f"Task {unit_id} 'execute' must be an async function"
        raise TaskValidationError(msg)

    description = candidate.get("description")
    if description is not None and not isinstance(description, str):
        msg = f"Task {unit_id} has invalid 'description' field (must be string)"
        raise TaskValidationError(msg)

    schedule = candidate.get("schedule")
    if schedule is not None and not isinstance(schedule, str):
        msg = f"Task {unit_id} has invalid 'schedule' field (must be string)"
        raise TaskValidationError(msg)

    explicit_id = candidate.get("id")
    if explicit_id is not None and (not isinstance(explicit_id, str) or not explicit_id.strip()):
        msg = f"Task {unit_id} has invalid 'id' field (must be a non-empty string)"
        raise TaskValidationError(msg)

    return TaskDescriptor(
        id=explicit_id.strip() if explicit_id else unit_id,
        display_name=name,
        body=execute,
        description=description or "",
        schedule=(schedule.strip() or None) if schedule else None,
        location=location,
    )


def _is_async_callable(fn: Any) -> bool:
    """True for coroutine functions and objects whose ``__call__`` is one."""
    if inspect.iscoroutinefunction(fn):
        return True
    call = getattr(fn, "__call__", None)  # noqa: B004
    return call is not None and inspect.iscoroutinefunction(call)
