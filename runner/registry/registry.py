"""TaskRegistry — discovers, validates and catalogs task definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from runner.errors import TaskLoadError, TaskValidationError
from runner.registry.models import TaskDescriptor, validate_task

if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import Any

    from runner.registry.sources import TaskSource

logger = logging.getLogger(__name__)


class TaskRegistry:
    """Catalog of the tasks currently known to the runner.

    The active table is only ever replaced wholesale by ``reload()``;
    descriptors are immutable, so callers holding an old descriptor keep a
    consistent (if stale) view. Re-fetch by id after a reload.

    Usage::

        registry = TaskRegistry(DirectoryTaskSource(Path("tasks")))
        registry.reload()
        task = registry.lookup("backup")
    """

    def __init__(self, source: TaskSource) -> None:
        self._source = source
        self._tasks: dict[str, TaskDescriptor] = {}
        self._errors: dict[str, str] = {}

    @property
    def source(self) -> TaskSource:
        return self._source

    @property
    def errors(self) -> dict[str, str]:
        """Units rejected by the last reload, as ``unit_id -> reason``."""
        return dict(self._errors)

    # -- Discovery -------------------------------------------------------------

    def discover(self) -> list[TaskDescriptor]:
        """Load and validate every unit in the source.

        Invalid units are logged and skipped. The active table and
        ``errors`` are left untouched; use ``reload()`` to make the result
        current.
        """
        tasks, _ = self._discover()
        return list(tasks.values())

    def _discover(self) -> tuple[dict[str, TaskDescriptor], dict[str, str]]:
        tasks: dict[str, TaskDescriptor] = {}
        errors: dict[str, str] = {}

        for unit in self._source.units():
            try:
                candidate = unit.load()
                task = self.validate(candidate, unit.unit_id, unit.location)
            except (TaskLoadError, TaskValidationError) as exc:
                errors[unit.unit_id] = str(exc)
                logger.error("Skipping task %s: %s", unit.unit_id, exc)
                continue

            if task.id in tasks:
                first = tasks[task.id].location or "memory"
                reason = f"Duplicate task id '{task.id}' (already loaded from {first})"
                errors[unit.unit_id] = reason
                logger.error("Skipping task %s: %s", unit.unit_id, reason)
                continue

            tasks[task.id] = task
            logger.info("Loaded task: %s (%s)", task.display_name, task.id)

        logger.info("Successfully loaded %d task(s), %d rejected", len(tasks), len(errors))
        return tasks, errors

    @staticmethod
    def validate(
        candidate: Mapping[str, Any],
        unit_id: str,
        location: str = "",
    ) -> TaskDescriptor:
        """Validate a raw unit. Raises ``TaskValidationError`` with the reason."""
        return validate_task(candidate, unit_id, location)

    def reload(self) -> list[TaskDescriptor]:
        """Re-run discovery and atomically swap the active table."""
        tasks, errors = self._discover()
        self._tasks = tasks
        self._errors = errors

        discard = getattr(self._source, "discard_stale_modules", None)
        if discard is not None:
            discard()

        return list(tasks.values())

    # -- Lookup ----------------------------------------------------------------

    def lookup(self, task_id: str) -> TaskDescriptor | None:
        """Look up a task by id."""
        return self._tasks.get(task_id)

    def list_all(self) -> list[TaskDescriptor]:
        """All registered tasks, in discovery order."""
        return list(self._tasks.values())

    def list_scheduled(self) -> list[TaskDescriptor]:
        """Tasks that declare a schedule."""
        return [t for t in self._tasks.values() if t.is_scheduled]

    @property
    def task_ids(self) -> list[str]:
        return list(self._tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks
