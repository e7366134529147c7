"""Task sources — where the registry finds candidate task units."""

from __future__ import annotations

import importlib.util
import logging
import re
import sys
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from runner.errors import TaskLoadError

logger = logging.getLogger(__name__)

# Module attributes that make up a task unit.
TASK_ATTRIBUTES = ("id", "name", "description", "schedule", "execute")

_MODULE_PREFIX = "_runner_tasks"
_UNSAFE_MODULE_CHARS_RE = re.compile(r"[^0-9a-zA-Z_]")


@dataclass(frozen=True)
class TaskUnit:
    """One candidate task unit, not yet loaded.

    ``load()`` returns the raw attribute mapping or raises ``TaskLoadError``.
    """

    unit_id: str
    location: str
    load: Callable[[], Mapping[str, Any]]


@runtime_checkable
class TaskSource(Protocol):
    """Protocol that every task source must satisfy."""

    def units(self) -> Iterator[TaskUnit]:
        """Yield the candidate units currently present, in a stable order."""
        ...


class StaticTaskSource:
    """In-memory source backed by a mapping of ``unit_id -> candidate``.

    Useful for embedding and tests. The mapping is read on every
    discovery pass, so mutating it and reloading the registry picks up the
    change.
    """

    def __init__(self, candidates: dict[str, Mapping[str, Any]] | None = None) -> None:
        self.candidates: dict[str, Mapping[str, Any]] = candidates if candidates is not None else {}

    def units(self) -> Iterator[TaskUnit]:
        for unit_id in sorted(self.candidates):
            candidate = self.candidates[unit_id]
            yield TaskUnit(unit_id=unit_id, location="", load=lambda c=candidate: dict(c))


class DirectoryTaskSource:
    """Loads task units from a directory of Python modules.

    Each ``*.py`` file (not starting with ``_``) and each sub-directory with
    an ``__init__.py`` is one unit; its id is the file stem or directory
    name. Units are imported under module names that are unique per
    discovery pass, so a reload always executes fresh code.
    ``discard_stale_modules()`` drops the modules of earlier passes.
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._generation = 0

    @property
    def root(self) -> Path:
        return self._root

    def units(self) -> Iterator[TaskUnit]:
        if not self._root.exists():
            logger.info("Tasks directory %s not found, creating it", self._root)
            self._root.mkdir(parents=True, exist_ok=True)
            return

        self._generation += 1
        generation = self._generation

        entries = sorted(self._root.iterdir(), key=lambda p: p.name)
        logger.info("Found %d entries in %s", len(entries), self._root)
        for index, entry in enumerate(entries):
            if entry.name.startswith(("_", ".")):
                continue
            if entry.is_dir():
                yield TaskUnit(
                    unit_id=entry.name,
                    location=str(entry),
                    load=lambda e=entry, i=index: self._load_package(e, generation, i),
                )
            elif entry.suffix == ".py":
                yield TaskUnit(
                    unit_id=entry.stem,
                    location=str(entry),
                    load=lambda e=entry, i=index: self._load_file(e, generation, i),
                )

    def fingerprint(self) -> tuple[tuple[str, int, int], ...]:
        """Snapshot of every ``.py`` file under the root (path, mtime, size)."""
        if not self._root.exists():
            return ()
        snapshot = []
        for path in sorted(self._root.rglob("*.py")):
            if "__pycache__" in path.parts:
                continue
            try:
                stat = path.stat()
            except OSError:
                continue
            snapshot.append((str(path.relative_to(self._root)), stat.st_mtime_ns, stat.st_size))
        return tuple(snapshot)

    def discard_stale_modules(self) -> int:
        """Remove modules imported by earlier discovery passes from ``sys.modules``."""
        current = f"{_MODULE_PREFIX}_g{self._generation}_"
        stale = [
            name
            for name in sys.modules
            if name.startswith(f"{_MODULE_PREFIX}_g") and not name.startswith(current)
        ]
        for name in stale:
            del sys.modules[name]
        if stale:
            logger.debug("Discarded %d stale task module(s)", len(stale))
        return len(stale)

    # -- Internal --------------------------------------------------------------

    def _load_file(self, path: Path, generation: int, index: int) -> Mapping[str, Any]:
        module_name = _module_name(path.stem, generation, index)
        spec = importlib.util.spec_from_file_location(module_name, path)
        return self._exec(spec, module_name, path)

    def _load_package(self, directory: Path, generation: int, index: int) -> Mapping[str, Any]:
        init = directory / "__init__.py"
        if not init.is_file():
            msg = f"Task {directory.name} missing __init__.py file"
            raise TaskLoadError(msg)
        module_name = _module_name(directory.name, generation, index)
        spec = importlib.util.spec_from_file_location(
            module_name, init, submodule_search_locations=[str(directory)]
        )
        return self._exec(spec, module_name, directory)

    @staticmethod
    def _exec(spec: Any, module_name: str, path: Path) -> Mapping[str, Any]:
        if spec is None or spec.loader is None:
            msg = f"Cannot import task from {path}"
            raise TaskLoadError(msg)
        module = importlib.util.module_from_spec(spec)
        # Registered before exec so relative imports and dataclasses resolve.
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as exc:
            sys.modules.pop(module_name, None)
            msg = f"Error importing task {path.name}: {exc}"
            raise TaskLoadError(msg) from exc
        return {attr: getattr(module, attr) for attr in TASK_ATTRIBUTES if hasattr(module, attr)}


def _module_name(unit_id: str, generation: int, index: int) -> str:
    # The entry index keeps "a-b" and "a_b" apart once sanitised.
    safe = _UNSAFE_MODULE_CHARS_RE.sub("_", unit_id)
    return f"{_MODULE_PREFIX}_g{generation}_{index}_{safe}"
