"""Task registry — sources, validation and the active task table."""

from runner.registry.models import TaskDescriptor, validate_task
from runner.registry.registry import TaskRegistry
from runner.registry.sources import (
    DirectoryTaskSource,
    StaticTaskSource,
    TaskSource,
    TaskUnit,
)
from runner.registry.watcher import SourceWatcher

__all__ = [
    "DirectoryTaskSource",
    "SourceWatcher",
    "StaticTaskSource",
    "TaskDescriptor",
    "TaskRegistry",
    "TaskSource",
    "TaskUnit",
    "validate_task",
]
