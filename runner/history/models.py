"""History data models — execution records and the persisted document."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_ONE_MS = timedelta(milliseconds=1)


class ExecutionStatus(StrEnum):
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class _HistoryModel(BaseModel):
    """Base for persisted models: camelCase on disk, unknown fields kept."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class ExecutionRecord(_HistoryModel):
    """One attempt to run a task.

    Created as ``running`` when the attempt starts and completed exactly
    once when it ends. ``duration`` is in milliseconds.
    """

    id: str
    task_id: str | None = None
    start_time: datetime
    end_time: datetime | None = None
    status: ExecutionStatus = ExecutionStatus.RUNNING
    error: str | None = None
    duration: int | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @property
    def execution_id(self) -> str:
        return self.id

    @property
    def is_running(self) -> bool:
        return self.status == ExecutionStatus.RUNNING

    def complete(self, end_time: datetime, *, success: bool, error: str | None = None) -> None:
        """Mark the record finished and derive its duration."""
        self.end_time = end_time
        self.status = ExecutionStatus.SUCCESS if success else ExecutionStatus.FAILED
        self.error = None if success else error
        self.duration = max(0, (end_time - self.start_time) // _ONE_MS)


class TaskHistory(_HistoryModel):
    """Execution records for one task, oldest first."""

    name: str
    executions: list[ExecutionRecord] = Field(default_factory=list)


class HistoryDocument(_HistoryModel):
    """The whole persisted history, keyed by task id."""

    functions: dict[str, TaskHistory] = Field(default_factory=dict)


@dataclass(frozen=True)
class TaskStats:
    """Aggregate statistics for one task's executions."""

    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    average_duration_ms: float = 0.0
    success_rate: float = 0.0
