"""Execution history — records, persistence and derived views."""

from runner.history.formatting import relative_time_text
from runner.history.models import (
    ExecutionRecord,
    ExecutionStatus,
    HistoryDocument,
    TaskHistory,
    TaskStats,
)
from runner.history.store import HistoryStore

__all__ = [
    "ExecutionRecord",
    "ExecutionStatus",
    "HistoryDocument",
    "HistoryStore",
    "TaskHistory",
    "TaskStats",
    "relative_time_text",
]
