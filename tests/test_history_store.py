"""Tests for HistoryStore — execution history persistence and views."""

import json
from datetime import UTC, datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from runner.history import ExecutionStatus, HistoryStore, TaskStats, relative_time_text


def _finish(
    history: HistoryStore,
    clock,
    task_id: str = "backup",
    *,
    ms: int = 0,
    success: bool = True,
    error: str | None = None,
):
    execution_id = history.record_start(task_id, "Backup")
    clock.advance(milliseconds=ms)
    return history.record_end(task_id, execution_id, success=success, error=error)


# -- Persistence ---------------------------------------------------------------


def test_missing_file_is_created(history: HistoryStore, history_path: Path) -> None:
    assert history_path.exists()
    assert json.loads(history_path.read_text()) == {"functions": {}}


def test_record_start_creates_running_record(history: HistoryStore, clock) -> None:
    execution_id = history.record_start("backup", "Backup")

    record = history.last_execution("backup")
    assert record is not None
    assert record.execution_id == execution_id
    assert record.task_id == "backup"
    assert record.status == ExecutionStatus.RUNNING
    assert record.is_running
    assert record.start_time == clock.now
    assert record.end_time is None
    assert history.display_name("backup") == "Backup"


def test_record_end_success(history: HistoryStore, clock) -> None:
    record = _finish(history, clock, ms=1500)

    assert record.status == ExecutionStatus.SUCCESS
    assert record.duration == 1500
    assert record.error is None
    assert record.end_time == clock.now


def test_record_end_failure(history: HistoryStore, clock) -> None:
    record = _finish(history, clock, ms=20, success=False, error="disk full")

    assert record.status == ExecutionStatus.FAILED
    assert record.error == "disk full"
    assert record.duration == 20


def test_duration_never_negative(history: HistoryStore, clock) -> None:
    execution_id = history.record_start("backup", "Backup")
    clock.advance(seconds=-5)
    record = history.record_end("backup", execution_id, success=True)
    assert record.duration == 0


def test_execution_ids_strictly_increase(history: HistoryStore) -> None:
    ids = [history.record_start("backup", "Backup") for _ in range(5)]
    assert [int(i) for i in ids] == sorted({int(i) for i in ids})


def test_record_end_unknown_is_noop(history: HistoryStore) -> None:
    assert history.record_end("nope", "123", success=True) is None
    history.record_start("backup", "Backup")
    assert history.record_end("backup", "not-an-id", success=True) is None
    assert history.last_execution("backup").is_running


def test_persists_camel_case(history: HistoryStore, history_path: Path, clock) -> None:
    _finish(history, clock, ms=10)

    data = json.loads(history_path.read_text())
    entry = data["functions"]["backup"]
    assert entry["name"] == "Backup"
    (execution,) = entry["executions"]
    assert execution["status"] == "success"
    assert execution["duration"] == 10
    assert "startTime" in execution
    assert "endTime" in execution


def test_reopen_keeps_records(history: HistoryStore, history_path: Path, clock) -> None:
    _finish(history, clock, ms=250)

    reopened = HistoryStore(history_path, clock=clock)
    record = reopened.last_execution("backup")
    assert record is not None
    assert record.duration == 250
    assert record.start_time.tzinfo is not None


def test_unknown_fields_are_preserved(history_path: Path, clock) -> None:
    history_path.parent.mkdir(parents=True)
    history_path.write_text(
        json.dumps(
            {
                "version": 2,
                "functions": {
                    "backup": {
                        "name": "Backup",
                        "executions": [
                            {
                                "id": "1",
                                "startTime": "2025-05-01T10:00:00.000Z",
                                "endTime": "2025-05-01T10:00:01.000Z",
                                "status": "success",
                                "duration": 1000,
                                "host": "laptop",
                            }
                        ],
                    }
                },
            }
        )
    )

    history = HistoryStore(history_path, clock=clock)
    history.record_start("backup", "Backup")

    data = json.loads(history_path.read_text())
    assert data["version"] == 2
    assert data["functions"]["backup"]["executions"][0]["host"] == "laptop"
    assert len(data["functions"]["backup"]["executions"]) == 2


def test_naive_timestamps_are_utc(history_path: Path, clock) -> None:
    history_path.parent.mkdir(parents=True)
    history_path.write_text(
        json.dumps(
            {
                "functions": {
                    "backup": {
                        "name": "Backup",
                        "executions": [{"id": "1", "startTime": "2025-05-01T10:00:00", "status": "running"}],
                    }
                }
            }
        )
    )
    record = HistoryStore(history_path, clock=clock).last_execution("backup")
    assert record.start_time == datetime(2025, 5, 1, 10, 0, tzinfo=UTC)


def test_corrupt_file_starts_empty(history_path: Path, clock) -> None:
    history_path.parent.mkdir(parents=True)
    history_path.write_text("{not json")

    history = HistoryStore(history_path, clock=clock)

    assert history.task_ids() == []
    backup = history_path.with_name("history.json.corrupt")
    assert backup.read_text() == "{not json"


def test_write_failure_keeps_memory_state(history: HistoryStore) -> None:
    with patch.object(Path, "write_text", side_effect=OSError("disk full")):
        execution_id = history.record_start("backup", "Backup")
    assert history.last_execution("backup").execution_id == execution_id


# -- Views ---------------------------------------------------------------------


def test_last_run_text_never(history: HistoryStore) -> None:
    assert history.last_run_text("backup") == "Never"


@pytest.mark.parametrize(
    ("elapsed_ms", "expected"),
    [
        (0, "Just now"),
        (59_999, "Just now"),
        (60_000, "1 minute ago"),
        (119_999, "1 minute ago"),
        (120_000, "2 minutes ago"),
        (3_599_999, "59 minutes ago"),
        (3_600_000, "1 hour ago"),
        (2 * 3_600_000, "2 hours ago"),
        (24 * 3_600_000, "1 day ago"),
        (29 * 24 * 3_600_000, "29 days ago"),
    ],
)
def test_last_run_text_boundaries(history: HistoryStore, clock, elapsed_ms: int, expected: str) -> None:
    _finish(history, clock)
    now = clock.now + timedelta(milliseconds=elapsed_ms)
    assert history.last_run_text("backup", now=now) == expected


def test_last_run_text_old_run_shows_date(history: HistoryStore, clock) -> None:
    _finish(history, clock)
    ended = clock.now
    now = ended + timedelta(days=45)
    assert history.last_run_text("backup", now=now) == ended.strftime("%x")


def test_last_run_text_uses_end_time(history: HistoryStore, clock) -> None:
    _finish(history, clock, ms=2 * 3_600_000)
    assert history.last_run_text("backup", now=clock.now) == "Just now"


def test_last_run_text_running_uses_start(history: HistoryStore, clock) -> None:
    history.record_start("backup", "Backup")
    assert history.last_run_text("backup", now=clock.now + timedelta(hours=3)) == "3 hours ago"


def test_relative_time_text_timezone() -> None:
    when = datetime(2025, 1, 1, 3, 0, tzinfo=UTC)
    now = when + timedelta(days=60)
    eastern = timezone(timedelta(hours=-5))
    assert relative_time_text(when, now, eastern) == when.astimezone(eastern).strftime("%x")


def test_history_most_recent_first(history: HistoryStore, clock) -> None:
    ids = []
    for _ in range(3):
        ids.append(history.record_start("backup", "Backup"))
        clock.advance(seconds=1)

    records = history.history("backup", limit=2)

    assert [r.execution_id for r in records] == [ids[2], ids[1]]
    assert history.history("backup", limit=0) == []
    assert history.history("unknown") == []


def test_stats(history: HistoryStore, clock) -> None:
    _finish(history, clock, ms=1000)
    _finish(history, clock, ms=3000)
    _finish(history, clock, ms=2000, success=False, error="boom")

    stats = history.stats("backup")

    assert stats.total_executions == 3
    assert stats.successful_executions == 2
    assert stats.failed_executions == 1
    assert stats.average_duration_ms == 2000
    assert stats.success_rate == pytest.approx(2 / 3)


def test_stats_empty(history: HistoryStore) -> None:
    assert history.stats("backup") == TaskStats()


def test_running(history: HistoryStore, clock) -> None:
    history.record_start("a", "A")
    _finish(history, clock, "b")
    assert [r.task_id for r in history.running()] == ["a"]


# -- Maintenance ---------------------------------------------------------------


def _record_at(history: HistoryStore, clock, when: datetime, task_id: str = "backup") -> str:
    clock.now = when
    execution_id = history.record_start(task_id, "Backup")
    history.record_end(task_id, execution_id, success=True)
    return execution_id


def test_prune_removes_old_records(history: HistoryStore, clock) -> None:
    now = clock.now
    _record_at(history, clock, now - timedelta(days=40))
    _record_at(history, clock, now - timedelta(days=31))
    boundary = _record_at(history, clock, now - timedelta(days=30))
    recent = _record_at(history, clock, now - timedelta(days=1))

    assert history.prune(30, now=now) == 2
    assert [r.execution_id for r in history.history("backup")] == [recent, boundary]

    assert history.prune(30, now=now) == 0


def test_prune_persists(history: HistoryStore, history_path: Path, clock) -> None:
    now = clock.now
    _record_at(history, clock, now - timedelta(days=90))
    history.prune(30, now=now)

    data = json.loads(history_path.read_text())
    assert data["functions"]["backup"]["executions"] == []


def test_reconcile_interrupted(history: HistoryStore, clock) -> None:
    history.record_start("backup", "Backup")
    clock.advance(minutes=5)

    assert history.reconcile_interrupted() == 1
    record = history.last_execution("backup")
    assert record.status == ExecutionStatus.FAILED
    assert record.error == "Interrupted"
    assert record.duration == 5 * 60_000

    assert history.reconcile_interrupted() == 0
