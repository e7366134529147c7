"""Tests for the runner command-line interface."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from unittest.mock import patch

import pytest

from runner.config import Settings
from runner.main import EXIT_FAILED, EXIT_OK, EXIT_USAGE, build_parser, configure_logging, main

OK_TASK = """\
name = "Backup"
schedule = "0 3 * * *"


async def execute():
    return None
"""

FAILING_TASK = """\
name = "Flaky"


async def execute():
    raise RuntimeError("disk full")
"""


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    tasks_dir = tmp_path / "tasks"
    tasks_dir.mkdir()
    (tasks_dir / "backup.py").write_text(OK_TASK)
    (tasks_dir / "flaky.py").write_text(FAILING_TASK)
    (tasks_dir / "broken.py").write_text("name = 'Broken'\n")
    return Settings(
        tasks_dir=tasks_dir,
        history_path=tmp_path / "data" / "history.json",
        scheduler_timezone="UTC",
    )


@pytest.fixture(autouse=True)
def _cli_settings(settings: Settings):
    with (
        patch("runner.main.Settings", return_value=settings),
        patch("runner.main.configure_logging"),
    ):
        yield


# -- Parser --------------------------------------------------------------------


def test_parser_requires_command() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_parser_history_defaults() -> None:
    args = build_parser().parse_args(["history", "backup"])
    assert args.limit == 10


# -- Commands ------------------------------------------------------------------


def test_list(capsys: pytest.CaptureFixture) -> None:
    assert main(["list"]) == EXIT_OK
    out, err = capsys.readouterr()
    assert "backup" in out
    assert "Daily at 3:00 AM" in out
    assert "Manual only" in out
    assert "Never" in out
    assert "broken: Task broken missing or invalid 'execute' field" in err


def test_run_success(capsys: pytest.CaptureFixture) -> None:
    assert main(["run", "backup"]) == EXIT_OK
    assert "Task backup completed in" in capsys.readouterr().out


def test_run_failure(capsys: pytest.CaptureFixture) -> None:
    assert main(["run", "flaky"]) == EXIT_FAILED
    assert "Task flaky failed: disk full" in capsys.readouterr().err


def test_run_unknown(capsys: pytest.CaptureFixture) -> None:
    assert main(["run", "nope"]) == EXIT_USAGE
    assert "Unknown task: nope" in capsys.readouterr().err


def test_history_after_runs(capsys: pytest.CaptureFixture) -> None:
    main(["run", "flaky"])
    main(["run", "flaky"])
    capsys.readouterr()

    assert main(["history", "flaky", "--limit", "1"]) == EXIT_OK
    out = capsys.readouterr().out
    assert "Flaky (last run: Just now)" in out
    assert out.count("disk full") == 1
    assert "Total: 2, succeeded: 0, failed: 2" in out


def test_history_empty(capsys: pytest.CaptureFixture) -> None:
    assert main(["history", "backup"]) == EXIT_OK
    assert "No executions recorded for backup" in capsys.readouterr().out


def test_prune(capsys: pytest.CaptureFixture) -> None:
    main(["run", "backup"])
    capsys.readouterr()
    assert main(["prune", "--days", "1"]) == EXIT_OK
    assert "Removed 0 execution record(s)" in capsys.readouterr().out


def test_cron_valid(capsys: pytest.CaptureFixture) -> None:
    assert main(["cron", "*/5 * * * *", "--count", "3"]) == EXIT_OK
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "*/5 * * * *: Every 5 minutes (UTC)"
    assert len(lines) == 4


def test_cron_never_fires(capsys: pytest.CaptureFixture) -> None:
    assert main(["cron", "0 0 30 2 *"]) == EXIT_OK
    assert "(no upcoming run)" in capsys.readouterr().out


def test_cron_invalid(capsys: pytest.CaptureFixture) -> None:
    assert main(["cron", "61 * * * *"]) == EXIT_FAILED
    assert "Invalid cron expression" in capsys.readouterr().err


def test_invalid_configuration(capsys: pytest.CaptureFixture) -> None:
    with patch("runner.main.Settings", side_effect=lambda: Settings(scheduler_timezone="Nowhere/Atlantis")):
        assert main(["list"]) == EXIT_USAGE
    assert "Invalid configuration" in capsys.readouterr().err


# -- Logging -------------------------------------------------------------------


def test_configure_logging_adds_rotating_file(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "runner.log"
    root = logging.getLogger()
    before = list(root.handlers)
    try:
        configure_logging(Settings(log_file=log_file, log_level="debug"))
        handlers = [h for h in root.handlers if h not in before and isinstance(h, RotatingFileHandler)]
        (handler,) = handlers
        assert handler.maxBytes == 10 * 1024 * 1024
        assert handler.backupCount == 5
        assert log_file.parent.is_dir()
        assert logging.getLogger("apscheduler.executors.default").level == logging.WARNING
    finally:
        for h in list(root.handlers):
            if h not in before:
                root.removeHandler(h)
                h.close()
