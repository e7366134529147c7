"""Runner entry point and command-line interface.

Usage examples:
    # Run the scheduler until interrupted
    runner serve

    # Show registered tasks with their next and last run
    runner list

    # Trigger a task by hand (exit code 0 on success)
    runner run backup

    # Check a cron expression
    runner cron "*/5 * * * *" --count 3
"""

from __future__ import annotations

import argparse
import asyncio
import itertools
import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler

from pydantic import ValidationError

from runner.app import RunnerApp
from runner.config import Settings
from runner.context import RunnerContext
from runner.cron import CronExpression
from runner.errors import CronParseError, TaskNotFoundError
from runner.notifications.formatting import format_duration, format_schedule

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def configure_logging(settings: Settings) -> None:
    """Root logging setup: console always, rotating file when configured."""
    logging.basicConfig(format=LOG_FORMAT, level=getattr(logging, settings.log_level, logging.INFO))
    if settings.log_file is not None:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            settings.log_file,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(handler)
    # Every job run is logged at INFO by APScheduler; the tick jobs make that noisy.
    logging.getLogger("apscheduler.executors.default").setLevel(logging.WARNING)


def _fmt_time(value: datetime | None, settings: Settings) -> str:
    if value is None:
        return "-"
    return value.astimezone(settings.tzinfo).strftime("%Y-%m-%d %H:%M")


# -- Commands ------------------------------------------------------------------


def cmd_serve(app: RunnerApp, args: argparse.Namespace) -> int:
    logger.info("Starting runner (tasks=%s)", app.context.settings.tasks_dir)
    asyncio.run(app.serve())
    return EXIT_OK


def cmd_list(app: RunnerApp, args: argparse.Namespace) -> int:
    settings = app.context.settings
    app.registry.reload()
    tasks = app.registry.list_all()
    if not tasks:
        print(f"No tasks found in {settings.tasks_dir}")
    for task in tasks:
        schedule = format_schedule(task.schedule) if task.schedule else "Manual only"
        next_run = _fmt_time(app.engine.next_run_time(task.id), settings)
        last_run = app.history.last_run_text(task.id)
        print(f"{task.id:20s} {task.display_name:30s} {schedule:30s} next: {next_run:16s} last: {last_run}")
    for unit_id, reason in sorted(app.registry.errors.items()):
        print(f"! {unit_id}: {reason}", file=sys.stderr)
    return EXIT_OK


def cmd_run(app: RunnerApp, args: argparse.Namespace) -> int:
    app.registry.reload()
    return asyncio.run(_run_once(app, args.task_id))


async def _run_once(app: RunnerApp, task_id: str) -> int:
    try:
        result = await app.run_now(task_id)
    except TaskNotFoundError as exc:
        print(exc, file=sys.stderr)
        return EXIT_USAGE
    except Exception as exc:
        print(f"Task {task_id} failed: {exc}", file=sys.stderr)
        return EXIT_FAILED
    finally:
        await app.notifier.drain()

    if result.skipped:
        print(f"Task {task_id} is already running", file=sys.stderr)
        return EXIT_FAILED
    print(f"Task {task_id} completed in {format_duration(result.duration_ms or 0)}")
    return EXIT_OK


def cmd_history(app: RunnerApp, args: argparse.Namespace) -> int:
    settings = app.context.settings
    records = app.history.history(args.task_id, limit=args.limit)
    if not records:
        print(f"No executions recorded for {args.task_id}")
        return EXIT_OK

    name = app.history.display_name(args.task_id) or args.task_id
    print(f"{name} (last run: {app.history.last_run_text(args.task_id)})")
    for record in records:
        duration = format_duration(record.duration) if record.duration is not None else "-"
        line = f"  {_fmt_time(record.start_time, settings)}  {record.status:8s} {duration:>8s}"
        if record.error:
            line += f"  {record.error}"
        print(line)

    stats = app.history.stats(args.task_id)
    print(
        f"Total: {stats.total_executions}, succeeded: {stats.successful_executions}, "
        f"failed: {stats.failed_executions}, success rate: {stats.success_rate:.0%}, "
        f"average: {format_duration(round(stats.average_duration_ms))}"
    )
    return EXIT_OK


def cmd_prune(app: RunnerApp, args: argparse.Namespace) -> int:
    removed = app.prune_history(args.days)
    print(f"Removed {removed} execution record(s)")
    return EXIT_OK


def cmd_cron(settings: Settings, args: argparse.Namespace) -> int:
    try:
        cron = CronExpression.parse(args.expression)
    except CronParseError as exc:
        print(f"Invalid cron expression: {exc}", file=sys.stderr)
        return EXIT_FAILED

    print(f"{cron}: {format_schedule(cron.expression)} ({settings.scheduler_timezone})")
    upcoming = list(itertools.islice(cron.fire_times(datetime.now(settings.tzinfo)), args.count))
    for at in upcoming:
        print(f"  {at:%Y-%m-%d %H:%M %a}")
    if len(upcoming) < args.count:
        print("  (no upcoming run)")
    return EXIT_OK


# -- Entry point ---------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="runner", description="Run async Python tasks on cron schedules")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Run the scheduler until interrupted")
    sub.add_parser("list", help="List registered tasks")

    run = sub.add_parser("run", help="Run a task now")
    run.add_argument("task_id")

    history = sub.add_parser("history", help="Show recent executions of a task")
    history.add_argument("task_id")
    history.add_argument("--limit", "-n", type=int, default=10, help="Max records (default: 10)")

    prune = sub.add_parser("prune", help="Delete old execution records")
    prune.add_argument("--days", type=int, default=None, help="Keep this many days (default: settings)")

    cron = sub.add_parser("cron", help="Validate a cron expression and show upcoming runs")
    cron.add_argument("expression")
    cron.add_argument("--count", "-c", type=int, default=5, help="Upcoming runs to show (default: 5)")

    return parser


_APP_COMMANDS = {
    "serve": cmd_serve,
    "list": cmd_list,
    "run": cmd_run,
    "history": cmd_history,
    "prune": cmd_prune,
}


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = Settings()
    except ValidationError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return EXIT_USAGE

    configure_logging(settings)

    if args.command == "cron":
        return cmd_cron(settings, args)

    app = RunnerApp(RunnerContext.from_settings(settings))
    return _APP_COMMANDS[args.command](app, args)


if __name__ == "__main__":
    sys.exit(main())
