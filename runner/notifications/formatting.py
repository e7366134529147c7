"""Text helpers shared by notification sinks."""

from __future__ import annotations

import re

from runner.cron import CronExpression, CronParseError

MAX_ERROR_LENGTH = 100

_DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
_NUMBER_RE = re.compile(r"^\d+$")


def truncate(text: str, limit: int = MAX_ERROR_LENGTH) -> str:
    """Cut *text* to *limit* characters, marking the cut with ``...``."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def format_duration(duration_ms: float) -> str:
    """Render a duration: ``850ms``, ``1.5s``, ``2m 5s``, ``1h 3m``."""
    duration_ms = int(duration_ms)
    if duration_ms < 1000:
        return f"{duration_ms}ms"
    if duration_ms < 60_000:
        return f"{duration_ms / 1000:.1f}s"
    if duration_ms < 3_600_000:
        minutes, rest = divmod(duration_ms, 60_000)
        return f"{minutes}m {rest // 1000}s"
    hours, rest = divmod(duration_ms, 3_600_000)
    return f"{hours}h {rest // 60_000}m"


def _clock_time(hour: int, minute: int) -> str:
    suffix = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12}:{minute:02d} {suffix}"


def format_schedule(schedule: str) -> str:
    """Describe common cron shapes in words; anything else is returned as-is."""
    try:
        CronExpression.parse(schedule)
    except CronParseError:
        return schedule

    minute, hour, day, month, weekday = schedule.split()

    if (hour, day, month, weekday) == ("*", "*", "*", "*"):
        if minute == "*":
            return "Every minute"
        if minute.startswith("*/") and _NUMBER_RE.match(minute[2:]):
            return f"Every {minute[2:]} minutes"
        if _NUMBER_RE.match(minute):
            return f"Every hour at :{int(minute):02d}"

    if (
        minute == "0"
        and hour.startswith("*/")
        and _NUMBER_RE.match(hour[2:])
        and (day, month, weekday) == ("*", "*", "*")
    ):
        step = int(hour[2:])
        return "Every hour" if step == 1 else f"Every {step} hours"

    if not (_NUMBER_RE.match(minute) and _NUMBER_RE.match(hour)) or month != "*":
        return schedule

    at = _clock_time(int(hour), int(minute))
    if day == "*" and weekday == "*":
        return f"Daily at {at}"
    if day == "*" and weekday == "1-5":
        return f"Weekdays at {at}"
    if day == "*" and _NUMBER_RE.match(weekday):
        return f"Every {_DAY_NAMES[int(weekday) % 7]} at {at}"
    if weekday == "*" and day == "1":
        return f"First day of every month at {at}"
    return schedule
