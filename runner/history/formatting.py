"""Human-readable renderings of execution times."""

from __future__ import annotations

from datetime import datetime, timedelta, tzinfo

_MINUTE_MS = 60_000
_HOUR_MS = 60 * _MINUTE_MS
_DAY_MS = 24 * _HOUR_MS
_MONTH_MS = 30 * _DAY_MS


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def relative_time_text(when: datetime, now: datetime, tz: tzinfo | None = None) -> str:
    """Describe how long ago *when* was, relative to *now*.

    Under a minute is "Just now"; then whole minutes, hours and days; from
    30 days on, the locale's calendar date for *when* in *tz*.
    """
    elapsed_ms = (now - when) // timedelta(milliseconds=1)
    if elapsed_ms < _MINUTE_MS:
        return "Just now"
    if elapsed_ms < _HOUR_MS:
        return _plural(elapsed_ms // _MINUTE_MS, "minute")
    if elapsed_ms < _DAY_MS:
        return _plural(elapsed_ms // _HOUR_MS, "hour")
    if elapsed_ms < _MONTH_MS:
        return _plural(elapsed_ms // _DAY_MS, "day")
    return when.astimezone(tz).strftime("%x")
