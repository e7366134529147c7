"""CronExpression — 5-field cron expressions on top of croniter.

Fields are ``minute hour day-of-month month day-of-week``. croniter does
the field parsing (ranges, steps, lists, month and weekday names, ``7``
for Sunday) and the searching; this module pins the syntax to exactly
five fields and applies Vixie day matching: day-of-month and day-of-week
are OR-ed only when neither field starts with ``*``.

Evaluation never looks at the wall clock: callers pass the instant to
test, already converted to the timezone the schedule is meant for.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import TYPE_CHECKING

from croniter import CroniterBadDateError, CroniterError, croniter

from runner.errors import CronParseError

if TYPE_CHECKING:
    from collections.abc import Iterator

CRON_FIELD_COUNT = 5

# (low, high) per field, used to expand croniter's "*" shorthand.
_FIELD_RANGES = ((0, 59), (0, 23), (1, 31), (1, 12), (0, 6))

# Upper bound for next-fire-time searches.
MAX_SEARCH_YEARS = 5


@dataclass(frozen=True)
class CronExpression:
    """A parsed cron expression.

    Attributes:
        expression: The original text.
        minutes, hours, days, months, weekdays: Allowed values per field
            (weekdays use cron numbering, Sunday = 0).
        day_or: Day-of-month and day-of-week are both restricted, so a
            day matching either one fires.
    """

    expression: str
    minutes: frozenset[int]
    hours: frozenset[int]
    days: frozenset[int]
    months: frozenset[int]
    weekdays: frozenset[int]
    day_or: bool

    @classmethod
    def parse(cls, expression: str) -> CronExpression:
        """Parse *expression*. Raises ``CronParseError`` if it is malformed."""
        if not isinstance(expression, str):
            msg = f"Cron expression must be a string, got {type(expression).__name__}"
            raise CronParseError(msg)
        return _parse_cached(expression)

    # -- Evaluation ------------------------------------------------------------

    def matches(self, at: datetime) -> bool:
        """Return True if the minute containing *at* is a firing minute."""
        return croniter.match(self.expression, at, day_or=self.day_or)

    def next_fire_time(self, after: datetime) -> datetime | None:
        """Return the first firing minute strictly after *after*.

        The result keeps *after*'s timezone. Returns None when nothing
        matches within ``MAX_SEARCH_YEARS`` (e.g. ``0 0 30 2 *``).
        """
        try:
            return self._iter(after).get_next(datetime)
        except CroniterBadDateError:
            return None

    def fire_times(self, after: datetime) -> Iterator[datetime]:
        """Yield successive firing minutes after *after*."""
        return self._iter(after).all_next(datetime)

    def _iter(self, after: datetime) -> croniter:
        return croniter(
            self.expression,
            after,
            day_or=self.day_or,
            max_years_between_matches=MAX_SEARCH_YEARS,
        )

    def __str__(self) -> str:
        return self.expression


# -- Module-level helpers -------------------------------------------------------


def validate(expression: str) -> bool:
    """Return True if *expression* is a well-formed 5-field cron expression."""
    if not isinstance(expression, str):
        return False
    try:
        CronExpression.parse(expression)
    except CronParseError:
        return False
    return True


def is_due(expression: str, at: datetime) -> bool:
    """Return True if *expression* fires in the minute containing *at*.

    Never raises; an invalid expression is simply never due. Validate
    expressions up front to tell the two cases apart.
    """
    try:
        cron = CronExpression.parse(expression)
    except CronParseError:
        return False
    return cron.matches(at)


def next_fire_time(expression: str, after: datetime) -> datetime | None:
    """Return the next firing minute after *after*. Raises ``CronParseError``."""
    return CronExpression.parse(expression).next_fire_time(after)


# -- Parsing --------------------------------------------------------------------


@lru_cache(maxsize=256)
def _parse_cached(expression: str) -> CronExpression:
    parts = expression.split()
    # croniter also takes seconds/year columns and @-aliases; only plain
    # 5-field cron is accepted here.
    if len(parts) != CRON_FIELD_COUNT:
        msg = f"Expected 5 fields in cron expression, got {len(parts)}: {expression!r}"
        raise CronParseError(msg)

    try:
        expanded, _ = croniter.expand(expression)
    except CroniterError as exc:
        msg = f"Cannot parse {expression!r}: {exc}"
        raise CronParseError(msg) from exc

    minutes, hours, days, months, weekdays = (
        _allowed(values, low, high) for values, (low, high) in zip(expanded, _FIELD_RANGES, strict=True)
    )
    return CronExpression(
        expression=expression,
        minutes=minutes,
        hours=hours,
        days=days,
        months=months,
        weekdays=weekdays,
        day_or=not (parts[2].startswith("*") or parts[4].startswith("*")),
    )


def _allowed(values: list, low: int, high: int) -> frozenset[int]:
    if values == ["*"]:
        return frozenset(range(low, high + 1))
    return frozenset(v for v in values if isinstance(v, int))
