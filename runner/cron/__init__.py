"""Cron engine — parse, validate and evaluate 5-field cron expressions."""

from runner.cron.expression import (
    CronExpression,
    is_due,
    next_fire_time,
    validate,
)
from runner.errors import CronParseError

__all__ = [
    "CronExpression",
    "CronParseError",
    "is_due",
    "next_fire_time",
    "validate",
]
