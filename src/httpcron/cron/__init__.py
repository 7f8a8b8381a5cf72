"""Cron engine: expression parsing and next-fire-time evaluation."""

from httpcron.cron.expression import (
    LOOKAHEAD_YEARS,
    CronExpression,
    next_fire_time,
    parse_cron,
    resolve_timezone,
)
from httpcron.cron.fields import CronField

__all__ = [
    "LOOKAHEAD_YEARS",
    "CronExpression",
    "CronField",
    "next_fire_time",
    "parse_cron",
    "resolve_timezone",
]
