"""Six/seven-field cron expressions and next-fire-time evaluation.

Format: ``second minute hour day-of-month month day-of-week [year]``
Example: ``"*/5 * * * * ?"`` fires every five seconds.

Evaluation happens on the wall clock of the job's time zone. The search walks
the zone's UTC-offset segments one at a time, so wall times skipped by a
spring-forward transition never fire and wall times repeated by a fall-back
transition fire on each occurrence.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from httpcron.cron.fields import FIELD_SPECS, CronField, parse_field
from httpcron.errors import CronValidationError, NoUpcomingTrigger

LOOKAHEAD_YEARS = 5
_LOOKAHEAD = timedelta(days=366 * LOOKAHEAD_YEARS)
_ONE_SECOND = timedelta(seconds=1)

# Offset transitions are assumed to be at least this far apart
_TRANSITION_STEP = timedelta(days=7)


def resolve_timezone(name: str | tzinfo | None) -> tzinfo:
    """Return a tzinfo for an IANA zone name; None means UTC.

    Raises:
        ValueError: If the zone name is unknown.
    """
    if name is None:
        return timezone.utc
    if isinstance(name, tzinfo):
        return name
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        msg = f"Unknown time zone '{name}'"
        raise ValueError(msg) from exc


def _cron_weekday(moment: datetime) -> int:
    """Map Python's Monday=0 weekday onto cron's Sunday=1 numbering."""
    return (moment.weekday() + 1) % 7 + 1


def _start_of_next_day(moment: datetime) -> datetime:
    return datetime(moment.year, moment.month, moment.day) + timedelta(days=1)


def _first_offset_change(
    zone: tzinfo, start: datetime, end: datetime, offset: timedelta
) -> datetime | None:
    """First instant in ``(start, end]`` whose UTC offset in *zone* differs.

    Both bounds are aware UTC datetimes with whole seconds.
    """
    cursor = start
    while cursor < end:
        upper = min(cursor + _TRANSITION_STEP, end)
        if upper.astimezone(zone).utcoffset() == offset:
            cursor = upper
            continue
        lower = cursor
        while (upper - lower) > _ONE_SECOND:
            half = int((upper - lower).total_seconds()) // 2
            middle = lower + timedelta(seconds=half)
            if middle.astimezone(zone).utcoffset() == offset:
                lower = middle
            else:
                upper = middle
        return upper
    return None


@dataclass(frozen=True)
class CronExpression:
    """A parsed cron expression: seven normalized field matchers."""

    expression: str
    second: CronField
    minute: CronField
    hour: CronField
    day_of_month: CronField
    month: CronField
    day_of_week: CronField
    year: CronField

    @classmethod
    def parse(cls, expression: str) -> CronExpression:
        """Parse a six- or seven-field expression.

        Raises:
            CronValidationError: On wrong field count or malformed fields.
        """
        parts = expression.strip().split()
        if len(parts) not in (6, 7):
            raise CronValidationError(
                expression,
                f"expected 6 or 7 fields, got {len(parts)}",
            )
        if len(parts) == 6:
            parts.append("*")
        fields = [
            parse_field(text, spec, expression)
            for text, spec in zip(parts, FIELD_SPECS)
        ]
        return cls(expression.strip(), *fields)

    def __str__(self) -> str:
        return self.expression

    # ------------------------------------------------------------------
    # Pure wall-clock matching
    # ------------------------------------------------------------------

    def matches(self, moment: datetime) -> bool:
        """Whether a wall-clock datetime satisfies every field."""
        return (
            moment.year in self.year
            and moment.month in self.month
            and self._day_matches(moment)
            and moment.hour in self.hour
            and moment.minute in self.minute
            and moment.second in self.second
        )

    def _day_matches(self, moment: datetime) -> bool:
        return (
            moment.day in self.day_of_month
            and _cron_weekday(moment) in self.day_of_week
        )

    def next_wall_time(self, start: datetime, end: datetime) -> datetime | None:
        """Earliest naive wall time in ``[start, end]`` matching all fields.

        Fields are validated top-down; a mismatch jumps straight to the next
        allowed value of that field and resets the lower fields, rolling the
        higher field over when the field is exhausted.
        """
        moment = start.replace(microsecond=0)
        if moment < start:
            moment += _ONE_SECOND

        while moment <= end:
            if moment.year not in self.year:
                year = self.year.next_from(moment.year)
                if year is None:
                    return None
                moment = datetime(year, 1, 1)
                continue

            if moment.month not in self.month:
                month = self.month.next_from(moment.month)
                if month is None:
                    moment = datetime(moment.year + 1, 1, 1)
                else:
                    moment = datetime(moment.year, month, 1)
                continue

            if not self._day_matches(moment):
                moment = _start_of_next_day(moment)
                continue

            if moment.hour not in self.hour:
                hour = self.hour.next_from(moment.hour)
                if hour is None:
                    moment = _start_of_next_day(moment)
                else:
                    moment = moment.replace(hour=hour, minute=0, second=0)
                continue

            if moment.minute not in self.minute:
                minute = self.minute.next_from(moment.minute)
                if minute is None:
                    moment = moment.replace(minute=0, second=0) + timedelta(hours=1)
                else:
                    moment = moment.replace(minute=minute, second=0)
                continue

            if moment.second not in self.second:
                second = self.second.next_from(moment.second)
                if second is None:
                    moment = moment.replace(second=0) + timedelta(minutes=1)
                else:
                    moment = moment.replace(second=second)
                continue

            return moment
        return None

    # ------------------------------------------------------------------
    # Zone-aware evaluation
    # ------------------------------------------------------------------

    def next_fire_time(
        self, after: datetime, zone: str | tzinfo | None = None
    ) -> datetime:
        """Next fire instant strictly after *after*, expressed in *zone*.

        Naive *after* values are taken as UTC.

        Raises:
            NoUpcomingTrigger: If nothing matches within the look-ahead window.
        """
        tz = resolve_timezone(zone)
        if after.tzinfo is None:
            after = after.replace(tzinfo=timezone.utc)
        after = after.astimezone(timezone.utc)

        horizon = after + _LOOKAHEAD
        cursor = after.replace(microsecond=0) + _ONE_SECOND

        while cursor < horizon:
            offset = cursor.astimezone(tz).utcoffset() or timedelta(0)
            wall = self.next_wall_time(
                (cursor + offset).replace(tzinfo=None),
                (horizon + offset).replace(tzinfo=None),
            )
            if wall is None:
                break
            candidate = (wall - offset).replace(tzinfo=timezone.utc)
            transition = _first_offset_change(tz, cursor, candidate, offset)
            if transition is None:
                return candidate.astimezone(tz)
            # The offset changed before the candidate: rescan from the transition
            cursor = transition

        raise NoUpcomingTrigger(self.expression, LOOKAHEAD_YEARS)

    def upcoming(
        self, after: datetime, zone: str | tzinfo | None = None, count: int = 5
    ) -> Iterator[datetime]:
        """Yield the next *count* fire instants after *after*."""
        moment = after
        for _ in range(count):
            moment = self.next_fire_time(moment, zone)
            yield moment


@lru_cache(maxsize=256)
def parse_cron(expression: str) -> CronExpression:
    """Parse and cache a cron expression.

    Raises:
        CronValidationError: If the expression is invalid.
    """
    return CronExpression.parse(expression)


def next_fire_time(
    expression: str | CronExpression,
    zone: str | tzinfo | None,
    after: datetime,
) -> datetime:
    """Compute the next fire instant of *expression* after *after* in *zone*."""
    if isinstance(expression, str):
        expression = parse_cron(expression)
    return expression.next_fire_time(after, zone)
