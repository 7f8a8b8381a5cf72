"""Cron field parsing: one normalized matcher per field.

Each field string (``*``, ``5``, ``1-5``, ``*/15``, ``MON-FRI``, ``1,15,30``,
``?``) is turned into a :class:`CronField` holding the sorted set of accepted
values. Matching and "next allowed value" lookups are then plain set and
bisect operations, independent of clocks and time zones.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass

from httpcron.errors import CronValidationError

MONTH_NAMES: dict[str, int] = {
    name: index
    for index, name in enumerate(
        ("JAN", "FEB", "MAR", "APR", "MAY", "JUN",
         "JUL", "AUG", "SEP", "OCT", "NOV", "DEC"),
        start=1,
    )
}

# Day-of-week numbering follows Quartz: 1 = Sunday ... 7 = Saturday
WEEKDAY_NAMES: dict[str, int] = {
    name: index
    for index, name in enumerate(
        ("SUN", "MON", "TUE", "WED", "THU", "FRI", "SAT"), start=1
    )
}


@dataclass(frozen=True)
class FieldSpec:
    """Static description of one cron field."""

    name: str
    minimum: int
    maximum: int
    names: dict[str, int] | None = None
    allows_question_mark: bool = False


SECOND = FieldSpec("second", 0, 59)
MINUTE = FieldSpec("minute", 0, 59)
HOUR = FieldSpec("hour", 0, 23)
DAY_OF_MONTH = FieldSpec("day-of-month", 1, 31, allows_question_mark=True)
MONTH = FieldSpec("month", 1, 12, names=MONTH_NAMES)
DAY_OF_WEEK = FieldSpec("day-of-week", 1, 7, names=WEEKDAY_NAMES, allows_question_mark=True)
YEAR = FieldSpec("year", 1970, 2099)

FIELD_SPECS: tuple[FieldSpec, ...] = (
    SECOND,
    MINUTE,
    HOUR,
    DAY_OF_MONTH,
    MONTH,
    DAY_OF_WEEK,
    YEAR,
)


@dataclass(frozen=True)
class CronField:
    """Accepted values of one field, kept sorted for next-value lookups."""

    spec: FieldSpec
    values: tuple[int, ...]

    def __contains__(self, value: int) -> bool:
        index = bisect.bisect_left(self.values, value)
        return index < len(self.values) and self.values[index] == value

    @property
    def unconstrained(self) -> bool:
        return len(self.values) == self.spec.maximum - self.spec.minimum + 1

    def next_from(self, value: int) -> int | None:
        """Smallest accepted value ``>= value``, or None when the field overflows."""
        index = bisect.bisect_left(self.values, value)
        if index == len(self.values):
            return None
        return self.values[index]


def _parse_value(token: str, spec: FieldSpec, expression: str) -> int:
    if spec.names and token.upper() in spec.names:
        return spec.names[token.upper()]
    if not token.isdigit():
        raise CronValidationError(
            expression, f"'{token}' is not a valid {spec.name} value"
        )
    value = int(token)
    if not spec.minimum <= value <= spec.maximum:
        raise CronValidationError(
            expression,
            f"{spec.name} value {value} is out of range "
            f"{spec.minimum}-{spec.maximum}",
        )
    return value


def _parse_step(token: str, spec: FieldSpec, expression: str) -> int:
    if not token.isdigit() or int(token) == 0:
        raise CronValidationError(
            expression, f"invalid {spec.name} step '{token}'"
        )
    return int(token)


def _parse_part(part: str, spec: FieldSpec, expression: str) -> range:
    """Expand one comma-separated element into a range of values."""
    if not part:
        raise CronValidationError(expression, f"empty element in {spec.name} field")

    base, slash, step_token = part.partition("/")
    step = _parse_step(step_token, spec, expression) if slash else 1

    if base in ("*", "?"):
        if base == "?" and not spec.allows_question_mark:
            raise CronValidationError(
                expression, f"'?' is not allowed in the {spec.name} field"
            )
        return range(spec.minimum, spec.maximum + 1, step)

    start_token, dash, end_token = base.partition("-")
    start = _parse_value(start_token, spec, expression)
    if dash:
        end = _parse_value(end_token, spec, expression)
        if end < start:
            raise CronValidationError(
                expression, f"{spec.name} range '{base}' is reversed"
            )
    elif slash:
        # "a/b" runs from a to the end of the field
        end = spec.maximum
    else:
        end = start
    return range(start, end + 1, step)


def parse_field(text: str, spec: FieldSpec, expression: str) -> CronField:
    """Parse one field of *expression* into a :class:`CronField`.

    Raises:
        CronValidationError: On malformed syntax or out-of-range values.
    """
    values: set[int] = set()
    for part in text.split(","):
        values.update(_parse_part(part, spec, expression))
    return CronField(spec=spec, values=tuple(sorted(values)))
