"""Tests for the cron engine: field parsing, expression parsing, next fire time."""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from httpcron.cron import CronExpression, next_fire_time, parse_cron, resolve_timezone
from httpcron.cron.fields import DAY_OF_MONTH, DAY_OF_WEEK, MONTH, SECOND, parse_field
from httpcron.errors import CronValidationError, InvalidCronExpression, NoUpcomingTrigger

UTC = timezone.utc
NEW_YORK = ZoneInfo("America/New_York")


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=UTC)


# ── parse_field ─────────────────────────────────────────────────────────


class TestParseField:
    def test_wildcard_covers_whole_range(self) -> None:
        field = parse_field("*", SECOND, "*")
        assert field.values == tuple(range(60))
        assert field.unconstrained is True

    def test_single_value(self) -> None:
        assert parse_field("7", SECOND, "7").values == (7,)

    def test_list_is_sorted_and_deduplicated(self) -> None:
        assert parse_field("30,5,5,10", SECOND, "x").values == (5, 10, 30)

    def test_range(self) -> None:
        assert parse_field("3-6", SECOND, "x").values == (3, 4, 5, 6)

    def test_star_step(self) -> None:
        assert parse_field("*/15", SECOND, "x").values == (0, 15, 30, 45)

    def test_start_step_runs_to_field_end(self) -> None:
        assert parse_field("50/4", SECOND, "x").values == (50, 54, 58)

    def test_range_step(self) -> None:
        assert parse_field("10-20/5", SECOND, "x").values == (10, 15, 20)

    def test_month_names(self) -> None:
        assert parse_field("jan,MAR-may", MONTH, "x").values == (1, 3, 4, 5)

    def test_weekday_names_use_sunday_one(self) -> None:
        assert parse_field("SUN,MON-FRI", DAY_OF_WEEK, "x").values == (1, 2, 3, 4, 5, 6)

    def test_question_mark_in_day_field(self) -> None:
        assert parse_field("?", DAY_OF_MONTH, "x").unconstrained is True

    def test_next_from(self) -> None:
        field = parse_field("10,20,30", SECOND, "x")
        assert field.next_from(0) == 10
        assert field.next_from(20) == 20
        assert field.next_from(21) == 30
        assert field.next_from(31) is None

    def test_contains(self) -> None:
        field = parse_field("10,20", SECOND, "x")
        assert 10 in field
        assert 15 not in field

    @pytest.mark.parametrize(
        ("text", "message"),
        [
            ("60", "out of range"),
            ("*/0", "step"),
            ("5/x", "step"),
            ("9-3", "reversed"),
            ("a", "not a valid"),
            ("1,,2", "empty element"),
            ("?", "not allowed"),
            ("1-2-3", "not a valid"),
        ],
    )
    def test_invalid_second_field(self, text: str, message: str) -> None:
        with pytest.raises(CronValidationError, match=message):
            parse_field(text, SECOND, text)

    def test_weekday_zero_rejected(self) -> None:
        with pytest.raises(CronValidationError, match="out of range"):
            parse_field("0", DAY_OF_WEEK, "0")


# ── CronExpression.parse ────────────────────────────────────────────────


class TestCronExpressionParse:
    def test_six_fields_default_year_to_every_year(self) -> None:
        cron = CronExpression.parse("*/5 * * * * ?")
        assert cron.second.values == tuple(range(0, 60, 5))
        assert cron.year.unconstrained is True

    def test_seven_fields(self) -> None:
        cron = CronExpression.parse("0 0 0 1 1 ? 2026")
        assert cron.year.values == (2026,)

    def test_strips_whitespace(self) -> None:
        assert str(CronExpression.parse("  0   0  12 * * ?  ")) == "0   0  12 * * ?"

    @pytest.mark.parametrize(
        "expression",
        ["* * * * *", "", "* * * * * * * *"],
    )
    def test_wrong_field_count(self, expression: str) -> None:
        with pytest.raises(CronValidationError, match="expected 6 or 7 fields"):
            CronExpression.parse(expression)

    def test_invalid_day_of_month_rejected(self) -> None:
        with pytest.raises(CronValidationError, match="day-of-month value 99") as exc_info:
            CronExpression.parse("*/5 * * 99 * ?")
        assert exc_info.value.expression == "*/5 * * 99 * ?"

    def test_invalid_month_rejected(self) -> None:
        with pytest.raises(InvalidCronExpression, match="month"):
            CronExpression.parse("0 0 0 1 13 ?")

    def test_invalid_year_rejected(self) -> None:
        with pytest.raises(CronValidationError, match="year"):
            CronExpression.parse("0 0 0 1 1 ? 2200")

    def test_validation_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            CronExpression.parse("nope")

    def test_parse_cron_caches(self) -> None:
        assert parse_cron("0 * * * * ?") is parse_cron("0 * * * * ?")

    def test_matches_wall_time(self) -> None:
        cron = CronExpression.parse("30 15 10 * * ?")
        assert cron.matches(datetime(2024, 5, 1, 10, 15, 30))
        assert not cron.matches(datetime(2024, 5, 1, 10, 15, 31))


# ── next_fire_time ──────────────────────────────────────────────────────


class TestNextFireTime:
    def test_every_five_seconds_from_boundary(self) -> None:
        result = next_fire_time("*/5 * * * * ?", "UTC", _utc(2024, 5, 1, 12, 0, 0))
        assert result == _utc(2024, 5, 1, 12, 0, 5)

    def test_every_five_seconds_from_between_slots(self) -> None:
        result = next_fire_time("*/5 * * * * ?", "UTC", _utc(2024, 5, 1, 12, 0, 7))
        assert result == _utc(2024, 5, 1, 12, 0, 10)

    def test_sub_second_reference_is_truncated(self) -> None:
        after = datetime(2024, 5, 1, 12, 0, 4, 900_000, tzinfo=UTC)
        assert next_fire_time("*/5 * * * * ?", None, after) == _utc(2024, 5, 1, 12, 0, 5)

    def test_naive_reference_is_utc(self) -> None:
        result = next_fire_time("0 0 * * * ?", None, datetime(2024, 5, 1, 12, 30))
        assert result == _utc(2024, 5, 1, 13, 0, 0)

    @pytest.mark.parametrize(
        "expression",
        [
            "* * * * * ?",
            "*/5 * * * * ?",
            "0 0 12 * * ?",
            "0 15 10 ? * MON-FRI",
            "0 0 0 1 * ?",
            "0 0 0 29 2 ?",
            "59 59 23 31 12 ?",
        ],
    )
    def test_strictly_later_and_deterministic(self, expression: str) -> None:
        after = _utc(2024, 12, 31, 23, 59, 59)
        first = next_fire_time(expression, "Europe/Berlin", after)
        second = next_fire_time(expression, "Europe/Berlin", after)
        assert first > after
        assert first == second

    def test_minute_rolls_into_next_hour(self) -> None:
        result = next_fire_time("0 0 * * * ?", "UTC", _utc(2024, 5, 1, 12, 0, 0))
        assert result == _utc(2024, 5, 1, 13, 0, 0)

    def test_year_rollover(self) -> None:
        result = next_fire_time("0 0 0 1 1 ?", "UTC", _utc(2024, 12, 31, 23, 59, 59))
        assert result == _utc(2025, 1, 1, 0, 0, 0)

    def test_weekday_names(self) -> None:
        # 2024-05-04 is a Saturday
        result = next_fire_time("0 0 9 ? * MON-FRI", "UTC", _utc(2024, 5, 4, 10, 0, 0))
        assert result == _utc(2024, 5, 6, 9, 0, 0)

    def test_day_of_month_and_weekday_must_both_match(self) -> None:
        # First Friday the 13th of 2024
        result = next_fire_time("0 0 0 13 * FRI", "UTC", _utc(2024, 1, 1, 0, 0, 0))
        assert result == _utc(2024, 9, 13, 0, 0, 0)

    def test_leap_day(self) -> None:
        result = next_fire_time("0 0 0 29 2 ?", "UTC", _utc(2024, 3, 1, 0, 0, 0))
        assert result == _utc(2028, 2, 29, 0, 0, 0)

    def test_explicit_year(self) -> None:
        result = next_fire_time("0 0 0 1 1 ? 2026", "UTC", _utc(2024, 5, 1, 0, 0, 0))
        assert result == _utc(2026, 1, 1, 0, 0, 0)

    def test_impossible_date_raises(self) -> None:
        with pytest.raises(NoUpcomingTrigger):
            next_fire_time("0 0 0 30 2 ?", "UTC", _utc(2024, 1, 1, 0, 0, 0))

    def test_past_year_raises(self) -> None:
        with pytest.raises(NoUpcomingTrigger):
            next_fire_time("0 0 0 * * ? 2020", "UTC", _utc(2024, 1, 1, 0, 0, 0))

    def test_beyond_lookahead_raises(self) -> None:
        with pytest.raises(NoUpcomingTrigger, match="5 years"):
            next_fire_time("0 0 0 1 1 ? 2031", "UTC", _utc(2024, 5, 1, 0, 0, 0))

    def test_result_is_expressed_in_job_zone(self) -> None:
        result = next_fire_time("0 0 9 * * ?", "Asia/Shanghai", _utc(2024, 5, 1, 0, 0, 0))
        assert result == _utc(2024, 5, 1, 1, 0, 0)
        assert result.hour == 9
        assert result.utcoffset().total_seconds() == 8 * 3600

    def test_upcoming(self) -> None:
        cron = parse_cron("0 0 12 * * ?")
        result = list(cron.upcoming(_utc(2024, 5, 1, 0, 0, 0), "UTC", count=3))
        assert result == [
            _utc(2024, 5, 1, 12, 0, 0),
            _utc(2024, 5, 2, 12, 0, 0),
            _utc(2024, 5, 3, 12, 0, 0),
        ]


# ── Daylight saving time ────────────────────────────────────────────────


class TestDaylightSavingTime:
    """America/New_York: 2024-03-10 02:00 EST → 03:00 EDT, 2024-11-03 02:00 EDT → 01:00 EST."""

    def test_wall_time_in_spring_gap_is_skipped(self) -> None:
        result = next_fire_time("0 30 2 * * ?", NEW_YORK, _utc(2024, 3, 10, 5, 0, 0))
        # 02:30 does not exist on March 10th; next is 02:30 EDT on the 11th
        assert result == _utc(2024, 3, 11, 6, 30, 0)

    def test_hourly_job_jumps_over_gap(self) -> None:
        result = next_fire_time("0 0 * * * ?", NEW_YORK, _utc(2024, 3, 10, 6, 30, 0))
        assert result == _utc(2024, 3, 10, 7, 0, 0)
        assert result.hour == 3

    def test_repeated_wall_time_fires_on_both_occurrences(self) -> None:
        first = next_fire_time("0 30 1 * * ?", NEW_YORK, _utc(2024, 11, 3, 5, 0, 0))
        second = next_fire_time("0 30 1 * * ?", NEW_YORK, first)
        assert first == _utc(2024, 11, 3, 5, 30, 0)
        assert second == _utc(2024, 11, 3, 6, 30, 0)
        assert (first.hour, first.minute) == (second.hour, second.minute) == (1, 30)

    def test_fast_job_keeps_firing_across_fall_back(self) -> None:
        result = next_fire_time("*/5 * * * * ?", NEW_YORK, _utc(2024, 11, 3, 5, 59, 58))
        assert result == _utc(2024, 11, 3, 6, 0, 0)
        assert (result.hour, result.minute, result.second) == (1, 0, 0)


# ── resolve_timezone ────────────────────────────────────────────────────


class TestResolveTimezone:
    def test_none_is_utc(self) -> None:
        assert resolve_timezone(None) is UTC

    def test_iana_name(self) -> None:
        assert resolve_timezone("Europe/Paris") == ZoneInfo("Europe/Paris")

    def test_unknown_zone_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown time zone"):
            resolve_timezone("Mars/Olympus_Mons")
