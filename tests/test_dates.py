from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from taskcal.domain.errors import ParseError
from taskcal.utils.dates import (
    add_months,
    add_years,
    end_of_month,
    end_of_week,
    format_date_full,
    format_date_short,
    format_duration,
    format_relative_time,
    format_time,
    format_weekday,
    is_time_overlap,
    is_tomorrow,
    is_within_next_days,
    is_within_range,
    parse_duration,
    start_of_month,
    start_of_week,
    weekday_index,
)

NOW = datetime(2026, 2, 10, 12, 0)


def test_weekday_index_starts_on_sunday() -> None:
    assert weekday_index(datetime(2026, 2, 15)) == 0
    assert weekday_index(datetime(2026, 2, 16)) == 1
    assert weekday_index(datetime(2026, 2, 21)) == 6


def test_week_boundaries_follow_week_start() -> None:
    wednesday = datetime(2026, 2, 18, 10, 30)

    assert start_of_week(wednesday) == datetime(2026, 2, 15)
    assert start_of_week(wednesday, 1) == datetime(2026, 2, 16)
    assert end_of_week(wednesday) == datetime(2026, 2, 21, 23, 59, 59, 999999)


def test_month_boundaries() -> None:
    assert start_of_month(datetime(2026, 2, 10, 8)) == datetime(2026, 2, 1)
    assert end_of_month(datetime(2026, 2, 10)) == datetime(2026, 2, 28, 23, 59, 59, 999999)
    assert end_of_month(datetime(2028, 2, 3)).day == 29


def test_add_months_clamps_to_month_end() -> None:
    assert add_months(datetime(2026, 1, 31), 1) == datetime(2026, 2, 28)
    assert add_months(datetime(2026, 3, 31), -1) == datetime(2026, 2, 28)
    assert add_years(datetime(2024, 2, 29), 1) == datetime(2025, 2, 28)


def test_time_overlap_is_half_open() -> None:
    nine, ten, eleven = (datetime(2026, 2, 10, h) for h in (9, 10, 11))

    assert is_time_overlap(nine, eleven, ten, ten + timedelta(hours=2))
    assert not is_time_overlap(nine, ten, ten, eleven)
    assert is_time_overlap(ten, ten, ten, ten)
    assert not is_time_overlap(ten, ten, nine, eleven)


def test_range_predicates_use_explicit_now() -> None:
    assert is_within_range(NOW, NOW, NOW)
    assert is_tomorrow(datetime(2026, 2, 11, 23), NOW)
    assert is_within_next_days(datetime(2026, 2, 12), 3, NOW)
    assert not is_within_next_days(datetime(2026, 2, 9), 3, NOW)


@pytest.mark.parametrize(
    "text, minutes",
    [("45", 45), ("1h 30m", 90), ("2h", 120), ("1d", 1440), ("1D 2H 5M", 1565)],
)
def test_parse_duration(text: str, minutes: int) -> None:
    assert parse_duration(text) == minutes


@pytest.mark.parametrize("text", ["", "   ", "abc", "1x", "h30"])
def test_parse_duration_rejects_garbage(text: str) -> None:
    with pytest.raises(ParseError):
        parse_duration(text)


def test_format_duration() -> None:
    assert format_duration(0) == "0m"
    assert format_duration(45) == "45m"
    assert format_duration(60) == "1h"
    assert format_duration(90) == "1h 30m"
    with pytest.raises(ValueError):
        format_duration(-5)


def test_formatting() -> None:
    value = datetime(2026, 3, 1, 14, 30)

    assert format_date_full(value) == "March 1, 2026"
    assert format_date_short(value) == "Mar 1"
    assert format_time(value) == "2:30 PM"
    assert format_time(datetime(2026, 3, 1, 0, 5)) == "12:05 AM"
    assert format_weekday(value) == "Sunday"


def test_format_relative_time() -> None:
    assert format_relative_time(NOW, NOW) == "now"
    assert format_relative_time(NOW + timedelta(minutes=30), NOW) == "in 30 minutes"
    assert format_relative_time(NOW - timedelta(hours=2), NOW) == "2 hours ago"
    assert format_relative_time(NOW + timedelta(days=1), NOW) == "in 1 day"
    assert format_relative_time(NOW - timedelta(days=3), NOW) == "3 days ago"
