from __future__ import annotations

import re
from datetime import datetime, time, timedelta

from dateutil.relativedelta import relativedelta

from taskcal.domain.errors import ParseError

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

_DURATION_TOKEN = re.compile(r"(\d+)\s*([dhm])", re.IGNORECASE)
_DURATION_FULL = re.compile(r"^(?:\s*\d+\s*[dhm]\s*)+$", re.IGNORECASE)
_UNIT_MINUTES = {"d": 1440, "h": 60, "m": 1}


def weekday_index(value: datetime) -> int:
    """0 = Sunday .. 6 = Saturday."""
    return (value.weekday() + 1) % 7


def start_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min, tzinfo=value.tzinfo)


def end_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.max, tzinfo=value.tzinfo)


def start_of_week(value: datetime, week_starts_on: int = 0) -> datetime:
    offset = (weekday_index(value) - week_starts_on) % 7
    return start_of_day(value) - timedelta(days=offset)


def end_of_week(value: datetime, week_starts_on: int = 0) -> datetime:
    return end_of_day(start_of_week(value, week_starts_on) + timedelta(days=6))


def start_of_month(value: datetime) -> datetime:
    return start_of_day(value).replace(day=1)


def end_of_month(value: datetime) -> datetime:
    return end_of_day(start_of_month(value) + relativedelta(months=1, days=-1))


def start_of_year(value: datetime) -> datetime:
    return start_of_day(value).replace(month=1, day=1)


def end_of_year(value: datetime) -> datetime:
    return end_of_day(value).replace(month=12, day=31)


def add_minutes(value: datetime, minutes: int) -> datetime:
    return value + timedelta(minutes=minutes)


def add_hours(value: datetime, hours: int) -> datetime:
    return value + timedelta(hours=hours)


def add_days(value: datetime, days: int) -> datetime:
    return value + timedelta(days=days)


def add_weeks(value: datetime, weeks: int) -> datetime:
    return value + timedelta(weeks=weeks)


def add_months(value: datetime, months: int) -> datetime:
    # relativedelta clamps to the last day of the target month
    return value + relativedelta(months=months)


def add_years(value: datetime, years: int) -> datetime:
    return value + relativedelta(years=years)


def is_same_day(a: datetime, b: datetime) -> bool:
    return a.date() == b.date()


def is_same_month(a: datetime, b: datetime) -> bool:
    return a.year == b.year and a.month == b.month


def is_same_year(a: datetime, b: datetime) -> bool:
    return a.year == b.year


def is_past(value: datetime, now: datetime) -> bool:
    return value < now


def is_future(value: datetime, now: datetime) -> bool:
    return value > now


def is_within_range(value: datetime, start: datetime, end: datetime) -> bool:
    return start <= value <= end


def is_time_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    if a_start == a_end or b_start == b_end:
        return a_start == a_end == b_start == b_end
    return a_start < b_end and b_start < a_end


def is_today(value: datetime, now: datetime) -> bool:
    return is_same_day(value, now)


def is_tomorrow(value: datetime, now: datetime) -> bool:
    return is_same_day(value, now + timedelta(days=1))


def is_within_next_days(value: datetime, days: int, now: datetime) -> bool:
    return now <= value <= now + timedelta(days=days)


def parse_duration(text: str) -> int:
    if text is None:
        raise ParseError("Duration is empty")
    cleaned = text.strip()
    if not cleaned:
        raise ParseError("Duration is empty")
    if cleaned.isdigit():
        return int(cleaned)
    if not _DURATION_FULL.match(cleaned):
        raise ParseError(f"Invalid duration: {text!r}")
    return sum(
        int(amount) * _UNIT_MINUTES[unit.lower()]
        for amount, unit in _DURATION_TOKEN.findall(cleaned)
    )


def format_duration(minutes: int) -> str:
    if minutes < 0:
        raise ValueError(f"Duration cannot be negative: {minutes}")
    if minutes == 0:
        return "0m"
    hours, rest = divmod(minutes, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if rest:
        parts.append(f"{rest}m")
    return " ".join(parts)


def format_date_full(value: datetime) -> str:
    return f"{MONTH_NAMES[value.month - 1]} {value.day}, {value.year}"


def format_date_short(value: datetime) -> str:
    return f"{MONTH_NAMES[value.month - 1][:3]} {value.day}"


def format_time(value: datetime) -> str:
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


def format_weekday(value: datetime) -> str:
    return WEEKDAY_NAMES[weekday_index(value)]


def _plural(amount: int, unit: str) -> str:
    return f"{amount} {unit}{'s' if amount > 1 else ''}"


def format_relative_time(value: datetime, now: datetime) -> str:
    seconds = (value - now).total_seconds()
    minutes = round(seconds / 60)
    hours = round(seconds / 3600)
    days = round(seconds / 86400)

    if abs(minutes) < 60:
        if minutes == 0:
            return "now"
        if minutes > 0:
            return f"in {_plural(minutes, 'minute')}"
        return f"{_plural(-minutes, 'minute')} ago"

    if abs(hours) < 24:
        if hours > 0:
            return f"in {_plural(hours, 'hour')}"
        return f"{_plural(-hours, 'hour')} ago"

    if days > 0:
        return f"in {_plural(days, 'day')}"
    return f"{_plural(-days, 'day')} ago"
