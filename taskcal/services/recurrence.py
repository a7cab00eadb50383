"""Recurrence rule parsing, expansion and description.

Rules are stored as a subset of RFC 5545 RRULE text, e.g.
``FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE;COUNT=10``.

DAILY and WEEKLY series are expanded with ``dateutil.rrule``. MONTHLY and
YEARLY series step from the anchor with ``relativedelta`` so that a day that
does not exist in the target month clamps to the month's last day instead of
being skipped.
"""
from __future__ import annotations

from collections.abc import Iterator
from datetime import date, datetime, time, timezone
from typing import Iterable

from dateutil.relativedelta import relativedelta
from dateutil.rrule import DAILY, WEEKLY, rrule

from taskcal.domain.entities import RecurrenceInstance, RecurrenceRule
from taskcal.domain.enums import Frequency
from taskcal.domain.errors import InvalidInterval, InvalidRecurrenceFormat, ValidationError
from taskcal.utils.dates import WEEKDAY_NAMES

DEFAULT_MAX_INSTANCES = 365

# Index 0 = Sunday, same as the calendar grid
WEEKDAY_CODES = ("SU", "MO", "TU", "WE", "TH", "FR", "SA")

RECURRENCE_PRESETS: dict[str, str] = {
    "daily": "FREQ=DAILY",
    "weekdays": "FREQ=WEEKLY;BYDAY=MO,TU,WE,TH,FR",
    "weekly": "FREQ=WEEKLY",
    "biweekly": "FREQ=WEEKLY;INTERVAL=2",
    "monthly": "FREQ=MONTHLY",
    "yearly": "FREQ=YEARLY",
}

_RRULE_FREQ = {Frequency.DAILY: DAILY, Frequency.WEEKLY: WEEKLY}
_UNIT_NAMES = {
    Frequency.DAILY: "day",
    Frequency.WEEKLY: "week",
    Frequency.MONTHLY: "month",
    Frequency.YEARLY: "year",
}
_KNOWN_KEYS = {"FREQ", "INTERVAL", "COUNT", "UNTIL", "BYDAY", "BYMONTHDAY"}


def resolve_preset(name: str) -> str | None:
    return RECURRENCE_PRESETS.get(name.strip().lower())


def _parse_int(key: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        raise InvalidRecurrenceFormat(f"{key} must be an integer, got {raw!r}") from exc


def _parse_until(raw: str) -> date | datetime:
    value = raw.strip()
    try:
        if len(value) == 8:
            return datetime.strptime(value, "%Y%m%d").date()
        if value.endswith("Z"):
            parsed = datetime.strptime(value[:-1], "%Y%m%dT%H%M%S")
            return parsed.replace(tzinfo=timezone.utc)
        return datetime.strptime(value, "%Y%m%dT%H%M%S")
    except ValueError as exc:
        raise InvalidRecurrenceFormat(f"Invalid UNTIL value: {raw!r}") from exc


def _parse_weekdays(raw: str) -> frozenset[int]:
    days = set()
    for code in raw.split(","):
        code = code.strip().upper()
        if code not in WEEKDAY_CODES:
            raise InvalidRecurrenceFormat(f"Invalid BYDAY value: {code!r}")
        days.add(WEEKDAY_CODES.index(code))
    return frozenset(days)


def parse_recurrence_rule(text: str) -> RecurrenceRule:
    if not isinstance(text, str) or not text.strip():
        raise InvalidRecurrenceFormat("Recurrence rule is empty")

    body = text.strip()
    if body.upper().startswith("RRULE:"):
        body = body[len("RRULE:"):]

    fields: dict[str, str] = {}
    for part in body.split(";"):
        if not part.strip():
            continue
        key, sep, value = part.partition("=")
        key = key.strip().upper()
        if not sep or not value.strip():
            raise InvalidRecurrenceFormat(f"Malformed rule part: {part!r}")
        if key not in _KNOWN_KEYS:
            raise InvalidRecurrenceFormat(f"Unsupported rule part: {key}")
        if key in fields:
            raise InvalidRecurrenceFormat(f"Duplicate rule part: {key}")
        fields[key] = value.strip()

    if "FREQ" not in fields:
        raise InvalidRecurrenceFormat("Recurrence rule has no FREQ")
    try:
        frequency = Frequency(fields["FREQ"].upper())
    except ValueError as exc:
        raise InvalidRecurrenceFormat(f"Unsupported FREQ: {fields['FREQ']!r}") from exc

    interval = _parse_int("INTERVAL", fields["INTERVAL"]) if "INTERVAL" in fields else 1
    count = _parse_int("COUNT", fields["COUNT"]) if "COUNT" in fields else None
    until = _parse_until(fields["UNTIL"]) if "UNTIL" in fields else None
    by_weekday = _parse_weekdays(fields["BYDAY"]) if "BYDAY" in fields else None
    by_month_day = _parse_int("BYMONTHDAY", fields["BYMONTHDAY"]) if "BYMONTHDAY" in fields else None

    try:
        return RecurrenceRule(
            frequency=frequency,
            interval=interval,
            count=count,
            until=until,
            by_weekday=by_weekday,
            by_month_day=by_month_day,
        )
    except InvalidInterval:
        raise
    except ValidationError as exc:
        raise InvalidRecurrenceFormat(str(exc)) from exc


def _format_until(until: date | datetime) -> str:
    if not isinstance(until, datetime):
        return until.strftime("%Y%m%d")
    if until.tzinfo is not None:
        return until.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return until.strftime("%Y%m%dT%H%M%S")


def serialize_recurrence_rule(rule: RecurrenceRule) -> str:
    parts = [f"FREQ={rule.frequency.value}"]
    if rule.interval != 1:
        parts.append(f"INTERVAL={rule.interval}")
    if rule.by_weekday:
        parts.append("BYDAY=" + ",".join(WEEKDAY_CODES[day] for day in sorted(rule.by_weekday)))
    if rule.by_month_day is not None:
        parts.append(f"BYMONTHDAY={rule.by_month_day}")
    if rule.count is not None:
        parts.append(f"COUNT={rule.count}")
    if rule.until is not None:
        parts.append(f"UNTIL={_format_until(rule.until)}")
    return ";".join(parts)


def build_recurrence_rule(
    frequency: Frequency | str,
    interval: int = 1,
    count: int | None = None,
    until: date | datetime | None = None,
    by_weekday: Iterable[int] | None = None,
    by_month_day: int | None = None,
) -> str:
    try:
        frequency = Frequency(str(frequency).upper())
    except ValueError as exc:
        raise InvalidRecurrenceFormat(f"Unsupported frequency: {frequency!r}") from exc
    rule = RecurrenceRule(
        frequency=frequency,
        interval=interval,
        count=count,
        until=until,
        by_weekday=frozenset(by_weekday) if by_weekday is not None else None,
        by_month_day=by_month_day,
    )
    return serialize_recurrence_rule(rule)


def _align(bound: date | datetime, anchor: datetime) -> datetime:
    if not isinstance(bound, datetime):
        return datetime.combine(bound, time.max, tzinfo=anchor.tzinfo)
    if anchor.tzinfo is None and bound.tzinfo is not None:
        return bound.replace(tzinfo=None)
    if anchor.tzinfo is not None and bound.tzinfo is None:
        return bound.replace(tzinfo=anchor.tzinfo)
    return bound


def _series(rule: RecurrenceRule, anchor: datetime) -> Iterator[datetime]:
    if rule.frequency in _RRULE_FREQ:
        byweekday = None
        if rule.by_weekday:
            # dateutil counts Monday as 0
            byweekday = [(day + 6) % 7 for day in sorted(rule.by_weekday)]
        series = rrule(
            _RRULE_FREQ[rule.frequency],
            dtstart=anchor,
            interval=rule.interval,
            byweekday=byweekday,
            cache=False,
        )
        try:
            for occurrence in series:
                yield occurrence.replace(microsecond=anchor.microsecond)
        except (ValueError, OverflowError):
            # the series ends where datetime runs out of years
            return
        return

    months = 12 if rule.frequency == Frequency.YEARLY else 1
    step = 0
    while True:
        delta = relativedelta(months=step * rule.interval * months)
        if rule.by_month_day is not None:
            delta += relativedelta(day=rule.by_month_day)
        try:
            occurrence = anchor + delta
        except (ValueError, OverflowError):
            return
        step += 1
        if occurrence < anchor:
            continue
        yield occurrence


def _walk(rule: RecurrenceRule, anchor: datetime) -> Iterator[tuple[int, datetime]]:
    until = _align(rule.until, anchor) if rule.until is not None else None
    for index, occurrence in enumerate(_series(rule, anchor)):
        if rule.count is not None and index >= rule.count:
            return
        if until is not None and occurrence > until:
            return
        yield index, occurrence


def generate_recurrence_instances(
    rule: RecurrenceRule,
    anchor: datetime,
    max_count: int = DEFAULT_MAX_INSTANCES,
    window_end: datetime | None = None,
    window_start: datetime | None = None,
    task_id: int | None = None,
) -> list[RecurrenceInstance]:
    """Occurrences strictly after ``anchor``, oldest first.

    The anchor opens the series and counts toward COUNT when it matches the
    rule. ``max_count`` caps the number of instances returned;
    ``window_start`` drops earlier instances without counting them.
    """
    if max_count < 0:
        raise ValidationError(f"max_count cannot be negative, got {max_count}")
    if max_count == 0:
        return []

    end = _align(window_end, anchor) if window_end is not None else None
    start = _align(window_start, anchor) if window_start is not None else None

    instances: list[RecurrenceInstance] = []
    for index, occurrence in _walk(rule, anchor):
        if end is not None and occurrence > end:
            break
        if occurrence <= anchor:
            continue
        if start is not None and occurrence < start:
            continue
        instances.append(RecurrenceInstance(date=occurrence, task_id=task_id, is_first=index == 0))
        if len(instances) >= max_count:
            break
    return instances


def get_next_recurrence(
    rule: RecurrenceRule, after: datetime, anchor: datetime | None = None
) -> datetime | None:
    anchor = anchor if anchor is not None else after
    limit = _align(after, anchor)
    for _, occurrence in _walk(rule, anchor):
        if occurrence > limit:
            return occurrence
    return None


def get_recurrence_description(rule: RecurrenceRule) -> str:
    unit = _UNIT_NAMES[rule.frequency]
    if rule.interval == 1:
        text = rule.frequency.value.capitalize()
    else:
        text = f"Every {rule.interval} {unit}s"

    if rule.by_weekday:
        text += " on " + ", ".join(WEEKDAY_NAMES[day] for day in sorted(rule.by_weekday))
    if rule.by_month_day is not None:
        text += f" on day {rule.by_month_day}"

    if rule.count is not None:
        text += f", {rule.count} time{'s' if rule.count != 1 else ''}"
    elif rule.until is not None:
        until = rule.until.date() if isinstance(rule.until, datetime) else rule.until
        text += f" until {until.isoformat()}"
    return text
