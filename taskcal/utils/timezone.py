"""Timezone helpers built on :mod:`zoneinfo`.

``utc_to_local`` and ``local_to_utc`` go through ``astimezone`` so the DST
fold is preserved and the round trip is exact. Aware input gives aware
output. Naive input gives naive output: a naive UTC value becomes naive
local wall time and back, the form the database stores.
"""
from __future__ import annotations

import os
from datetime import datetime, time, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from taskcal.domain.errors import InvalidTimezone

COMMON_TIMEZONES: tuple[tuple[str, str], ...] = (
    ("UTC", "UTC (Coordinated Universal Time)"),
    ("America/New_York", "Eastern Time (US & Canada)"),
    ("America/Chicago", "Central Time (US & Canada)"),
    ("America/Denver", "Mountain Time (US & Canada)"),
    ("America/Los_Angeles", "Pacific Time (US & Canada)"),
    ("America/Anchorage", "Alaska Time"),
    ("Pacific/Honolulu", "Hawaii-Aleutian Time"),
    ("Europe/London", "London (GMT/BST)"),
    ("Europe/Paris", "Central European Time"),
    ("Europe/Berlin", "Berlin (CET/CEST)"),
    ("Europe/Kyiv", "Kyiv (EET/EEST)"),
    ("Europe/Moscow", "Moscow Time"),
    ("Asia/Dubai", "Gulf Standard Time"),
    ("Asia/Kolkata", "India Standard Time"),
    ("Asia/Bangkok", "Indochina Time"),
    ("Asia/Shanghai", "China Standard Time"),
    ("Asia/Tokyo", "Japan Standard Time"),
    ("Asia/Seoul", "Korea Standard Time"),
    ("Australia/Sydney", "Sydney (AEST/AEDT)"),
    ("Pacific/Auckland", "New Zealand Time"),
)


@lru_cache(maxsize=None)
def get_zone(name: str) -> ZoneInfo:
    if not name:
        raise InvalidTimezone("Timezone name is empty")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidTimezone(f"Unknown timezone: {name!r}") from exc


def is_valid_timezone(name: str) -> bool:
    try:
        get_zone(name)
    except InvalidTimezone:
        return False
    return True


@lru_cache(maxsize=1)
def get_user_timezone() -> str:
    for key in ("APP_TIMEZONE", "TZ"):
        candidate = os.getenv(key, "").strip()
        if candidate and is_valid_timezone(candidate):
            return candidate
    return "UTC"


def _to_zone(value: datetime, tz: str) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(get_zone(tz))


def utc_to_local(value: datetime, tz: str) -> datetime:
    local = _to_zone(value, tz)
    # naive in, naive out; replace() keeps the fold so the way back is exact
    return local.replace(tzinfo=None) if value.tzinfo is None else local


def local_to_utc(value: datetime, tz: str) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=get_zone(tz)).astimezone(timezone.utc).replace(tzinfo=None)
    return value.astimezone(timezone.utc)


def convert_timezone(value: datetime, from_tz: str, to_tz: str) -> datetime:
    return utc_to_local(local_to_utc(value, from_tz), to_tz)


def get_timezone_offset(tz: str, at: datetime) -> int:
    """Offset from UTC in minutes for ``tz`` at the instant ``at``."""
    offset = _to_zone(at, tz).utcoffset()
    return int(offset.total_seconds() // 60) if offset else 0


def is_same_day_in_timezone(a: datetime, b: datetime, tz: str) -> bool:
    return _to_zone(a, tz).date() == _to_zone(b, tz).date()


def start_of_day_in_timezone(value: datetime, tz: str) -> datetime:
    local = _to_zone(value, tz)
    return datetime.combine(local.date(), time.min, tzinfo=local.tzinfo)


def end_of_day_in_timezone(value: datetime, tz: str) -> datetime:
    local = _to_zone(value, tz)
    return datetime.combine(local.date(), time.max, tzinfo=local.tzinfo)
