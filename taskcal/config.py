from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _resolve_project_root() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[1]


PROJECT_ROOT = _resolve_project_root()


def load_env() -> None:
    env_name = os.getenv("APP_ENV", "development")
    candidates = [Path.cwd(), PROJECT_ROOT]
    for base in candidates:
        env_path = base / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            break

    for base in candidates:
        env_specific = base / f".env.{env_name}"
        if env_specific.exists():
            load_dotenv(env_specific, override=True)
            break


@dataclass(frozen=True)
class Settings:
    database_url: str
    log_level: str = "INFO"
    log_dir: str = "logs"
    timezone: str = "UTC"
    week_start: int = 0
    day_start_hour: int = 6
    day_end_hour: int = 22
    recurrence_max_instances: int = 365


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc


def load_settings() -> Settings:
    load_env()
    week_start = _int_env("WEEK_START", 0)
    if week_start not in (0, 1):
        raise RuntimeError("WEEK_START must be 0 (Sunday) or 1 (Monday).")
    day_start_hour = _int_env("DAY_START_HOUR", 6)
    day_end_hour = _int_env("DAY_END_HOUR", 22)
    if not 0 <= day_start_hour <= day_end_hour <= 23:
        raise RuntimeError("DAY_START_HOUR and DAY_END_HOUR must be within 0-23, start not after end.")
    return Settings(
        database_url=os.getenv("DATABASE_URL", "").strip() or "sqlite:///taskcal.db",
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_dir=os.getenv("LOG_DIR", "logs"),
        timezone=os.getenv("APP_TIMEZONE", "").strip() or "UTC",
        week_start=week_start,
        day_start_hour=day_start_hour,
        day_end_hour=day_end_hour,
        recurrence_max_instances=_int_env("RECURRENCE_MAX_INSTANCES", 365),
    )


SETTINGS = load_settings()
