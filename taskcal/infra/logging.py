from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from taskcal.config import PROJECT_ROOT, SETTINGS

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
QUIET_LOGGERS = ("sqlalchemy.engine", "alembic")


def setup_logging(level: str | None = None) -> Path:
    """Send taskcal logs to a rotating file and the console.

    Safe to call more than once; handlers are only attached the first time.
    """
    log_dir = PROJECT_ROOT / SETTINGS.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "taskcal.log"

    root = logging.getLogger()
    root.setLevel((level or SETTINGS.log_level).upper())
    if any(isinstance(handler, RotatingFileHandler) for handler in root.handlers):
        return log_file

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    file_handler = RotatingFileHandler(log_file, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    file_handler.setFormatter(formatter)

    # the CLI prints its own output; the console only shows problems unless a level is forced
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level.upper() if level else logging.WARNING)
    console_handler.setFormatter(formatter)

    root.addHandler(file_handler)
    root.addHandler(console_handler)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return log_file
