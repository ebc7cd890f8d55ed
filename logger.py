"""Logging for the reminder service and CLI.

Everything goes to a dated file under ``LOG_DIR`` so missed or failed
reminders can be traced after the fact; interactive runs also echo to the
terminal.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from config import LOG_DIR, LOG_LEVEL

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"


def log_path(day: datetime) -> Path:
    return LOG_DIR / f"{day.strftime('%Y-%m-%d')}.log"


def setup_logging() -> logging.Logger:
    """Configure the ``standing_desk`` logger; safe to call more than once."""
    logger = logging.getLogger("standing_desk")
    logger.setLevel(LOG_LEVEL)
    # Re-running must not stack duplicate handlers
    logger.handlers.clear()

    file_handler = logging.FileHandler(log_path(datetime.now()), encoding="utf-8")
    file_handler.setLevel(LOG_LEVEL)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(file_handler)

    # Skipped when started headless (scheduled task, pythonw)
    if sys.stdout is not None and sys.stdout.isatty():
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(LOG_LEVEL)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
        logger.addHandler(console_handler)

    return logger


logger = setup_logging()
