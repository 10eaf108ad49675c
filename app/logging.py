"""Logging configuration utilities."""

from __future__ import annotations

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s (%(event)s): %(message)s"

# Chatty third-party loggers; the payments client logs its own failures.
_QUIET_LOGGERS = ("httpx", "httpcore")


class _EventDefaultFilter(logging.Filter):
    """Give records without a structured ``event`` a placeholder for the format."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "event"):
            record.event = "-"
        return True


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Configure application wide logging handlers."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.addFilter(_EventDefaultFilter())

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
