from __future__ import annotations

"""
logging_setup.py — one log format for the CLI and the batch runner.

    [ Sat Oct 17 09:12:03 AM UTC 2026 ] : INFO : tuf_tracker.pipeline : message

Modules log through logging.getLogger(__name__); only the package root logger
"tuf_tracker" gets handlers, child loggers propagate into it.
"""

import logging
import sys
from datetime import datetime, timezone
from typing import Optional, Union

ROOT_LOGGER = "tuf_tracker"


class TrackerFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        timestamp = dt.strftime("%a %b %d %I:%M:%S %p UTC %Y")
        context = getattr(record, "context", None) or record.name
        line = f"[ {timestamp} ] : {record.levelname} : {context} : {record.getMessage()}"
        if record.exc_info:
            line = line + "\n" + self.formatException(record.exc_info)
        return line


def _coerce_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"unknown log level: {level!r}")
    return value


def setup_logging(level: Union[int, str] = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """Configure the package logger. Repeated calls only adjust the level."""
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(_coerce_level(level))

    if logger.handlers:
        return logger

    formatter = TrackerFormatter()

    # stdout carries JSON output of the CLI
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setFormatter(formatter)
        logger.addHandler(fh)

    logger.propagate = False
    return logger
