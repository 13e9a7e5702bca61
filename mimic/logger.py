"""Process-wide structured logger that writes key=value lines."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime
from typing import IO

LOGGER_NAME = "mimic"

_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime"}

_LEVEL_NAMES = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "ERROR",
}

_logger = logging.getLogger(LOGGER_NAME)
_logger.propagate = False
if not _logger.handlers:
    _logger.addHandler(logging.NullHandler())


def _format_value(value: object) -> str:
    if isinstance(value, bool):
        text = "true" if value else "false"
    elif value is None:
        text = "<nil>"
    else:
        text = str(value)
    needs_quotes = text == "" or any(
        ch.isspace() or ch in '="' or not ch.isprintable() for ch in text
    )
    return json.dumps(text, ensure_ascii=False) if needs_quotes else text


class _KeyValueFormatter(logging.Formatter):
    """Render a record as `time=... level=... msg=... key=value ...`."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).astimezone()
        parts = [
            f"time={timestamp.isoformat(timespec='milliseconds')}",
            f"level={_LEVEL_NAMES.get(record.levelno, record.levelname)}",
            f"msg={_format_value(record.getMessage())}",
        ]
        parts.extend(
            f"{key}={_format_value(value)}"
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        )
        if record.exc_info:
            parts.append(f"error={_format_value(self.formatException(record.exc_info))}")
        return " ".join(parts)


def _replace_handlers(handler: logging.Handler) -> None:
    for existing in list(_logger.handlers):
        _logger.removeHandler(existing)
    _logger.addHandler(handler)


def initialize(level: int = logging.INFO, output: IO[str] | None = None) -> logging.Logger:
    """Send log records at `level` and above to `output` (stderr by default)."""
    handler = logging.StreamHandler(output if output is not None else sys.stderr)
    handler.setFormatter(_KeyValueFormatter())
    _replace_handlers(handler)
    _logger.setLevel(level)
    _logger.disabled = False
    return _logger


def init_noop() -> logging.Logger:
    """Discard every log record."""
    _replace_handlers(logging.NullHandler())
    _logger.disabled = True
    return _logger


def get_logger() -> logging.Logger:
    """Return the shared package logger; extra fields become key=value pairs."""
    return _logger