"""Logging configuration for factorygen.

Called once at startup by the CLI. Every module that does
``logger = get_logger(__name__)`` inherits this config.

Two output formats are supported:
- human: short, timestamped lines on stderr
- json: one JSON object per line (for CI logs)
"""

import json
import logging
import sys
import threading
from datetime import datetime, timezone
from typing import Any, Optional

_FMT_HUMAN = "%(asctime)s [%(name)s] %(levelname)s %(message)s"
_DATEFMT_HUMAN = "%H:%M:%S"

_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

# Attributes present on every LogRecord; everything else came in via extra=
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}

_NOISY_LOGGERS = ("sqlalchemy.engine", "faker", "factory")

_context = threading.local()


class JSONFormatter(logging.Formatter):
    """Render log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_current_context())

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


class ContextFilter(logging.Filter):
    """Attach LogContext fields to human-format records."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _current_context().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


def _current_context() -> dict[str, Any]:
    return dict(getattr(_context, "fields", {}))


class LogContext:
    """Context manager adding fields to every log record in its scope.

    Example:
        with LogContext(operation="generate", model="app.models.user:User"):
            logger.info("Collecting properties")
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self._previous: dict[str, Any] = {}

    def __enter__(self) -> "LogContext":
        self._previous = _current_context()
        _context.fields = {**self._previous, **self.fields}
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        _context.fields = self._previous


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """Configure Python logging for the entire process.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Emit JSON lines instead of human-readable text
        log_file: Optional path to a log file (always full detail)
    """
    numeric_level = _parse_level(level)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    if json_output:
        console.setFormatter(JSONFormatter())
    else:
        console.setFormatter(logging.Formatter(_FMT_HUMAN, datefmt=_DATEFMT_HUMAN))
    console.addFilter(ContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root.setLevel(numeric_level)

    if log_file:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(numeric_level)
        if json_output:
            fh.setFormatter(JSONFormatter())
        else:
            fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        fh.addFilter(ContextFilter())
        root.addHandler(fh)

    if numeric_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger."""
    return logging.getLogger(name)


def _parse_level(level: Optional[str]) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.INFO
    numeric = logging.getLevelName(level.upper())
    if isinstance(numeric, int):
        return numeric
    return logging.INFO
