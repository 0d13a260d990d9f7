"""Structured logging utility for couchpush.

Provides plain or JSON-formatted logging with context fields. Everything goes
to stderr so that commands can keep stdout for rendered JSON. ``LOG_FORMAT=json``
(or ``set_format("json")``) switches the shared handler to one JSON object
per record.
"""
import logging
import json
import os
import sys
import traceback
from typing import Any, Dict, Optional
from datetime import datetime, timezone

PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_FORMATS = ("plain", "json")

# Cache loggers to avoid repeated lookups
_logger_cache: Dict[str, logging.Logger] = {}


class PlainFormatter(logging.Formatter):
    """Text format with context fields appended as ``key=value`` pairs."""

    def __init__(self, fmt: str = PLAIN_FORMAT):
        super().__init__(fmt)

    def formatMessage(self, record: logging.LogRecord) -> str:
        text = super().formatMessage(record)
        extra = getattr(record, 'extra_fields', None)
        if extra:
            text += " " + " ".join(f"{key}={value}" for key, value in extra.items())
        return text


class JSONFormatter(logging.Formatter):
    """Format log records as JSON for structured logging."""

    __slots__ = ()

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info and record.exc_info[0] is not None:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info),
            }

        extra = getattr(record, 'extra_fields', None)
        if extra:
            log_data.update(extra)

        return json.dumps(log_data, default=str)


def make_formatter(fmt: str) -> logging.Formatter:
    fmt = str(fmt).strip().lower()
    if fmt == "json":
        return JSONFormatter()
    if fmt == "plain":
        return PlainFormatter()
    raise ValueError(f"Unknown log format: {fmt} (expected one of {', '.join(LOG_FORMATS)})")


# Configure root logger with LOG_LEVEL / LOG_FORMAT from environment
_log_level_str = os.environ.get("LOG_LEVEL", "INFO").upper()
_log_level = getattr(logging, _log_level_str, logging.INFO)
_handler = logging.StreamHandler(sys.stderr)
try:
    _handler.setFormatter(make_formatter(os.environ.get("LOG_FORMAT", "plain") or "plain"))
except ValueError:
    _handler.setFormatter(PlainFormatter())
logging.basicConfig(level=_log_level, handlers=[_handler])


def get_logger(name: str) -> logging.Logger:
    """Get a cached logger instance.

    Records propagate to the root handler, so the active format (see
    ``set_format``) applies to every logger.
    """
    if name in _logger_cache:
        return _logger_cache[name]

    logger = logging.getLogger(name)
    logger.setLevel(_log_level)
    _logger_cache[name] = logger
    return logger


def set_level(level: str) -> None:
    """Change the level of the root logger and every cached logger."""
    value = getattr(logging, str(level).upper(), None)
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    logging.getLogger().setLevel(value)
    for logger in _logger_cache.values():
        logger.setLevel(value)


def set_format(fmt: str) -> None:
    """Switch the shared stderr handler between ``plain`` and ``json`` output."""
    _handler.setFormatter(make_formatter(fmt))


class ContextLogger:
    """Logger wrapper that adds context fields to all log messages."""

    __slots__ = ('logger', 'context')

    def __init__(self, logger: logging.Logger, **context):
        self.logger = logger
        self.context = context

    def bind(self, **context) -> "ContextLogger":
        """Return a new wrapper with extra context fields merged in."""
        return ContextLogger(self.logger, **{**self.context, **context})

    def _log(self, level: int, msg: str, exc_info: Any = None, **extra):
        if not self.logger.isEnabledFor(level):
            return
        merged = {**self.context, **extra} if extra else self.context
        record = self.logger.makeRecord(
            self.logger.name,
            level,
            "(unknown file)",
            0,
            msg,
            (),
            exc_info,
        )
        record.extra_fields = merged
        self.logger.handle(record)

    def debug(self, msg: str, **extra):
        self._log(logging.DEBUG, msg, **extra)

    def info(self, msg: str, **extra):
        self._log(logging.INFO, msg, **extra)

    def warning(self, msg: str, **extra):
        self._log(logging.WARNING, msg, **extra)

    def error(self, msg: str, exc_info: Any = None, **extra):
        self._log(logging.ERROR, msg, exc_info=exc_info, **extra)

    def exception(self, msg: str, **extra):
        """Log an exception with traceback."""
        self._log(logging.ERROR, msg, exc_info=sys.exc_info(), **extra)

    def isEnabledFor(self, level: int) -> bool:
        return self.logger.isEnabledFor(level)


def safe_bool(value: Any, default: bool, logger: Optional[logging.Logger] = None, context: str = "") -> bool:
    """Safely convert value to bool with logging on failure.

    Args:
        value: Value to convert
        default: Default value if conversion fails
        logger: Optional logger for warnings
        context: Context string for log message

    Returns:
        Converted bool or default
    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return default
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if s in {"1", "true", "yes", "on"}:
        return True
    if s in {"0", "false", "no", "off"}:
        return False
    if logger:
        logger.warning(f"Failed to convert {context} to bool: {value}")
    return default
