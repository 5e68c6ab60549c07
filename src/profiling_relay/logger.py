"""
Structured logging for relay components

Context passed through ``log_with_context`` is attached to the record with a
``ctx_`` prefix and rendered by the formatters as top level keys.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from .errors import ConfigurationError

FormatterType = Literal["json", "plain"]

ROOT_LOGGER_NAME = "profiling_relay"

# Performance optimization: Cache formatter instances
_formatter_cache: Dict[str, logging.Formatter] = {}


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def _context_items(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key[4:]: value
        for key, value in record.__dict__.items()
        if key.startswith("ctx_")
    }


class StructuredFormatter(logging.Formatter):
    """JSON formatter that emits one object per record"""

    def __init__(self, include_timestamp: bool = True):
        super().__init__()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.include_timestamp:
            log_entry["timestamp"] = _timestamp()

        log_entry.update(_context_items(record))

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, separators=(",", ":"), default=str)


class PlainTextFormatter(logging.Formatter):
    """Human readable formatter with trailing key=value context"""

    def __init__(self, include_timestamp: bool = True):
        super().__init__()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        parts = []
        if self.include_timestamp:
            parts.append(f"[{_timestamp()}]")
        parts.extend([record.levelname, record.name, record.getMessage()])

        context = _context_items(record)
        if context:
            context_str = ", ".join(f"{key}={value}" for key, value in context.items())
            parts.append(f"({context_str})")

        text = " ".join(parts)
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text


def _get_or_create_formatter(formatter_type: FormatterType) -> logging.Formatter:
    """Get formatter from cache or create new one"""
    if formatter_type not in _formatter_cache:
        if formatter_type == "plain":
            _formatter_cache[formatter_type] = PlainTextFormatter()
        else:
            _formatter_cache[formatter_type] = StructuredFormatter()
    return _formatter_cache[formatter_type]


def get_logger(name: str) -> logging.Logger:
    """Return a child of the package logger, e.g. ``get_logger("drain")``"""
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def configure_logging(
    formatter_type: FormatterType = "json",
    level: str = "INFO",
    stream: Optional[Any] = None,
) -> logging.Logger:
    """Attach a console handler to the package logger

    Calling this again replaces the handler installed by the previous call.
    """
    level_value = getattr(logging, str(level).upper(), None)
    if not isinstance(level_value, int):
        raise ConfigurationError(f"Unknown log level {level!r}")

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_profiling_relay_console", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(_get_or_create_formatter(formatter_type))
    handler._profiling_relay_console = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(level_value)
    return logger


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    exc_info: Any = None,
    **extra: Any,
) -> None:
    """Log with ``extra`` keys attached as structured context"""
    ctx_context = {f"ctx_{k}": v for k, v in extra.items() if v is not None}
    getattr(logger, level)(message, extra=ctx_context, exc_info=exc_info)


logging.getLogger(ROOT_LOGGER_NAME).addHandler(logging.NullHandler())
