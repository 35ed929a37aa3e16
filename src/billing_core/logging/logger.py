"""Billing Logging - Structured logging with OTEL trace context.

Provides structured JSON logging with automatic trace context injection.

Usage:
    from billing_core.logging import get_logger

    logger = get_logger("hooks")
    logger.info("Hook dispatched", hook="after_customer_create")
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from opentelemetry import trace

from billing_core.types import LogFormat, LogLevel

ROOT_LOGGER_NAME = "billing"

_RESERVED_ATTRS = frozenset(
    {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "pathname", "process", "processName", "relativeCreated",
        "stack_info", "exc_info", "exc_text", "thread", "threadName",
        "message", "taskName",
    }
)

_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class StructuredLogFormatter(logging.Formatter):
    """JSON formatter with trace context injection.

    Formats log records as JSON with:
    - timestamp (ISO 8601)
    - level
    - component (logger name)
    - message
    - trace_id / span_id (if a span is recording)
    - error (if the record carries exception info)
    - Additional fields from extra
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON-formatted log string
        """
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        span = trace.get_current_span()
        if span and span.is_recording():
            ctx = span.get_span_context()
            if ctx.is_valid:
                log_data["trace_id"] = format(ctx.trace_id, "032x")
                log_data["span_id"] = format(ctx.span_id, "016x")

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            log_data["error"] = str(exc)
            log_data["error_type"] = type(exc).__name__

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class BillingLogger:
    """Structured logger with trace context support.

    Wraps Python logging with keyword fields that end up as top-level keys
    of the JSON record.
    """

    def __init__(self, name: str, level: int | None = None):
        """Initialize logger.

        Args:
            name: Logger name (component name)
            level: Optional logging level; inherited from the billing root if omitted
        """
        self.name = name
        self._logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
        if level is not None:
            self._logger.setLevel(level)

    @property
    def logger(self) -> logging.Logger:
        """Underlying stdlib logger."""
        return self._logger

    def _log(self, level: int, message: str, **kwargs: Any) -> None:
        """Log message with extra fields."""
        self._logger.log(level, message, extra=kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message."""
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message."""
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message."""
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error message."""
        self._log(logging.ERROR, message, **kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self._logger.exception(message, extra=kwargs)


# Logger cache
_loggers: dict[str, BillingLogger] = {}


def get_logger(name: str, level: int | None = None) -> BillingLogger:
    """Get or create a structured logger.

    Args:
        name: Logger name (component name)
        level: Optional logging level

    Returns:
        BillingLogger instance
    """
    if name not in _loggers:
        _loggers[name] = BillingLogger(name, level)
    return _loggers[name]


def reset_loggers() -> None:
    """Reset logger cache (for testing)."""
    global _loggers
    _loggers = {}


def configure_logging(
    level: LogLevel = LogLevel.INFO,
    format: LogFormat = LogFormat.JSON,
    stream: Any = None,
) -> logging.Logger:
    """Attach a handler to the billing logger tree.

    Replaces handlers previously installed by this function so it can be
    called again on config reload.

    Args:
        level: Minimum level for billing loggers
        format: JSON records or plain text lines
        stream: Output stream (defaults to stderr)

    Returns:
        The configured root billing logger
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(_LEVELS.get(level, logging.INFO))

    for handler in list(root.handlers):
        if getattr(handler, "_billing_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    if format == LogFormat.JSON:
        handler.setFormatter(StructuredLogFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )
    handler._billing_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    return root
