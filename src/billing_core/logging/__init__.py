"""Billing logging - Structured JSON logging with trace context."""

from .logger import (
    ROOT_LOGGER_NAME,
    BillingLogger,
    StructuredLogFormatter,
    configure_logging,
    get_logger,
    reset_loggers,
)

__all__ = [
    "ROOT_LOGGER_NAME",
    "BillingLogger",
    "StructuredLogFormatter",
    "configure_logging",
    "get_logger",
    "reset_loggers",
]
