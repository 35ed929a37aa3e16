"""Shared types for billing core."""

from .enums import (
    Capability,
    Connector,
    FieldType,
    LogFormat,
    LogLevel,
    Operator,
    SubscriptionStatus,
)
from .validation import ValidationIssue, ValidationResult

__all__ = [
    # Enums
    "Capability",
    "Connector",
    "FieldType",
    "LogFormat",
    "LogLevel",
    "Operator",
    "SubscriptionStatus",
    # Validation
    "ValidationIssue",
    "ValidationResult",
]
