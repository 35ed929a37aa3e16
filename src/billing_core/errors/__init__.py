"""Billing error handling - Structured errors with context."""

from .errors import (
    BillingError,
    ConfigurationError,
    ErrorCategory,
    ErrorTemplate,
    NotFoundError,
    ProviderNotFoundError,
    UnsupportedOperatorError,
    ValidationError,
)
from .factory import ErrorFactory, create_error, get_error_factory
from .registry import ErrorRegistry

__all__ = [
    # Core error types
    "BillingError",
    "ErrorCategory",
    "ErrorTemplate",
    # Taxonomy
    "ConfigurationError",
    "ValidationError",
    "UnsupportedOperatorError",
    "ProviderNotFoundError",
    "NotFoundError",
    # Registry and factory
    "ErrorRegistry",
    "ErrorFactory",
    # Convenience functions
    "get_error_factory",
    "create_error",
]
