"""Billing error types."""

import dataclasses
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error source categories."""

    CONFIGURATION = "CONFIGURATION"
    VALIDATION = "VALIDATION"
    PROVIDER = "PROVIDER"
    NOT_FOUND = "NOT_FOUND"
    SYSTEM = "SYSTEM"


@dataclass(eq=False)
class BillingError(Exception):
    """Structured error with context. Base exception for all billing errors."""

    # Identity
    code: str  # e.g., "PLUGIN_CYCLE"
    category: ErrorCategory

    # Messages
    message: str  # Human-readable summary
    detail: str | None = None  # Extended explanation
    suggestion: str | None = None  # Actionable fix

    # Context
    http_status: int = 500  # For REST API responses
    field: str | None = None  # Offending condition/schema field
    operator: str | None = None  # Offending condition operator
    plugin_id: str | None = None
    provider_id: str | None = None

    cause: "BillingError | None" = None

    timestamp: datetime = dataclasses.field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        """Set Exception message."""
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses.

        Returns:
            Dictionary representation of the error
        """
        return {
            "code": self.code,
            "category": self.category.value,
            "message": self.message,
            "detail": self.detail,
            "suggestion": self.suggestion,
            "field": self.field,
            "operator": self.operator,
            "plugin_id": self.plugin_id,
            "provider_id": self.provider_id,
            "timestamp": self.timestamp.isoformat(),
            "cause": self.cause.to_dict() if self.cause else None,
        }


class ConfigurationError(BillingError):
    """Invalid plugin composition or configuration. Raised at construction."""


class ValidationError(BillingError):
    """Malformed condition, operand-type mismatch or unknown model/field."""


class UnsupportedOperatorError(BillingError):
    """An adapter cannot honor a requested condition operator."""


class ProviderNotFoundError(BillingError, AttributeError):
    """Unregistered provider or provider method referenced."""


class NotFoundError(BillingError):
    """Entity absent for an update/cancel-style operation."""


@dataclass
class ErrorTemplate:
    """Template for creating errors."""

    code: str
    error_class: type[BillingError]
    category: ErrorCategory
    message_template: str  # "Plugin '{plugin_id}' failed to initialize"
    detail_template: str | None = None
    suggestion_template: str | None = None
    default_http_status: int = 500
