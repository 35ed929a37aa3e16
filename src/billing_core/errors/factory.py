"""Error factory helpers."""

from typing import Any

from .errors import BillingError
from .registry import ErrorRegistry


class ErrorFactory:
    """Creates BillingErrors from registered codes or arbitrary exceptions."""

    def __init__(self, registry: ErrorRegistry | None = None):
        """Initialize error factory.

        Args:
            registry: Error registry (defaults to new ErrorRegistry())
        """
        self.registry = registry or ErrorRegistry()

    def create(
        self,
        code: str,
        context: dict[str, Any] | None = None,
        cause: BillingError | None = None,
        **kwargs: Any,
    ) -> BillingError:
        """Create BillingError directly from code.

        Args:
            code: Error code
            context: Context variables for template interpolation
            cause: Optional cause error
            **kwargs: Additional context variables

        Returns:
            BillingError instance
        """
        merged_context = dict(context or {})
        merged_context.update(kwargs)

        return self.registry.create(code=code, context=merged_context, cause=cause)

    def from_exception(self, error: Exception, **context: Any) -> BillingError:
        """Convert any exception to a BillingError.

        BillingErrors pass through unchanged; anything else becomes
        INTERNAL_ERROR with the original message as detail.
        """
        if isinstance(error, BillingError):
            return error
        context.setdefault("detail", f"{type(error).__name__}: {error}")
        return self.create("INTERNAL_ERROR", context)


# Convenience singleton
_default_factory: ErrorFactory | None = None


def get_error_factory() -> ErrorFactory:
    """Get default error factory singleton."""
    global _default_factory  # noqa: PLW0603
    if _default_factory is None:
        _default_factory = ErrorFactory()
    return _default_factory


def create_error(code: str, cause: BillingError | None = None, **context: Any) -> BillingError:
    """Convenience function to create error.

    Args:
        code: Error code
        cause: Optional cause error
        **context: Context variables for template interpolation

    Returns:
        BillingError instance
    """
    return get_error_factory().create(code, context, cause=cause)
