"""Error registry for creating errors from templates."""

from typing import Any

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


class ErrorRegistry:
    """Registry of error templates. Creates errors from templates + context."""

    def __init__(self) -> None:
        """Initialize error registry with built-in templates."""
        self._templates: dict[str, ErrorTemplate] = {}
        self._load_builtin_templates()

    def get_template(self, code: str) -> ErrorTemplate | None:
        """Get template by error code.

        Args:
            code: Error code to look up

        Returns:
            ErrorTemplate if found, None otherwise
        """
        return self._templates.get(code)

    def list_codes(self) -> list[str]:
        """List all registered error codes."""
        return list(self._templates.keys())

    def register(self, template: ErrorTemplate) -> None:
        """Register (or replace) a template."""
        self._templates[template.code] = template

    def create(
        self,
        code: str,
        context: dict[str, Any] | None = None,
        cause: BillingError | None = None,
    ) -> BillingError:
        """Create error instance from template + context.

        Args:
            code: Error code
            context: Context variables for template interpolation
            cause: Optional cause error

        Returns:
            Instance of the template's error class

        Raises:
            ValueError: If error code not found
        """
        template = self.get_template(code)
        if not template:
            msg = f"Unknown error code: {code}"
            raise ValueError(msg)

        context = context or {}

        message = self._interpolate(template.message_template, context) or f"Error {code}"
        detail = self._interpolate(template.detail_template, context)
        suggestion = self._interpolate(template.suggestion_template, context)

        operator = context.get("operator")
        if operator is not None and hasattr(operator, "value"):
            operator = operator.value

        return template.error_class(
            code=template.code,
            category=template.category,
            message=message,
            detail=detail,
            suggestion=suggestion,
            http_status=template.default_http_status,
            field=context.get("field"),
            operator=operator,
            plugin_id=context.get("plugin_id"),
            provider_id=context.get("provider_id"),
            cause=cause,
        )

    def _interpolate(
        self,
        template: str | None,
        context: dict[str, Any],
    ) -> str | None:
        """Safe string interpolation.

        Args:
            template: Template string with {var} placeholders
            context: Context variables

        Returns:
            Interpolated string or None if template is None
        """
        if template is None:
            return None

        try:
            return template.format(**context)
        except (KeyError, IndexError):
            # Missing context variable - return template as-is
            return template

    def _load_builtin_templates(self) -> None:
        """Load hardcoded built-in templates."""
        # CONFIGURATION errors
        self._add(
            "PLUGIN_CYCLE",
            ConfigurationError,
            ErrorCategory.CONFIGURATION,
            "Plugin dependency cycle detected: {cycle}",
            suggestion="Remove one of the dependencies so the plugin graph is acyclic",
        )
        self._add(
            "PLUGIN_DUPLICATE_ID",
            ConfigurationError,
            ErrorCategory.CONFIGURATION,
            "Plugin id '{plugin_id}' is declared by more than one plugin",
            suggestion="Give each plugin a unique id or reuse the same plugin object",
        )
        self._add(
            "PLUGIN_INIT_FAILED",
            ConfigurationError,
            ErrorCategory.CONFIGURATION,
            "Plugin '{plugin_id}' failed to initialize",
            detail="{detail}",
        )
        self._add(
            "PLUGIN_INVALID_RESULT",
            ConfigurationError,
            ErrorCategory.CONFIGURATION,
            "Plugin '{plugin_id}' returned an invalid result",
            detail="{detail}",
        )
        self._add(
            "PLUGIN_INVALID",
            ConfigurationError,
            ErrorCategory.CONFIGURATION,
            "Invalid plugin descriptor '{plugin_id}'",
            detail="{detail}",
        )
        self._add(
            "PLUGIN_DISABLED_DEPENDENCY",
            ConfigurationError,
            ErrorCategory.CONFIGURATION,
            "Plugin '{plugin_id}' depends on disabled plugin '{dependency_id}'",
            suggestion="Enable '{dependency_id}' or disable '{plugin_id}' as well",
        )
        self._add(
            "PROVIDER_REQUIRED",
            ConfigurationError,
            ErrorCategory.CONFIGURATION,
            "Plugin '{plugin_id}' requires provider '{provider_id}'{capability_suffix}",
            suggestion="Add a plugin that contributes the provider",
        )
        self._add(
            "PROVIDER_INVALID",
            ConfigurationError,
            ErrorCategory.CONFIGURATION,
            "Invalid provider contribution for '{provider_id}'",
            detail="{detail}",
        )
        self._add(
            "SCHEMA_INVALID",
            ConfigurationError,
            ErrorCategory.CONFIGURATION,
            "Invalid schema definition for table '{table}'",
            detail="{detail}",
        )
        self._add(
            "SCHEMA_FROZEN",
            ConfigurationError,
            ErrorCategory.CONFIGURATION,
            "Merged {kind} is frozen and cannot be extended",
        )
        self._add(
            "CONFIG_INVALID",
            ConfigurationError,
            ErrorCategory.CONFIGURATION,
            "Configuration is invalid",
            detail="{detail}",
        )
        self._add(
            "CONFIG_NOT_FOUND",
            ConfigurationError,
            ErrorCategory.CONFIGURATION,
            "Config file not found: {path}",
        )

        # VALIDATION errors
        self._add(
            "CONDITION_INVALID",
            ValidationError,
            ErrorCategory.VALIDATION,
            "Malformed condition",
            detail="{detail}",
            http_status=400,
        )
        self._add(
            "CONDITION_OPERAND_TYPE",
            ValidationError,
            ErrorCategory.VALIDATION,
            "Operator '{operator}' cannot be applied to field '{field}'",
            detail="{detail}",
            http_status=400,
        )
        self._add(
            "FIELD_UNKNOWN",
            ValidationError,
            ErrorCategory.VALIDATION,
            "Unknown field '{field}' on model '{model}'",
            http_status=400,
        )
        self._add(
            "FIELD_REQUIRED",
            ValidationError,
            ErrorCategory.VALIDATION,
            "Field '{field}' is required on model '{model}'",
            http_status=400,
        )
        self._add(
            "FIELD_VALUE_INVALID",
            ValidationError,
            ErrorCategory.VALIDATION,
            "Invalid value for field '{field}' on model '{model}'",
            detail="{detail}",
            http_status=400,
        )
        self._add(
            "MODEL_UNKNOWN",
            ValidationError,
            ErrorCategory.VALIDATION,
            "Unknown model '{model}'",
            suggestion="Depend on the plugin that declares the '{model}' table",
            http_status=400,
        )
        self._add(
            "WHERE_REQUIRED",
            ValidationError,
            ErrorCategory.VALIDATION,
            "Operation '{operation}' on '{model}' requires a non-empty condition",
            http_status=400,
        )
        self._add(
            "OPERATOR_UNSUPPORTED",
            UnsupportedOperatorError,
            ErrorCategory.VALIDATION,
            "Operator '{operator}' is not supported by {adapter}",
            http_status=400,
        )

        # PROVIDER errors
        self._add(
            "PROVIDER_NOT_FOUND",
            ProviderNotFoundError,
            ErrorCategory.PROVIDER,
            "Provider '{provider_id}' is not registered",
            http_status=404,
        )
        self._add(
            "PROVIDER_METHOD_NOT_FOUND",
            ProviderNotFoundError,
            ErrorCategory.PROVIDER,
            "Provider '{provider_id}' has no method '{method}'",
            http_status=404,
        )

        # NOT_FOUND errors
        self._add(
            "ENTITY_NOT_FOUND",
            NotFoundError,
            ErrorCategory.NOT_FOUND,
            "{model} '{entity_id}' not found",
            http_status=404,
        )

        # SYSTEM errors
        self._add(
            "INTERNAL_ERROR",
            BillingError,
            ErrorCategory.SYSTEM,
            "Internal error",
            detail="{detail}",
        )

    def _add(
        self,
        code: str,
        error_class: type[BillingError],
        category: ErrorCategory,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        http_status: int = 500,
    ) -> None:
        self._templates[code] = ErrorTemplate(
            code=code,
            error_class=error_class,
            category=category,
            message_template=message,
            detail_template=detail,
            suggestion_template=suggestion,
            default_http_status=http_status,
        )
