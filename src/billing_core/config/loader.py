"""Billing configuration loader."""

import os
import re
from pathlib import Path
from typing import Any

import yaml

from billing_core.errors import create_error
from billing_core.logging import get_logger
from billing_core.types import LogFormat, LogLevel, ValidationIssue, ValidationResult

from .models import BillingConfig, LoggingConfig

CONFIG_PATH_ENV = "BILLING_CONFIG_PATH"
DEFAULT_CONFIG_FILE = "billing-config.yaml"

logger = get_logger("config")


def resolve_env_vars(value: str) -> str:
    """Resolve environment variable references in string.

    Supports:
    - ${VAR} - Required, error if not set
    - ${VAR:-default} - With default value
    - ${VAR:?error message} - Required with custom error

    Args:
        value: String with potential env var references

    Returns:
        String with env vars resolved

    Raises:
        ConfigurationError: If required var not set
    """
    pattern = r"\$\{([^}:]+)(?::([?-])([^}]*))?\}"

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        operator = match.group(2)  # '-' or '?' or None
        operand = match.group(3)  # default value or error message

        env_value = os.environ.get(var_name)
        if env_value is not None:
            return env_value

        if operator == "-":
            return operand or ""
        if operator == "?":
            error_msg = operand or f"Required environment variable {var_name} not set"
            raise create_error("CONFIG_INVALID", detail=error_msg)
        raise create_error(
            "CONFIG_INVALID",
            detail=f"Required environment variable {var_name} not set",
        )

    return re.sub(pattern, replacer, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    """Recursively resolve env vars in data structure."""
    if isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return resolve_env_vars(data)
    else:
        return data


class ConfigLoader:
    """Load and validate billing configuration."""

    VALID_KEYS = frozenset({"base_path", "logging", "disabled_plugins", "plugin_options"})

    def __init__(self) -> None:
        self._config: BillingConfig | None = None
        self._config_path: Path | None = None

    def load(self, path: str | Path | None = None, use_defaults: bool = True) -> BillingConfig:
        """Load configuration from a YAML file.

        Resolution order if path not specified:
        1. BILLING_CONFIG_PATH environment variable
        2. ./billing-config.yaml
        3. If use_defaults=True and no file found, use default configuration

        Args:
            path: Optional path to config file
            use_defaults: If True, use default config when no file found

        Returns:
            Loaded BillingConfig instance

        Raises:
            ConfigurationError: If file not found (when use_defaults=False) or invalid
        """
        config_path = Path(path) if path is not None else self._resolve_config_path()

        if not config_path.exists():
            if use_defaults:
                logger.info("No config file found, using default configuration")
                return self.load_defaults()
            raise create_error("CONFIG_NOT_FOUND", path=str(config_path))

        try:
            with config_path.open() as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise create_error(
                "CONFIG_INVALID",
                detail=f"Invalid YAML in config file: {e}",
            ) from e

        if not isinstance(data, dict):
            raise create_error("CONFIG_INVALID", detail="Config file must contain a mapping")

        data = _resolve_env_vars_recursive(data)
        return self.load_from_dict(data, config_path)

    def load_defaults(self) -> BillingConfig:
        """Load default configuration without a file."""
        return self.load_from_dict({})

    def load_from_dict(
        self, data: dict[str, Any], config_path: Path | None = None
    ) -> BillingConfig:
        """Load configuration from dictionary.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        validation = self.validate(data)
        if not validation.valid:
            error_messages = [f"- {issue.path}: {issue.message}" for issue in validation.errors]
            raise create_error(
                "CONFIG_INVALID",
                detail="Configuration validation failed:\n" + "\n".join(error_messages),
            )
        for issue in validation.warnings:
            logger.warning(issue.message, path=issue.path)

        config = self._dict_to_config(data)
        self._config = config
        self._config_path = config_path
        logger.debug("Configuration loaded", path=str(config_path) if config_path else None)
        return config

    def validate(self, data: dict[str, Any]) -> ValidationResult:
        """Validate config data without loading."""
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []

        for key in data:
            if key not in self.VALID_KEYS:
                warnings.append(
                    ValidationIssue(
                        path=key,
                        message=f"Unknown configuration key: {key}",
                        severity="warning",
                    )
                )

        base_path = data.get("base_path")
        if base_path is not None and (
            not isinstance(base_path, str) or not base_path.startswith("/")
        ):
            errors.append(
                ValidationIssue(path="base_path", message="base_path must start with '/'")
            )

        logging_data = data.get("logging")
        if logging_data is not None:
            if not isinstance(logging_data, dict):
                errors.append(
                    ValidationIssue(path="logging", message="logging must be a dictionary")
                )
            else:
                level = logging_data.get("level")
                if level is not None and str(level).upper() not in LogLevel.__members__:
                    errors.append(
                        ValidationIssue(
                            path="logging.level",
                            message=f"level must be one of {sorted(LogLevel.__members__)}",
                        )
                    )
                fmt = logging_data.get("format")
                if fmt is not None and fmt not in {f.value for f in LogFormat}:
                    errors.append(
                        ValidationIssue(
                            path="logging.format",
                            message=f"format must be one of {[f.value for f in LogFormat]}",
                        )
                    )

        disabled = data.get("disabled_plugins")
        if disabled is not None and (
            not isinstance(disabled, list) or not all(isinstance(p, str) for p in disabled)
        ):
            errors.append(
                ValidationIssue(
                    path="disabled_plugins",
                    message="disabled_plugins must be a list of plugin ids",
                )
            )

        options = data.get("plugin_options")
        if options is not None:
            if not isinstance(options, dict):
                errors.append(
                    ValidationIssue(
                        path="plugin_options", message="plugin_options must be a dictionary"
                    )
                )
            else:
                for plugin_id, value in options.items():
                    if not isinstance(value, dict):
                        errors.append(
                            ValidationIssue(
                                path=f"plugin_options.{plugin_id}",
                                message="plugin options must be a dictionary",
                            )
                        )

        return ValidationResult(valid=True, errors=errors, warnings=warnings)

    def get(self) -> BillingConfig:
        """Get current configuration.

        Raises:
            ConfigurationError: If configuration not loaded
        """
        if self._config is None:
            raise create_error("CONFIG_INVALID", detail="Configuration not loaded")
        return self._config

    def _resolve_config_path(self) -> Path:
        env_path = os.environ.get(CONFIG_PATH_ENV)
        if env_path:
            return Path(env_path)
        return Path(DEFAULT_CONFIG_FILE)

    def _dict_to_config(self, data: dict[str, Any]) -> BillingConfig:
        logging_data = data.get("logging") or {}
        logging_config = LoggingConfig(
            level=LogLevel[str(logging_data.get("level", LogLevel.INFO.value)).upper()],
            format=LogFormat(logging_data.get("format", LogFormat.JSON.value)),
            configure_handler=bool(logging_data.get("configure_handler", False)),
        )
        return BillingConfig(
            base_path=data.get("base_path", "/api/billing"),
            logging=logging_config,
            disabled_plugins=list(data.get("disabled_plugins") or []),
            plugin_options={k: dict(v) for k, v in (data.get("plugin_options") or {}).items()},
        )
