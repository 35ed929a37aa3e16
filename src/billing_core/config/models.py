"""Billing configuration data models."""

from dataclasses import dataclass, field
from typing import Any

from billing_core.types import LogFormat, LogLevel


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.JSON
    configure_handler: bool = False  # Install a handler on the billing logger tree


@dataclass
class BillingConfig:
    """Top-level billing configuration.

    Plugins themselves are supplied in code; the configuration only carries
    settings that shape how they are composed and exposed.
    """

    base_path: str = "/api/billing"
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    disabled_plugins: list[str] = field(default_factory=list)
    plugin_options: dict[str, dict[str, Any]] = field(default_factory=dict)

    def options_for(self, plugin_id: str) -> dict[str, Any]:
        """Options configured for a plugin (empty when none)."""
        return dict(self.plugin_options.get(plugin_id, {}))

    def is_enabled(self, plugin_id: str) -> bool:
        """Whether a plugin id is not listed in disabled_plugins."""
        return plugin_id not in self.disabled_plugins
