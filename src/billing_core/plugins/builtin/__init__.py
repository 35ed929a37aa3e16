"""Built-in plugins."""

from .core import CORE_PLUGIN_ID, CORE_SCHEMA, CoreMethods, core_plugin
from .usage import USAGE_PLUGIN_ID, USAGE_SCHEMA, UsageMethods, usage_metering_plugin

__all__ = [
    "CORE_PLUGIN_ID",
    "CORE_SCHEMA",
    "CoreMethods",
    "core_plugin",
    "USAGE_PLUGIN_ID",
    "USAGE_SCHEMA",
    "UsageMethods",
    "usage_metering_plugin",
]
