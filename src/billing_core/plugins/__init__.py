"""Plugin descriptors, resolution and built-in plugins."""

from .context import DependencyContext
from .factory import create_plugin
from .resolver import PluginResolver
from .types import (
    Endpoint,
    PluginDescriptor,
    PluginInit,
    PluginResult,
    ProviderRequirement,
    ResolvedPlugin,
)

__all__ = [
    "DependencyContext",
    "Endpoint",
    "PluginDescriptor",
    "PluginInit",
    "PluginResolver",
    "PluginResult",
    "ProviderRequirement",
    "ResolvedPlugin",
    "create_plugin",
]
