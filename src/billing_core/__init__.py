"""Billing Core - Plugin-composed billing engine.

Plugins contribute database schema, provider capabilities, lifecycle hooks,
HTTP endpoints and methods; BillingCore resolves them in dependency order and
merges their contributions into one runtime.
"""

from billing_core.billing import BillingCore, MethodBag, create_billing
from billing_core.plugins import DependencyContext, PluginDescriptor, PluginResult, create_plugin
from billing_core.plugins.builtin import core_plugin, usage_metering_plugin

__version__ = "0.1.0"
__all__ = [
    "__version__",
    "BillingCore",
    "DependencyContext",
    "MethodBag",
    "PluginDescriptor",
    "PluginResult",
    "core_plugin",
    "create_billing",
    "create_plugin",
    "usage_metering_plugin",
]
