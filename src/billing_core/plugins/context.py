"""Dependency-injection context passed to plugin init functions."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from billing_core.config import BillingConfig
from billing_core.db import SchemaBoundDatabase
from billing_core.hooks import HookManager
from billing_core.providers import MergedProviderTable


@dataclass
class DependencyContext:
    """What a plugin can reach while it initializes.

    Attributes:
        db: Database handle bound to the schema of the plugin's dependencies
        providers: Provider table merged from the same dependencies
        hooks: The shared hook manager
        options: Billing configuration
        plugin_id: Id of the plugin being initialized
        plugins: Ids of the plugins visible through this context, in
            resolution order
    """

    db: SchemaBoundDatabase
    providers: MergedProviderTable
    hooks: HookManager
    options: BillingConfig
    plugin_id: str
    plugins: Sequence[str] = ()
    _extras: Callable[[], "DependencyContext"] | None = field(default=None, repr=False)

    def with_extras(self) -> "DependencyContext":
        """Context over the full, live core state.

        After construction it reflects every plugin's contributions, this
        plugin's own included. Called during init it sees whatever has been
        folded so far.
        """
        if self._extras is None:
            return self
        return self._extras()

    @property
    def plugin_options(self) -> dict[str, Any]:
        """Options configured for this plugin."""
        return self.options.options_for(self.plugin_id)
