"""BillingCore - composes plugins into one billing runtime.

Construction is two-phase. Empty mutable state (schema merger, provider
merger, hook manager, endpoint table, method bags) is allocated first and
filled in place while plugins resolve; once every plugin has resolved and
its provider requirements are met, the schema and provider table are frozen
and the object is handed to the caller. A failure at any point raises from
the constructor, so a partially built core is never returned.
"""

from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from pathlib import Path
from typing import Any

from billing_core.api import BillingAPI
from billing_core.config import BillingConfig, ConfigLoader
from billing_core.db import DatabaseAdapter, MemoryAdapter, SchemaBoundDatabase
from billing_core.errors import create_error
from billing_core.hooks import HookErrorObserver, HookManager
from billing_core.logging import BillingLogger, configure_logging, get_logger
from billing_core.plugins import (
    DependencyContext,
    Endpoint,
    PluginDescriptor,
    PluginResolver,
    ResolvedPlugin,
)
from billing_core.plugins.types import iter_descriptors
from billing_core.providers import MergedProviderTable, ProviderMerger
from billing_core.schema import MergedSchema, SchemaMerger


class MethodBag(Mapping[str, Any]):
    """Read-only namespace with attribute access.

    ``billing.methods.core.create_customer`` is
    ``billing.methods["core"]["create_customer"]``.
    """

    __slots__ = ("_kind", "_items")

    def __init__(self, kind: str, items: Mapping[str, Any]):
        self._kind = kind
        self._items = items

    def __getitem__(self, key: str) -> Any:
        return self._items[key]

    def __getattr__(self, key: str) -> Any:
        if key.startswith("_"):
            raise AttributeError(key)
        try:
            return self._items[key]
        except KeyError:
            raise AttributeError(f"No {self._kind} named '{key}'") from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"MethodBag({self._kind!r}, {list(self._items)})"


class BillingCore:
    """Billing runtime composed from plugins.

    Args:
        plugins: Configured plugin descriptors; their dependencies are pulled
            in automatically
        database: Storage adapter (defaults to a MemoryAdapter)
        config: Billing configuration (defaults to BillingConfig())
        hook_observer: Receives hook handler failures after they are logged
        logger: Logger for composition events

    Raises:
        ConfigurationError: On any composition problem (cycles, duplicate ids,
            failing init, disabled dependencies, missing providers)
    """

    def __init__(
        self,
        plugins: Iterable[PluginDescriptor],
        database: DatabaseAdapter | None = None,
        config: BillingConfig | None = None,
        hook_observer: HookErrorObserver | None = None,
        logger: BillingLogger | None = None,
    ):
        self._config = config or BillingConfig()
        if self._config.logging.configure_handler:
            configure_logging(self._config.logging.level, self._config.logging.format)
        self._logger = logger or get_logger("billing")
        self._adapter = database or MemoryAdapter()

        # Phase 1: mutable state, filled while plugins resolve
        self._schema_merger = SchemaMerger()
        self._provider_merger = ProviderMerger()
        self._hooks = HookManager(observer=hook_observer)
        self._endpoints: dict[str, Endpoint] = {}
        self._endpoint_sources: dict[str, str] = {}
        self._methods: dict[str, MethodBag] = {}
        self._plugin_ids: list[str] = []
        self._schema: MergedSchema | None = None
        self._providers: MergedProviderTable | None = None

        descriptors = self._enabled(iter_descriptors(plugins))
        resolved = PluginResolver().resolve(descriptors, self._build_context, self._fold)
        self._check_required_providers(resolved)

        # Phase 2: freeze and expose
        self._schema = self._schema_merger.freeze()
        self._providers = self._provider_merger.freeze()
        self._resolved = resolved
        self._db = SchemaBoundDatabase(self._adapter, self._schema)
        self._api = BillingAPI(self._endpoints, self._config.base_path)

        self._logger.info(
            "Billing core initialized",
            plugins=list(self._plugin_ids),
            tables=list(self._schema),
            providers=list(self._providers),
            endpoints=len(self._endpoints),
        )

    @classmethod
    def from_config_file(
        cls,
        plugins: Iterable[PluginDescriptor],
        path: str | Path | None = None,
        database: DatabaseAdapter | None = None,
        **kwargs: Any,
    ) -> "BillingCore":
        """Build a core with configuration loaded by ConfigLoader."""
        return cls(plugins, database=database, config=ConfigLoader().load(path), **kwargs)

    # Exposed surface

    @property
    def methods(self) -> MethodBag:
        """Plugin id -> that plugin's methods."""
        return MethodBag("plugin", self._methods)

    @property
    def providers(self) -> MergedProviderTable:
        """Provider id -> merged provider methods."""
        return self.get_merged_providers()

    def get_merged_schema(self) -> MergedSchema:
        return self._schema if self._schema is not None else self._schema_merger.live_view()

    def get_merged_providers(self) -> MergedProviderTable:
        if self._providers is not None:
            return self._providers
        return self._provider_merger.live_view()

    @property
    def hooks(self) -> HookManager:
        return self._hooks

    @property
    def endpoints(self) -> dict[str, Endpoint]:
        """Endpoint name -> endpoint, after last-registered-wins merging."""
        return dict(self._endpoints)

    @property
    def plugins(self) -> list[str]:
        """Plugin ids in resolution order."""
        return list(self._plugin_ids)

    @property
    def db(self) -> SchemaBoundDatabase:
        """Database handle bound to the full merged schema."""
        return self._db

    @property
    def adapter(self) -> DatabaseAdapter:
        return self._adapter

    @property
    def api(self) -> BillingAPI:
        return self._api

    @property
    def config(self) -> BillingConfig:
        return self._config

    def source_of_endpoint(self, name: str) -> str | None:
        """Plugin id whose endpoint won under ``name``."""
        return self._endpoint_sources.get(name)

    async def create_schema(self) -> None:
        """Create storage for the merged schema, if the adapter needs it."""
        create_schema = getattr(self._adapter, "create_schema", None)
        if create_schema is not None:
            await create_schema(self.get_merged_schema())

    async def close(self) -> None:
        await self._adapter.close()

    # Construction

    def _enabled(self, descriptors: list[PluginDescriptor]) -> list[PluginDescriptor]:
        disabled = set(self._config.disabled_plugins)
        if not disabled:
            return descriptors

        enabled = [d for d in descriptors if d.id not in disabled]
        for dropped in (d for d in descriptors if d.id in disabled):
            self._logger.info("Plugin disabled by configuration", plugin_id=dropped.id)

        seen: set[int] = set()
        stack = list(enabled)
        while stack:
            descriptor = stack.pop()
            if id(descriptor) in seen:
                continue
            seen.add(id(descriptor))
            for dependency in descriptor.dependencies:
                if dependency.id in disabled:
                    raise create_error(
                        "PLUGIN_DISABLED_DEPENDENCY",
                        plugin_id=descriptor.id,
                        dependency_id=dependency.id,
                    )
                stack.append(dependency)
        return enabled

    def _build_context(
        self, descriptor: PluginDescriptor, resolved: Sequence[ResolvedPlugin]
    ) -> DependencyContext:
        dependencies = _transitive_dependencies(descriptor)
        visible = [plugin for plugin in resolved if id(plugin.descriptor) in dependencies]

        schema = SchemaMerger(self._logger)
        providers = ProviderMerger(self._logger)
        for plugin in visible:
            schema.add(plugin.result.schema, source=plugin.id)
            providers.add_all(plugin.result.providers, source=plugin.id)

        return DependencyContext(
            db=SchemaBoundDatabase(self._adapter, schema.freeze()),
            providers=providers.freeze(),
            hooks=self._hooks,
            options=self._config,
            plugin_id=descriptor.id,
            plugins=tuple(plugin.id for plugin in visible),
            _extras=self._live_context_factory(descriptor.id),
        )

    def _live_context_factory(self, plugin_id: str) -> Callable[[], DependencyContext]:
        def live() -> DependencyContext:
            if self._schema is not None:
                db = self._db
            else:
                db = SchemaBoundDatabase(self._adapter, self._schema_merger.live_view())
            return DependencyContext(
                db=db,
                providers=self.get_merged_providers(),
                hooks=self._hooks,
                options=self._config,
                plugin_id=plugin_id,
                plugins=tuple(self._plugin_ids),
            )

        return live

    def _fold(self, plugin: ResolvedPlugin) -> None:
        result = plugin.result
        self._schema_merger.add(result.schema, source=plugin.id)
        self._provider_merger.add_all(result.providers, source=plugin.id)
        self._hooks.register_many(result.hooks)

        for name, endpoint in result.endpoints.items():
            previous = self._endpoint_sources.get(name)
            if previous is not None:
                self._logger.warning(
                    "Endpoint overridden",
                    endpoint=name,
                    previous_source=previous,
                    source=plugin.id,
                )
            self._endpoints[name] = endpoint
            self._endpoint_sources[name] = plugin.id

        self._methods[plugin.id] = MethodBag(f"method of plugin '{plugin.id}'", result.methods)
        self._plugin_ids.append(plugin.id)
        self._logger.debug(
            "Plugin resolved",
            plugin_id=plugin.id,
            tables=list(result.schema or {}),
            provider_ids=[p.provider_id for p in result.providers],
            hooks=list(result.hooks),
        )

    def _check_required_providers(self, resolved: Sequence[ResolvedPlugin]) -> None:
        table = self._provider_merger.live_view()
        for plugin in resolved:
            for requirement in plugin.descriptor.required_providers:
                table.require(requirement.provider_id, requirement.capability, plugin.id)


def _transitive_dependencies(descriptor: PluginDescriptor) -> set[int]:
    seen: set[int] = set()
    stack = list(descriptor.dependencies)
    while stack:
        dependency = stack.pop()
        if id(dependency) in seen:
            continue
        seen.add(id(dependency))
        stack.extend(dependency.dependencies)
    return seen


def create_billing(
    plugins: Iterable[PluginDescriptor],
    database: DatabaseAdapter | None = None,
    config: BillingConfig | None = None,
    **kwargs: Any,
) -> BillingCore:
    """Compose plugins into a BillingCore.

    Example:
        core = core_plugin()
        billing = create_billing([core, usage_metering_plugin(core)])
        customer = await billing.methods.core.create_customer({"email": "a@b.co"})
    """
    return BillingCore(plugins, database=database, config=config, **kwargs)
