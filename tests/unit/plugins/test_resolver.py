"""Tests for dependency-ordered plugin resolution."""

import sys

import pytest

from billing_core.config import BillingConfig
from billing_core.db import MemoryAdapter, SchemaBoundDatabase
from billing_core.errors import ConfigurationError, create_error
from billing_core.hooks import HookManager
from billing_core.plugins import (
    DependencyContext,
    PluginResolver,
    PluginResult,
    create_plugin,
)
from billing_core.providers import merge_providers
from billing_core.schema import merge_schemas


def noop(context):
    return None


def plugin(id: str, *deps, init=noop):
    return create_plugin(id, init, depends_on=deps)


def ids(descriptors) -> list[str]:
    return [d.id for d in descriptors]


def simple_context(descriptor, resolved) -> DependencyContext:
    return DependencyContext(
        db=SchemaBoundDatabase(MemoryAdapter(), merge_schemas()),
        providers=merge_providers(),
        hooks=HookManager(),
        options=BillingConfig(),
        plugin_id=descriptor.id,
    )


@pytest.fixture
def resolver() -> PluginResolver:
    return PluginResolver()


class TestOrder:
    """Test topological ordering."""

    def test_dependencies_come_first(self, resolver: PluginResolver) -> None:
        core = plugin("core")
        usage = plugin("usage", core)
        assert ids(resolver.order([usage])) == ["core", "usage"]

    def test_declaration_order_for_independent_plugins(self, resolver: PluginResolver) -> None:
        a, b, c = plugin("a"), plugin("b"), plugin("c")
        assert ids(resolver.order([b, c, a])) == ["b", "c", "a"]

    def test_dependency_order_then_declaration_order(self, resolver: PluginResolver) -> None:
        core = plugin("core")
        x = plugin("x", core)
        y = plugin("y")
        z = plugin("z", y, core)
        assert ids(resolver.order([x, z])) == ["core", "x", "y", "z"]

    def test_shared_dependency_visited_once(self, resolver: PluginResolver) -> None:
        core = plugin("core")
        a = plugin("a", core)
        b = plugin("b", core)
        assert ids(resolver.order([a, b, core])) == ["core", "a", "b"]

    def test_cycle_names_participants_in_order(self, resolver: PluginResolver) -> None:
        a = plugin("a")
        b = plugin("b", a)
        c = plugin("c", b)
        a.dependencies = (c,)

        with pytest.raises(ConfigurationError) as exc_info:
            resolver.order([a])
        assert exc_info.value.code == "PLUGIN_CYCLE"
        assert "a -> c -> b -> a" in exc_info.value.message

    def test_self_dependency_is_a_cycle(self, resolver: PluginResolver) -> None:
        a = plugin("a")
        a.dependencies = (a,)
        with pytest.raises(ConfigurationError) as exc_info:
            resolver.order([a])
        assert "a -> a" in exc_info.value.message

    def test_duplicate_id(self, resolver: PluginResolver) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            resolver.order([plugin("core"), plugin("core")])
        assert exc_info.value.code == "PLUGIN_DUPLICATE_ID"
        assert exc_info.value.plugin_id == "core"

    def test_same_object_twice_is_fine(self, resolver: PluginResolver) -> None:
        core = plugin("core")
        assert ids(resolver.order([core, core])) == ["core"]

    def test_chain_deeper_than_the_recursion_limit(self, resolver: PluginResolver) -> None:
        depth = sys.getrecursionlimit() + 500
        chain = [plugin("p0")]
        for i in range(1, depth):
            chain.append(plugin(f"p{i}", chain[-1]))

        assert ids(resolver.order([chain[-1]])) == [f"p{i}" for i in range(depth)]

    def test_deep_cycle_is_a_configuration_error(self, resolver: PluginResolver) -> None:
        depth = sys.getrecursionlimit() + 500
        chain = [plugin("p0")]
        for i in range(1, depth):
            chain.append(plugin(f"p{i}", chain[-1]))
        chain[0].dependencies = (chain[-1],)

        with pytest.raises(ConfigurationError) as exc_info:
            resolver.order([chain[-1]])
        assert exc_info.value.code == "PLUGIN_CYCLE"


class TestResolve:
    """Test init invocation and result normalization."""

    def test_init_receives_context_and_callbacks_run_in_order(
        self, resolver: PluginResolver
    ) -> None:
        seen: list[str] = []

        def init(context):
            seen.append(f"init:{context.plugin_id}")
            return {"methods": {"ping": lambda: "pong"}}

        core = plugin("core", init=init)
        usage = plugin("usage", core, init=init)

        resolved = resolver.resolve(
            [usage], simple_context, lambda p: seen.append(f"resolved:{p.id}")
        )

        assert seen == ["init:core", "resolved:core", "init:usage", "resolved:usage"]
        assert [p.id for p in resolved] == ["core", "usage"]
        assert resolved[0].result.methods["ping"]() == "pong"

    def test_build_context_sees_previously_resolved(self, resolver: PluginResolver) -> None:
        snapshots: dict[str, list[str]] = {}

        def build(descriptor, resolved):
            snapshots[descriptor.id] = [p.id for p in resolved]
            return simple_context(descriptor, resolved)

        core = plugin("core")
        resolver.resolve([plugin("usage", core)], build)
        assert snapshots == {"core": [], "usage": ["core"]}

    def test_init_exception_is_wrapped(self, resolver: PluginResolver) -> None:
        def init(context):
            raise KeyError("secret_key")

        with pytest.raises(ConfigurationError) as exc_info:
            resolver.resolve([plugin("stripe", init=init)], simple_context)

        error = exc_info.value
        assert error.code == "PLUGIN_INIT_FAILED"
        assert error.plugin_id == "stripe"
        assert "KeyError" in error.detail
        assert isinstance(error.__cause__, KeyError)

    def test_init_billing_error_becomes_cause(self, resolver: PluginResolver) -> None:
        def init(context):
            raise create_error("MODEL_UNKNOWN", model="customer")

        with pytest.raises(ConfigurationError) as exc_info:
            resolver.resolve([plugin("usage", init=init)], simple_context)
        assert exc_info.value.cause is not None
        assert exc_info.value.cause.code == "MODEL_UNKNOWN"

    def test_configuration_error_passes_through(self, resolver: PluginResolver) -> None:
        def init(context):
            raise create_error("CONFIG_INVALID", detail="bad option")

        with pytest.raises(ConfigurationError) as exc_info:
            resolver.resolve([plugin("x", init=init)], simple_context)
        assert exc_info.value.code == "CONFIG_INVALID"

    def test_async_init_rejected(self, resolver: PluginResolver) -> None:
        async def init(context):
            return {}

        with pytest.raises(ConfigurationError) as exc_info:
            resolver.resolve([plugin("x", init=init)], simple_context)
        assert exc_info.value.code == "PLUGIN_INVALID_RESULT"

    def test_unknown_result_keys_rejected(self, resolver: PluginResolver) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            resolver.resolve(
                [plugin("x", init=lambda ctx: {"schema": {}, "routes": []})], simple_context
            )
        assert exc_info.value.code == "PLUGIN_INVALID_RESULT"
        assert "routes" in exc_info.value.detail

    def test_non_mapping_result_rejected(self, resolver: PluginResolver) -> None:
        with pytest.raises(ConfigurationError):
            resolver.resolve([plugin("x", init=lambda ctx: ["schema"])], simple_context)

    def test_plugin_result_instance_accepted(self, resolver: PluginResolver) -> None:
        resolved = resolver.resolve(
            [plugin("x", init=lambda ctx: PluginResult(schema={"audit": {"event": "string"}}))],
            simple_context,
        )
        assert list(resolved[0].result.schema) == ["audit"]
