"""Tests for BillingCore composition."""

import logging

import pytest

from billing_core import BillingCore, create_billing
from billing_core.config import BillingConfig
from billing_core.db import SchemaBoundDatabase
from billing_core.errors import ConfigurationError, ProviderNotFoundError, ValidationError
from billing_core.plugins import Endpoint, PluginResult, create_plugin
from billing_core.providers import ProviderContribution
from billing_core.schema import FieldSpec
from billing_core.types import Capability


async def ping() -> dict:
    return {"pong": True}


async def pong() -> dict:
    return {"pong": False}


async def method(data):
    return data


def static_plugin(id: str, result: dict | None = None, depends_on=()):
    return create_plugin(id, lambda ctx: result, depends_on=depends_on)


class TestComposition:
    """Test folding of plugin contributions."""

    def test_empty_core(self) -> None:
        billing = create_billing([])
        assert billing.plugins == []
        assert len(billing.get_merged_schema()) == 0
        assert len(billing.providers) == 0
        assert billing.endpoints == {}

    def test_plugins_in_resolution_order(self) -> None:
        a = static_plugin("a")
        b = static_plugin("b", depends_on=[a])
        billing = create_billing([b, static_plugin("c")])
        assert billing.plugins == ["a", "b", "c"]

    def test_schema_is_merged_in_order(self) -> None:
        a = static_plugin("a", {"schema": {"customer": {"email": "string", "name": "string"}}})
        b = static_plugin("b", {"schema": {"customer": {"email": "json"}}}, depends_on=[a])
        billing = create_billing([b])

        schema = billing.get_merged_schema()
        assert schema.get_field("customer", "email") == FieldSpec("json")
        assert schema.get_field("customer", "name") == FieldSpec("string")

    def test_providers_are_merged(self) -> None:
        async def create_customer(data):
            return {"id": "remote"}

        async def create_subscription(data):
            return {"id": "remote"}

        a = static_plugin(
            "a",
            {"providers": [ProviderContribution("stripe", Capability.CUSTOMER, {"create_customer": create_customer})]},
        )
        b = static_plugin(
            "b",
            {
                "providers": [
                    {
                        "provider_id": "stripe",
                        "capability": "subscription",
                        "methods": {"create_subscription": create_subscription},
                    }
                ]
            },
        )
        billing = create_billing([a, b])
        assert set(billing.providers.stripe) == {"create_customer", "create_subscription"}
        assert billing.get_merged_providers() is billing.providers

    def test_unknown_provider_access(self) -> None:
        billing = create_billing([])
        with pytest.raises(ProviderNotFoundError):
            billing.providers.stripe

    def test_methods_are_namespaced_by_plugin(self) -> None:
        a = static_plugin("a", {"methods": {"ping": ping}})
        b = static_plugin("b", {"methods": {"ping": pong}})
        billing = create_billing([a, b])

        assert billing.methods.a.ping is ping
        assert billing.methods["b"]["ping"] is pong
        assert list(billing.methods) == ["a", "b"]
        with pytest.raises(AttributeError):
            billing.methods.c
        with pytest.raises(AttributeError):
            billing.methods.a.missing

    def test_plugin_without_methods_has_empty_bag(self) -> None:
        billing = create_billing([static_plugin("a")])
        assert len(billing.methods.a) == 0

    def test_endpoints_last_registered_wins(self, caplog) -> None:
        a = static_plugin("a", {"endpoints": {"health": Endpoint("/health", "GET", ping)}})
        b = static_plugin("b", {"endpoints": {"health": Endpoint("/status", "GET", pong)}})

        with caplog.at_level(logging.WARNING, logger="billing"):
            billing = create_billing([a, b])

        assert billing.endpoints["health"].handler is pong
        assert billing.source_of_endpoint("health") == "b"
        overrides = [r for r in caplog.records if r.getMessage() == "Endpoint overridden"]
        assert len(overrides) == 1
        assert overrides[0].previous_source == "a"
        assert overrides[0].source == "b"

    @pytest.mark.asyncio
    async def test_hooks_registered_in_resolution_order(self) -> None:
        calls: list[str] = []
        a = static_plugin("a", {"hooks": {"after_subscribe": lambda ctx: calls.append("a")}})
        b = static_plugin(
            "b", {"hooks": {"after_subscribe": [lambda ctx: calls.append("b1"), lambda ctx: calls.append("b2")]}},
            depends_on=[a],
        )
        billing = create_billing([b])
        await billing.hooks.run_hook("after_subscribe")
        assert calls == ["a", "b1", "b2"]

    def test_db_is_bound_to_full_schema(self) -> None:
        a = static_plugin("a", {"schema": {"customer": {"email": "string"}}})
        b = static_plugin("b", {"schema": {"usage": {"quantity": "number"}}})
        billing = create_billing([a, b])
        assert isinstance(billing.db, SchemaBoundDatabase)
        assert billing.db.has_model("customer") and billing.db.has_model("usage")

    def test_merged_state_is_frozen(self) -> None:
        billing = create_billing([static_plugin("a", {"schema": {"customer": {"email": "string"}}})])
        with pytest.raises(TypeError):
            billing.get_merged_schema()["customer"]["email"] = FieldSpec("json")  # type: ignore[index]

    def test_api_uses_configured_base_path(self) -> None:
        config = BillingConfig(base_path="/billing")
        billing = create_billing(
            [static_plugin("a", {"endpoints": {"health": Endpoint("/health", "GET", ping)}})],
            config=config,
        )
        assert billing.config is config
        assert billing.api.base_path == "/billing"
        assert list(billing.api.endpoints) == ["health"]


class TestDependencyContext:
    """Test what plugins see during init."""

    def test_context_sees_only_dependencies(self) -> None:
        seen: dict[str, list[str]] = {}

        def recorder(ctx):
            seen[ctx.plugin_id] = sorted(ctx.db.schema)
            return {"schema": {f"{ctx.plugin_id}_table": {"x": "string"}}}

        a = create_plugin("a", recorder)
        b = create_plugin("b", recorder)
        c = create_plugin("c", recorder, depends_on=[a])
        create_billing([a, b, c])

        assert seen == {"a": [], "b": [], "c": ["a_table"]}

    def test_context_sees_transitive_dependencies(self) -> None:
        tables: list[str] = []

        a = static_plugin("a", {"schema": {"customer": {"email": "string"}}})
        b = static_plugin("b", {"schema": {"usage": {"quantity": "number"}}}, depends_on=[a])

        def init(ctx):
            tables.extend(ctx.db.schema)
            assert list(ctx.plugins) == ["a", "b"]
            return None

        create_billing([create_plugin("c", init, depends_on=[b])])
        assert tables == ["customer", "usage"]

    def test_context_providers_from_dependencies(self) -> None:
        async def create_customer(data):
            return {}

        provider = static_plugin(
            "stripe",
            {"providers": [ProviderContribution("stripe", "customer", {"create_customer": create_customer})]},
        )
        seen: dict[str, bool] = {}

        def init(ctx):
            seen[ctx.plugin_id] = "stripe" in ctx.providers
            return None

        with_dep = create_plugin("with_dep", init, depends_on=[provider])
        without_dep = create_plugin("without_dep", init)
        create_billing([provider, with_dep, without_dep])
        assert seen == {"with_dep": True, "without_dep": False}

    @pytest.mark.asyncio
    async def test_undeclared_table_is_rejected(self) -> None:
        a = static_plugin("a", {"schema": {"customer": {"email": "string"}}})
        captured = {}

        def init(ctx):
            captured["db"] = ctx.db
            return None

        create_billing([a, create_plugin("b", init)])
        assert not captured["db"].has_model("customer")
        with pytest.raises(ValidationError) as exc_info:
            await captured["db"].create("customer", {"email": "a@b.co"})
        assert exc_info.value.code == "MODEL_UNKNOWN"

    def test_failing_init_is_wrapped(self) -> None:
        def init(ctx):
            raise RuntimeError("boom")

        with pytest.raises(ConfigurationError) as exc_info:
            create_billing([create_plugin("b", init)])
        assert exc_info.value.code == "PLUGIN_INIT_FAILED"
        assert exc_info.value.plugin_id == "b"
        assert "boom" in exc_info.value.detail

    def test_with_extras_reflects_everything_after_construction(self) -> None:
        captured = {}

        def init(ctx):
            captured["ctx"] = ctx
            captured["during_init"] = sorted(ctx.with_extras().db.schema)
            return {"schema": {"audit": {"event": "string"}}}

        a = create_plugin("a", init)
        b = static_plugin("b", {"schema": {"usage": {"quantity": "number"}}})
        billing = create_billing([a, b])

        assert captured["during_init"] == []
        live = captured["ctx"].with_extras()
        assert sorted(live.db.schema) == ["audit", "usage"]
        assert live.db is billing.db
        assert list(live.plugins) == ["a", "b"]

    def test_plugin_options(self) -> None:
        seen = {}

        def init(ctx):
            seen.update(ctx.plugin_options)
            return None

        config = BillingConfig(plugin_options={"a": {"currency": "eur"}})
        create_billing([create_plugin("a", init)], config=config)
        assert seen == {"currency": "eur"}


class TestConstructionFailures:
    """Any failure raises before a core is returned."""

    def test_cycle(self) -> None:
        a = static_plugin("a")
        b = static_plugin("b", depends_on=[a])
        a.dependencies = (b,)
        with pytest.raises(ConfigurationError) as exc_info:
            create_billing([a])
        assert exc_info.value.code == "PLUGIN_CYCLE"

    def test_duplicate_id(self) -> None:
        with pytest.raises(ConfigurationError):
            create_billing([static_plugin("a"), static_plugin("a")])

    def test_missing_required_provider(self) -> None:
        plugin = create_plugin("billing", lambda ctx: None, required_providers=[("stripe", "customer")])
        with pytest.raises(ConfigurationError) as exc_info:
            create_billing([plugin])
        assert exc_info.value.code == "PROVIDER_REQUIRED"
        assert "billing" in exc_info.value.message

    def test_required_provider_from_a_later_plugin(self) -> None:
        async def create_customer(data):
            return {}

        needs = create_plugin("needs", lambda ctx: None, required_providers=["stripe"])
        gives = static_plugin(
            "gives",
            {"providers": [ProviderContribution("stripe", "customer", {"create_customer": create_customer})]},
        )
        billing = create_billing([needs, gives])
        assert "stripe" in billing.providers

    def test_non_descriptor_in_plugin_list(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            create_billing([{"id": "core"}])  # type: ignore[list-item]
        assert exc_info.value.code == "PLUGIN_INVALID"

    def test_invalid_schema_in_result(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            create_billing([static_plugin("a", {"schema": {"customer": {"email": {"required": True}}}})])
        assert exc_info.value.code == "SCHEMA_INVALID"


class TestDisabledPlugins:
    """Plugins disabled by configuration."""

    def test_disabled_plugin_is_dropped(self) -> None:
        config = BillingConfig(disabled_plugins=["b"])
        billing = create_billing([static_plugin("a"), static_plugin("b")], config=config)
        assert billing.plugins == ["a"]

    def test_enabled_plugin_depending_on_disabled(self) -> None:
        a = static_plugin("a")
        b = static_plugin("b", depends_on=[a])
        config = BillingConfig(disabled_plugins=["a"])
        with pytest.raises(ConfigurationError) as exc_info:
            create_billing([a, b], config=config)
        assert exc_info.value.code == "PLUGIN_DISABLED_DEPENDENCY"
        assert "'b'" in exc_info.value.message and "'a'" in exc_info.value.message


class TestLifecycle:
    """Schema creation and shutdown."""

    @pytest.mark.asyncio
    async def test_create_schema_is_noop_for_memory(self) -> None:
        billing = create_billing([static_plugin("a", {"schema": {"customer": {"email": "string"}}})])
        await billing.create_schema()
        await billing.close()

    def test_from_config_file(self, write_config) -> None:
        path = write_config({"base_path": "/payments", "disabled_plugins": ["b"]})
        billing = BillingCore.from_config_file([static_plugin("a"), static_plugin("b")], path)
        assert billing.plugins == ["a"]
        assert billing.config.base_path == "/payments"


class TestDeterminism:
    """Identical configuration yields identical merged state."""

    def test_repeat_construction(self) -> None:
        def build():
            a = static_plugin(
                "a",
                {
                    "schema": {"customer": {"email": "string"}},
                    "providers": [ProviderContribution("stripe", "customer", {"create_customer": method})],
                    "hooks": {"after_subscribe": method},
                },
            )
            b = static_plugin(
                "b",
                {
                    "schema": {"customer": {"email": "json"}, "usage": {"quantity": "number"}},
                    "providers": [ProviderContribution("stripe", "invoice", {"create_invoice": method})],
                    "hooks": {"after_subscribe": method, "before_cancel": method},
                },
                depends_on=[a],
            )
            return create_billing([b])

        first, second = build(), build()
        assert first.get_merged_schema() == second.get_merged_schema()
        assert first.providers == second.providers
        assert first.hooks.names() == second.hooks.names()
        assert first.hooks.handlers("after_subscribe") == second.hooks.handlers("after_subscribe")


@pytest.mark.asyncio
async def test_validation_errors_surface_to_callers() -> None:
    billing = create_billing([static_plugin("a", {"schema": {"customer": {"email": "string"}}})])
    with pytest.raises(ValidationError) as exc_info:
        await billing.db.find_many(
            "customer", {"field": "email", "value": "x", "operator": "in"}
        )
    assert exc_info.value.code == "CONDITION_OPERAND_TYPE"
