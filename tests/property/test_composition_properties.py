"""Property-based tests for plugin composition.

Covers resolution order, schema and provider merge laws, hook dispatch and
determinism of repeated construction.
"""

import asyncio

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from billing_core import create_billing
from billing_core.hooks import HookManager
from billing_core.plugins import PluginResolver, create_plugin
from billing_core.providers import RESERVED_METHOD_NAMES, ProviderContribution, merge_providers
from billing_core.schema import merge_schemas
from billing_core.types import Capability, FieldType

# =============================================================================
# Strategies
# =============================================================================

names = st.from_regex(r"^[a-z][a-z0-9_]{0,8}$", fullmatch=True)
field_types = st.sampled_from([t.value for t in FieldType])

method_names = names.filter(lambda n: n not in RESERVED_METHOD_NAMES)

tables = st.dictionaries(names, field_types, min_size=1, max_size=4)
schemas = st.dictionaries(names, tables, min_size=0, max_size=3)


@st.composite
def dependency_graphs(draw):
    """Adjacency lists where node i may only depend on nodes < i."""
    size = draw(st.integers(min_value=1, max_value=7))
    graph = []
    for i in range(size):
        deps = draw(st.lists(st.integers(min_value=0, max_value=i - 1), unique=True)) if i else []
        graph.append(deps)
    return graph


def noop(context):
    return None


def build_descriptors(graph):
    descriptors = []
    for i, deps in enumerate(graph):
        descriptors.append(create_plugin(f"p{i}", noop, depends_on=[descriptors[d] for d in deps]))
    return descriptors


# =============================================================================
# Resolution Order
# =============================================================================


@pytest.mark.property
class TestResolutionOrder:
    """Property tests for dependency ordering."""

    @given(dependency_graphs(), st.randoms())
    @settings(max_examples=100)
    def test_dependencies_precede_dependents(self, graph, rnd):
        """Every plugin comes after all of its dependencies, exactly once."""
        descriptors = build_descriptors(graph)
        configured = list(descriptors)
        rnd.shuffle(configured)

        ordered = PluginResolver().order(configured)
        position = {d.id: i for i, d in enumerate(ordered)}

        assert sorted(position) == sorted(d.id for d in descriptors)
        assert len(ordered) == len(descriptors)
        for i, deps in enumerate(graph):
            for d in deps:
                assert position[f"p{d}"] < position[f"p{i}"]

    @given(st.lists(names, min_size=1, max_size=8, unique=True))
    @settings(max_examples=50)
    def test_independent_plugins_keep_declaration_order(self, ids):
        """Without dependencies, resolution order is declaration order."""
        ordered = PluginResolver().order([create_plugin(i, noop) for i in ids])
        assert [d.id for d in ordered] == ids

    @given(dependency_graphs())
    @settings(max_examples=50)
    def test_order_is_deterministic(self, graph):
        """Ordering the same configuration twice gives the same sequence."""
        descriptors = build_descriptors(graph)
        first = [d.id for d in PluginResolver().order(descriptors)]
        second = [d.id for d in PluginResolver().order(descriptors)]
        assert first == second


# =============================================================================
# Schema Merge
# =============================================================================


@pytest.mark.property
class TestSchemaMerge:
    """Property tests for schema folding."""

    @given(schemas, schemas)
    @settings(max_examples=100)
    def test_union_with_later_override(self, first, second):
        """Tables and fields are unioned; the later definition of a field wins."""
        merged = merge_schemas(first, second)

        assert set(merged) == set(first) | set(second)
        for table in merged:
            expected = {**first.get(table, {}), **second.get(table, {})}
            assert set(merged[table]) == set(expected)
            for field, type_name in expected.items():
                assert merged[table][field].type_name == type_name

    @given(names, names, field_types, field_types)
    @settings(max_examples=50)
    def test_conflicting_fields_are_order_sensitive(self, table, field, left, right):
        """Swapping two conflicting contributions changes the winner."""
        a = {table: {field: left}}
        b = {table: {field: right}}
        assert merge_schemas(a, b)[table][field].type_name == right
        assert merge_schemas(b, a)[table][field].type_name == left

    @given(schemas)
    @settings(max_examples=50)
    def test_merging_twice_is_idempotent(self, schema):
        """Folding the same contribution again changes nothing."""
        assert merge_schemas(schema).to_dict() == merge_schemas(schema, schema).to_dict()


# =============================================================================
# Provider Merge
# =============================================================================


def make_method(tag):
    async def method(*args, **kwargs):
        return tag

    return method


contributions = st.lists(
    st.tuples(
        st.sampled_from(["stripe", "paddle"]),
        st.sampled_from(list(Capability)),
        st.lists(method_names, max_size=4, unique=True),
    ),
    max_size=6,
)


@pytest.mark.property
class TestProviderMerge:
    """Property tests for provider method folding."""

    @given(contributions)
    @settings(max_examples=100)
    def test_union_per_provider_with_later_override(self, raw):
        """Methods are unioned per provider id; the last contribution wins."""
        built = [
            ProviderContribution(
                provider_id, capability, {name: make_method((i, name)) for name in method_names}
            )
            for i, (provider_id, capability, method_names) in enumerate(raw)
        ]
        table = merge_providers(*built)

        expected: dict[str, dict] = {}
        for contribution in built:
            expected.setdefault(contribution.provider_id, {}).update(contribution.methods)

        assert set(table) == set(expected)
        for provider_id, methods in expected.items():
            assert dict(table[provider_id]) == methods


# =============================================================================
# Hook Dispatch
# =============================================================================


@pytest.mark.property
class TestHookDispatch:
    """Property tests for run_hook."""

    @given(st.lists(st.booleans(), max_size=10))
    @settings(max_examples=50)
    def test_each_handler_runs_once_in_order(self, plan):
        """N handlers run exactly once each, in registration order, failures included."""
        calls: list[int] = []
        manager = HookManager()

        def handler_for(i, is_async, fails):
            async def async_handler(context):
                calls.append(i)
                if fails:
                    raise RuntimeError(i)

            def sync_handler(context):
                calls.append(i)
                if fails:
                    raise RuntimeError(i)

            return async_handler if is_async else sync_handler

        for i, is_async in enumerate(plan):
            manager.register("after_subscribe", handler_for(i, is_async, fails=i % 3 == 1))

        asyncio.run(manager.run_hook("after_subscribe", {}))
        assert calls == list(range(len(plan)))


# =============================================================================
# Determinism
# =============================================================================


@pytest.mark.property
class TestDeterminism:
    """Identical configuration yields identical cores."""

    @given(dependency_graphs(), st.lists(schemas, min_size=7, max_size=7))
    @settings(max_examples=30)
    def test_repeat_construction(self, graph, plugin_schemas):
        def build():
            descriptors = []
            for i, deps in enumerate(graph):
                schema = plugin_schemas[i]
                descriptors.append(
                    create_plugin(
                        f"p{i}",
                        lambda ctx, schema=schema: {"schema": schema},
                        depends_on=[descriptors[d] for d in deps],
                    )
                )
            return create_billing(descriptors)

        first, second = build(), build()
        assert first.plugins == second.plugins
        assert first.get_merged_schema().to_dict() == second.get_merged_schema().to_dict()
