"""Tests for the schema-bound database handle."""

import pytest

from billing_core.db import DatabaseAdapter, MemoryAdapter, SchemaBoundDatabase
from billing_core.errors import ValidationError
from billing_core.schema import SchemaMerger, merge_schemas


def counter_default():
    counter_default.calls += 1
    return counter_default.calls


counter_default.calls = 0

SCHEMA = merge_schemas(
    {
        "subscription": {
            "customer_id": {"type": "string", "required": True},
            "status": {"type": "string", "required": True, "default": "active"},
            "sequence": {"type": "number", "default": counter_default},
            "quantity": "number",
        }
    }
)


@pytest.fixture
def adapter() -> MemoryAdapter:
    return MemoryAdapter()


@pytest.fixture
def db(adapter: MemoryAdapter) -> SchemaBoundDatabase:
    return SchemaBoundDatabase(adapter, SCHEMA)


class TestCreate:
    """Test defaults and field checks on create."""

    @pytest.mark.asyncio
    async def test_defaults_are_applied(self, db: SchemaBoundDatabase) -> None:
        created = await db.create("subscription", {"customer_id": "cus_1"})
        assert created["status"] == "active"
        assert isinstance(created["sequence"], int)

    @pytest.mark.asyncio
    async def test_callable_default_runs_per_record(self, db: SchemaBoundDatabase) -> None:
        first = await db.create("subscription", {"customer_id": "cus_1"})
        second = await db.create("subscription", {"customer_id": "cus_1"})
        assert second["sequence"] == first["sequence"] + 1

    @pytest.mark.asyncio
    async def test_explicit_value_wins_over_default(self, db: SchemaBoundDatabase) -> None:
        created = await db.create("subscription", {"customer_id": "cus_1", "status": "trialing"})
        assert created["status"] == "trialing"

    @pytest.mark.asyncio
    async def test_missing_required_field(self, db: SchemaBoundDatabase) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await db.create("subscription", {"quantity": 1})
        assert exc_info.value.code == "FIELD_REQUIRED"
        assert exc_info.value.field == "customer_id"

    @pytest.mark.asyncio
    async def test_unknown_field(self, db: SchemaBoundDatabase) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await db.create("subscription", {"customer_id": "cus_1", "plan": "gold"})
        assert exc_info.value.code == "FIELD_UNKNOWN"

    @pytest.mark.asyncio
    async def test_explicit_id_is_allowed(self, db: SchemaBoundDatabase) -> None:
        created = await db.create("subscription", {"id": "sub_1", "customer_id": "cus_1"})
        assert created["id"] == "sub_1"

    @pytest.mark.asyncio
    async def test_unknown_model(self, db: SchemaBoundDatabase) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await db.create("invoice", {})
        assert exc_info.value.code == "MODEL_UNKNOWN"


class TestConditions:
    """Test condition handling before delegation."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("where", [None, [], {}])
    async def test_targeted_operations_require_a_condition(
        self, db: SchemaBoundDatabase, where
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await db.delete("subscription", where)
        assert exc_info.value.code == "WHERE_REQUIRED"
        with pytest.raises(ValidationError):
            await db.update("subscription", where, {"quantity": 1})
        with pytest.raises(ValidationError):
            await db.find_one("subscription", where)

    @pytest.mark.asyncio
    async def test_unknown_field_in_condition(self, db: SchemaBoundDatabase) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await db.find_many("subscription", {"plan": "gold"})
        assert exc_info.value.code == "FIELD_UNKNOWN"

    @pytest.mark.asyncio
    async def test_id_is_always_queryable(self, db: SchemaBoundDatabase) -> None:
        await db.create("subscription", {"id": "sub_1", "customer_id": "cus_1"})
        found = await db.find_one("subscription", {"id": "sub_1"})
        assert found is not None

    @pytest.mark.asyncio
    async def test_operator_checked_against_field_type(self, db: SchemaBoundDatabase) -> None:
        with pytest.raises(ValidationError):
            await db.find_many(
                "subscription", {"field": "quantity", "value": "1", "operator": "contains"}
            )

    @pytest.mark.asyncio
    async def test_unknown_sort_field(self, db: SchemaBoundDatabase) -> None:
        with pytest.raises(ValidationError):
            await db.find_many("subscription", sort_by="plan")

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, db: SchemaBoundDatabase) -> None:
        await db.create("subscription", {"id": "sub_1", "customer_id": "cus_1"})
        with pytest.raises(ValidationError):
            await db.update("subscription", {"id": "sub_1"}, {"plan": "gold"})


class TestSchemaViews:
    """Test live and restricted schema views."""

    @pytest.mark.asyncio
    async def test_live_view_sees_later_tables(self, adapter: MemoryAdapter) -> None:
        merger = SchemaMerger()
        db = SchemaBoundDatabase(adapter, merger.live_view())
        assert not db.has_model("usage")

        merger.add({"usage": {"quantity": "number"}})
        assert db.has_model("usage")
        created = await db.create("usage", {"quantity": 2})
        assert created["quantity"] == 2

    def test_with_schema(self, db: SchemaBoundDatabase) -> None:
        narrowed = db.with_schema(merge_schemas())
        assert narrowed.adapter is db.adapter
        assert not narrowed.has_model("subscription")

    @pytest.mark.asyncio
    async def test_transaction_hands_out_a_bound_handle(self, db: SchemaBoundDatabase) -> None:
        async def work(tx):
            assert isinstance(tx, SchemaBoundDatabase)
            with pytest.raises(ValidationError):
                await tx.create("invoice", {})
            return await tx.create("subscription", {"customer_id": "cus_1"})

        created = await db.transaction(work)
        assert created["customer_id"] == "cus_1"


class ListAdapter(DatabaseAdapter):
    """Minimal adapter without transaction support."""

    name = "list"

    def __init__(self) -> None:
        self.rows: list[dict] = []

    async def create(self, model, data):
        self.rows.append(dict(data))
        return dict(data)

    async def update(self, model, where, data):
        return None

    async def find_one(self, model, where):
        return None

    async def find_many(self, model, where=None, limit=None, offset=0, sort_by=None):
        return list(self.rows)

    async def delete(self, model, where):
        return 0


class TestTransactionSupport:
    """Adapters without transactions."""

    def test_flag(self) -> None:
        assert not ListAdapter().supports_transactions
        assert MemoryAdapter().supports_transactions

    @pytest.mark.asyncio
    async def test_transaction_not_implemented(self) -> None:
        db = SchemaBoundDatabase(ListAdapter(), SCHEMA)

        async def work(tx):
            return None

        with pytest.raises(NotImplementedError):
            await db.transaction(work)
