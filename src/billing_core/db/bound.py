"""Schema-aware database handle given to plugins."""

from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar

from billing_core.conditions import (
    Condition,
    WhereInput,
    is_naive_datetime,
    parse_condition,
    validate_condition,
)
from billing_core.errors import create_error
from billing_core.schema import FieldSpec
from billing_core.types import FieldType

from .adapter import DatabaseAdapter, Record, SortBy

T = TypeVar("T")

SchemaView = Mapping[str, Mapping[str, FieldSpec]]


class SchemaBoundDatabase:
    """Database handle bound to a schema view.

    Every call is checked against the view before it reaches the adapter:
    unknown models and fields are rejected, where-inputs are normalized into
    canonical conditions and validated, and operations that must target
    specific rows (update, find_one, delete) refuse an empty condition.

    The view may be live (a merger's ``live_view()``), in which case tables
    added after the handle was created become reachable through it.
    """

    def __init__(self, adapter: DatabaseAdapter, schema: SchemaView):
        self._adapter = adapter
        self._schema = schema

    @property
    def adapter(self) -> DatabaseAdapter:
        return self._adapter

    @property
    def schema(self) -> SchemaView:
        return self._schema

    def has_model(self, model: str) -> bool:
        return model in self._schema

    def with_schema(self, schema: SchemaView) -> "SchemaBoundDatabase":
        """Same adapter, different schema view."""
        return SchemaBoundDatabase(self._adapter, schema)

    async def create(self, model: str, data: Mapping[str, Any]) -> Record:
        """Insert a record after applying field defaults.

        Raises:
            ValidationError: Unknown model or field, a required field missing, or a
                naive datetime for a date field
        """
        fields = self._fields(model)
        self._check_data(model, fields, data)

        record = dict(data)
        for name, spec in fields.items():
            if name in record:
                continue
            if spec.has_default:
                record[name] = spec.default() if callable(spec.default) else spec.default
            elif spec.required and name != "id":
                raise create_error("FIELD_REQUIRED", field=name, model=model)
        return await self._adapter.create(model, record)

    async def update(self, model: str, where: WhereInput, data: Mapping[str, Any]) -> Record | None:
        fields = self._fields(model)
        self._check_data(model, fields, data)
        condition = self._condition(model, fields, where, "update")
        return await self._adapter.update(model, condition, dict(data))

    async def find_one(self, model: str, where: WhereInput) -> Record | None:
        fields = self._fields(model)
        condition = self._condition(model, fields, where, "find_one")
        return await self._adapter.find_one(model, condition)

    async def find_many(
        self,
        model: str,
        where: WhereInput = None,
        limit: int | None = None,
        offset: int = 0,
        sort_by: SortBy | str | None = None,
    ) -> list[Record]:
        fields = self._fields(model)
        condition = parse_condition(where)
        if condition is not None:
            validate_condition(condition, _with_id(fields), model)
        if isinstance(sort_by, str):
            sort_by = SortBy(sort_by)
        if sort_by is not None and sort_by.field not in fields and sort_by.field != "id":
            raise create_error("FIELD_UNKNOWN", field=sort_by.field, model=model)
        return await self._adapter.find_many(
            model, condition, limit=limit, offset=offset, sort_by=sort_by
        )

    async def delete(self, model: str, where: WhereInput) -> int:
        fields = self._fields(model)
        condition = self._condition(model, fields, where, "delete")
        return await self._adapter.delete(model, condition)

    async def transaction(self, fn: Callable[["SchemaBoundDatabase"], Awaitable[T]]) -> T:
        """Run ``fn`` with a handle bound to the adapter's transaction.

        Raises:
            NotImplementedError: If the adapter has no transaction support
        """

        async def bound(tx: DatabaseAdapter) -> T:
            return await fn(SchemaBoundDatabase(tx, self._schema))

        return await self._adapter.transaction(bound)

    def _fields(self, model: str) -> Mapping[str, FieldSpec]:
        fields = self._schema.get(model)
        if fields is None:
            raise create_error("MODEL_UNKNOWN", model=model)
        return fields

    def _check_data(self, model: str, fields: Mapping[str, FieldSpec], data: Mapping[str, Any]) -> None:
        for key, value in data.items():
            if key not in fields and key != "id":
                raise create_error("FIELD_UNKNOWN", field=key, model=model)
            spec = fields.get(key)
            if spec is not None and spec.type == FieldType.DATE and is_naive_datetime(value):
                raise create_error(
                    "FIELD_VALUE_INVALID",
                    field=key,
                    model=model,
                    detail="datetimes must carry a timezone",
                )

    def _condition(
        self,
        model: str,
        fields: Mapping[str, FieldSpec],
        where: WhereInput,
        operation: str,
    ) -> Condition:
        condition = parse_condition(where)
        if condition is None:
            raise create_error("WHERE_REQUIRED", operation=operation, model=model)
        validate_condition(condition, _with_id(fields), model)
        return condition


def _with_id(fields: Mapping[str, FieldSpec]) -> Mapping[str, FieldSpec]:
    # Adapters always store an id column
    if "id" in fields:
        return fields
    return {**fields, "id": FieldSpec("string")}
