"""In-memory database adapter."""

import copy
from typing import Any

from billing_core.conditions import Condition, evaluate, filter_records

from .adapter import LockedAdapter, Record, SortBy, generate_id


class MemoryAdapter(LockedAdapter):
    """Dict-backed adapter that evaluates conditions with the reference evaluator.

    Records are copied in and out, so callers never hold live rows. Data is
    lost on restart. Suitable for development and tests.
    """

    name = "memory"

    def __init__(self) -> None:
        super().__init__()
        self._tables: dict[str, dict[str, Record]] = {}
        self._snapshot: dict[str, dict[str, Record]] | None = None

    def _table(self, model: str) -> dict[str, Record]:
        return self._tables.setdefault(model, {})

    async def create(self, model: str, data: Record) -> Record:
        async with self.exclusive():
            record = copy.deepcopy(dict(data))
            if not record.get("id"):
                record["id"] = generate_id(model)
            self._table(model)[record["id"]] = record
            return copy.deepcopy(record)

    async def update(self, model: str, where: Condition, data: Record) -> Record | None:
        async with self.exclusive():
            table = self._table(model)
            first: Record | None = None
            for key, record in list(table.items()):
                if not evaluate(where, record):
                    continue
                record.update(copy.deepcopy(dict(data)))
                if record.get("id") != key:
                    # id changed: re-key the row
                    del table[key]
                    table[record["id"]] = record
                if first is None:
                    first = copy.deepcopy(record)
            return first

    async def find_one(self, model: str, where: Condition) -> Record | None:
        async with self.exclusive():
            for record in self._table(model).values():
                if evaluate(where, record):
                    return copy.deepcopy(record)
            return None

    async def find_many(
        self,
        model: str,
        where: Condition | None = None,
        limit: int | None = None,
        offset: int = 0,
        sort_by: SortBy | None = None,
    ) -> list[Record]:
        async with self.exclusive():
            records = filter_records(where, self._table(model).values())
            if sort_by is not None:
                records = sorted(
                    records,
                    key=lambda r: _sort_key(r.get(sort_by.field)),
                    reverse=sort_by.direction == "desc",
                )
            end = None if limit is None else offset + limit
            return [copy.deepcopy(dict(r)) for r in records[offset:end]]

    async def delete(self, model: str, where: Condition) -> int:
        async with self.exclusive():
            table = self._table(model)
            doomed = [key for key, record in table.items() if evaluate(where, record)]
            for key in doomed:
                del table[key]
            return len(doomed)

    async def _begin(self) -> None:
        self._snapshot = copy.deepcopy(self._tables)

    async def _commit(self) -> None:
        self._snapshot = None

    async def _rollback(self) -> None:
        # Other tasks wait on the lock, so nothing else wrote since the snapshot
        if self._snapshot is not None:
            self._tables = self._snapshot
        self._snapshot = None

    def dump(self) -> dict[str, list[Record]]:
        """All rows per table (copies), for tests and debugging."""
        return {model: copy.deepcopy(list(rows.values())) for model, rows in self._tables.items()}


def _sort_key(value: Any) -> tuple[bool, Any]:
    # None sorts last in ascending order
    return (value is None, value)
