"""SQLite database adapter."""

import asyncio
import json
import sqlite3
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

from billing_core.conditions import Condition, ConditionTranslator, Leaf, like_pattern
from billing_core.conditions.types import STRING_OPERATORS
from billing_core.logging import get_logger
from billing_core.schema import FieldSpec
from billing_core.types import Connector, FieldType, Operator

from .adapter import LockedAdapter, Record, SortBy, generate_id

T = TypeVar("T")

Clause = tuple[str, list[Any]]

LIKE_ESCAPE = "\\"

_COLUMN_TYPES = {
    FieldType.STRING: "TEXT",
    FieldType.NUMBER: "NUMERIC",
    FieldType.BOOLEAN: "INTEGER",
    FieldType.DATE: "TEXT",
    FieldType.JSON: "TEXT",
}

_RANGE_SQL = {
    Operator.GT: ">",
    Operator.GTE: ">=",
    Operator.LT: "<",
    Operator.LTE: "<=",
}

# Widths of encoded date, naive datetime and aware datetime text
_DATE_WIDTH = 10
_NAIVE_WIDTH = 26
_AWARE_WIDTH = 32

logger = get_logger("db.sqlite")


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def encode_value(value: Any, spec: FieldSpec | None = None) -> Any:
    """Python value -> SQLite parameter.

    Dates and datetimes become fixed-width ISO text whose string order is
    their time order: aware datetimes are shifted to UTC and always carry
    microseconds, plain dates keep the short ``YYYY-MM-DD`` form.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        if value.utcoffset() is not None:
            value = value.astimezone(timezone.utc)
        return value.isoformat(timespec="microseconds")
    if isinstance(value, date):
        return value.isoformat()
    if spec is not None and spec.type == FieldType.JSON:
        return json.dumps(value, default=str)
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return value


def decode_value(value: Any, spec: FieldSpec | None) -> Any:
    """SQLite column value -> Python value, by declared field type."""
    if value is None or spec is None:
        return value
    if spec.type == FieldType.BOOLEAN:
        return bool(value)
    if spec.type == FieldType.DATE and isinstance(value, str):
        if len(value) == _DATE_WIDTH:
            return date.fromisoformat(value)
        return datetime.fromisoformat(value)
    if spec.type == FieldType.JSON and isinstance(value, str):
        return json.loads(value)
    return value


class SQLConditionTranslator(ConditionTranslator[Clause]):
    """Canonical condition -> parameterized SQLite WHERE clause.

    Pattern operators become ``LIKE ... ESCAPE`` with wildcards in the operand
    escaped; the connection enables ``case_sensitive_like`` so they stay
    case sensitive like the reference evaluator.
    """

    name = "sqlite"

    def __init__(self, fields: Mapping[str, FieldSpec] | None = None):
        self._fields = fields or {}

    def _encode(self, leaf: Leaf, value: Any) -> Any:
        return encode_value(value, self._fields.get(leaf.field))

    def translate_leaf(self, leaf: Leaf) -> Clause:
        column = quote_identifier(leaf.field)
        operator = leaf.operator

        if operator == Operator.EQ:
            if leaf.value is None:
                return f"{column} IS NULL", []
            return f"{column} = ?", [self._encode(leaf, leaf.value)]

        if operator == Operator.NE:
            if leaf.value is None:
                return f"{column} IS NOT NULL", []
            # NULL differs from every value
            return f"({column} != ? OR {column} IS NULL)", [self._encode(leaf, leaf.value)]

        if operator == Operator.IN:
            values = [v for v in leaf.value if v is not None]
            has_null = len(values) != len(leaf.value)
            parts = []
            params = []
            if values:
                parts.append(f"{column} IN ({', '.join('?' for _ in values)})")
                params.extend(self._encode(leaf, v) for v in values)
            if has_null:
                parts.append(f"{column} IS NULL")
            if not parts:
                return "0", []
            if len(parts) == 1:
                return parts[0], params
            return f"({' OR '.join(parts)})", params

        if operator in STRING_OPERATORS:
            pattern = like_pattern(operator, leaf.value, LIKE_ESCAPE)
            return f"{column} LIKE ? ESCAPE '{LIKE_ESCAPE}'", [pattern]

        clause = f"{column} {_RANGE_SQL[operator]} ?"
        if isinstance(leaf.value, date):
            # Only values of the operand's kind are comparable
            return f"(length({column}) = {_encoded_width(leaf.value)} AND {clause})", [
                self._encode(leaf, leaf.value)
            ]
        return clause, [self._encode(leaf, leaf.value)]

    def combine(self, kind: Connector, parts: Sequence[Clause]) -> Clause:
        joiner = " AND " if kind == Connector.AND else " OR "
        sql = joiner.join(f"({part_sql})" for part_sql, _ in parts)
        params = [param for _, part_params in parts for param in part_params]
        return sql, params


class SQLiteAdapter(LockedAdapter):
    """SQLite-backed adapter.

    Runs every statement on one connection through a single-thread executor.
    Tables are created from a merged schema with ``create_schema``; values are
    encoded by field type (dates as fixed-width UTC ISO text, json as text,
    booleans as integers) and decoded on the way out. Transactions lock out
    every other task until they finish.
    """

    name = "sqlite"

    def __init__(self, db_path: str = ":memory:") -> None:
        """Initialize SQLite adapter.

        Args:
            db_path: Path to SQLite database file, or ":memory:"
        """
        super().__init__()
        self._db_path = db_path
        self._executor = ThreadPoolExecutor(max_workers=1)
        self._conn: sqlite3.Connection | None = None
        self._fields: dict[str, dict[str, FieldSpec]] = {}

        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self._init_db()

    def _init_db(self) -> None:
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA case_sensitive_like = ON")

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)

    # Schema

    async def create_schema(self, schema: Mapping[str, Mapping[str, FieldSpec]]) -> None:
        """Create a table per model (if missing) and remember field types."""
        async with self.exclusive():
            await self._run(self._create_schema_sync, schema)

    def _create_schema_sync(self, schema: Mapping[str, Mapping[str, FieldSpec]]) -> None:
        assert self._conn is not None
        for table, fields in schema.items():
            self._fields[table] = dict(fields)
            columns = []
            if "id" not in fields:
                columns.append('"id" TEXT PRIMARY KEY')
            for name, spec in fields.items():
                column = f"{quote_identifier(name)} {_column_type(spec)}".rstrip()
                if name == "id":
                    column += " PRIMARY KEY"
                elif spec.required:
                    column += " NOT NULL"
                if spec.references:
                    ref_table, _, ref_field = spec.references.partition(".")
                    column += f" REFERENCES {quote_identifier(ref_table)}({quote_identifier(ref_field or 'id')})"
                columns.append(column)
            ddl = f"CREATE TABLE IF NOT EXISTS {quote_identifier(table)} ({', '.join(columns)})"
            logger.debug("Creating table", table=table, ddl=ddl)
            self._conn.execute(ddl)

    # Operations

    async def create(self, model: str, data: Record) -> Record:
        async with self.exclusive():
            return await self._run(self._create_sync, model, dict(data))

    def _create_sync(self, model: str, data: Record) -> Record:
        assert self._conn is not None
        if not data.get("id"):
            data["id"] = generate_id(model)
        fields = self._fields.get(model, {})
        columns = list(data)
        self._conn.execute(
            f"INSERT INTO {quote_identifier(model)} "
            f"({', '.join(quote_identifier(c) for c in columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})",
            [encode_value(data[c], fields.get(c)) for c in columns],
        )
        return self._select(model, ("\"id\" = ?", [data["id"]]), limit=1)[0]

    async def update(self, model: str, where: Condition, data: Record) -> Record | None:
        async with self.exclusive():
            return await self._run(self._update_sync, model, where, dict(data))

    def _update_sync(self, model: str, where: Condition, data: Record) -> Record | None:
        assert self._conn is not None
        fields = self._fields.get(model, {})
        clause, params = self._where(model, where)
        ids = [row["id"] for row in self._conn.execute(
            f"SELECT \"id\" FROM {quote_identifier(model)} WHERE {clause}", params
        )]
        if not ids:
            return None
        if data:
            assignments = ", ".join(f"{quote_identifier(c)} = ?" for c in data)
            self._conn.execute(
                f"UPDATE {quote_identifier(model)} SET {assignments} "
                f"WHERE \"id\" IN ({', '.join('?' for _ in ids)})",
                [encode_value(v, fields.get(c)) for c, v in data.items()] + ids,
            )
        rows = self._select(model, ("\"id\" = ?", [data.get("id", ids[0])]), limit=1)
        return rows[0] if rows else None

    async def find_one(self, model: str, where: Condition) -> Record | None:
        clause = self._where(model, where)
        async with self.exclusive():
            rows = await self._run(self._select, model, clause, 1)
        return rows[0] if rows else None

    async def find_many(
        self,
        model: str,
        where: Condition | None = None,
        limit: int | None = None,
        offset: int = 0,
        sort_by: SortBy | None = None,
    ) -> list[Record]:
        clause = self._where(model, where) if where is not None else None
        async with self.exclusive():
            return await self._run(self._select, model, clause, limit, offset, sort_by)

    def _select(
        self,
        model: str,
        clause: Clause | None,
        limit: int | None = None,
        offset: int = 0,
        sort_by: SortBy | None = None,
    ) -> list[Record]:
        assert self._conn is not None
        sql = f"SELECT * FROM {quote_identifier(model)}"
        params: list[Any] = []
        if clause is not None:
            sql += f" WHERE {clause[0]}"
            params.extend(clause[1])
        if sort_by is not None:
            direction = "DESC" if sort_by.direction == "desc" else "ASC"
            # NULLs last in ascending order, matching the memory adapter
            sql += (
                f" ORDER BY ({quote_identifier(sort_by.field)} IS NULL) {direction}, "
                f"{quote_identifier(sort_by.field)} {direction}"
            )
        else:
            sql += " ORDER BY rowid"
        if limit is not None or offset:
            sql += " LIMIT ? OFFSET ?"
            params.extend([-1 if limit is None else limit, offset])

        fields = self._fields.get(model, {})
        return [
            {key: decode_value(row[key], fields.get(key)) for key in row.keys()}
            for row in self._conn.execute(sql, params)
        ]

    async def delete(self, model: str, where: Condition) -> int:
        async with self.exclusive():
            return await self._run(self._delete_sync, model, where)

    def _delete_sync(self, model: str, where: Condition) -> int:
        assert self._conn is not None
        clause, params = self._where(model, where)
        cursor = self._conn.execute(f"DELETE FROM {quote_identifier(model)} WHERE {clause}", params)
        return cursor.rowcount

    async def _begin(self) -> None:
        await self._run(self._execute, "BEGIN")

    async def _commit(self) -> None:
        await self._run(self._execute, "COMMIT")

    async def _rollback(self) -> None:
        await self._run(self._execute, "ROLLBACK")

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._run(self._conn.close)
            self._conn = None
        self._executor.shutdown(wait=False)

    def _execute(self, sql: str) -> None:
        assert self._conn is not None
        self._conn.execute(sql)

    def _where(self, model: str, where: Condition) -> Clause:
        return SQLConditionTranslator(self._fields.get(model)).translate(where)


def _column_type(spec: FieldSpec) -> str:
    if isinstance(spec.type, FieldType):
        return _COLUMN_TYPES[spec.type]
    return ""


def _encoded_width(value: date) -> int:
    if not isinstance(value, datetime):
        return _DATE_WIDTH
    return _NAIVE_WIDTH if value.utcoffset() is None else _AWARE_WIDTH
