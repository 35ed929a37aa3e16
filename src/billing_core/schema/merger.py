"""Schema merging across plugins.

Tables merge as a union. Within a shared table, fields merge key by key and a
later declaration replaces the earlier ``FieldSpec`` entirely (type, required,
default); fields that are not redeclared are kept. The fold is therefore
order sensitive: merging S1 then S2 is not the same as S2 then S1.
"""

from collections.abc import Mapping
from typing import Any

from billing_core.errors import create_error
from billing_core.logging import BillingLogger, get_logger

from .types import FieldSet, MergedSchema, normalize_schema


class SchemaMerger:
    """Folds per-plugin schema contributions into one schema."""

    def __init__(self, logger: BillingLogger | None = None):
        self._tables: dict[str, FieldSet] = {}
        self._field_sources: dict[tuple[str, str], str | None] = {}
        self._frozen: MergedSchema | None = None
        self._logger = logger or get_logger("schema")

    @property
    def frozen(self) -> bool:
        return self._frozen is not None

    def add(self, schema: Mapping[str, Any] | None, source: str | None = None) -> None:
        """Fold one schema contribution.

        Args:
            schema: Table definitions, or None (no-op)
            source: Contributing plugin id, for override logging

        Raises:
            ConfigurationError: If the schema is malformed or the merger is frozen
        """
        if self._frozen is not None:
            raise create_error("SCHEMA_FROZEN", kind="schema")
        if schema is None:
            return

        for table, fields in normalize_schema(schema).items():
            existing = self._tables.get(table)
            if existing is None:
                self._tables[table] = dict(fields)
                for name in fields:
                    self._field_sources[(table, name)] = source
                continue

            for name, spec in fields.items():
                previous = existing.get(name)
                if previous is not None and previous != spec:
                    self._logger.debug(
                        "Schema field overridden",
                        table=table,
                        field=name,
                        previous_source=self._field_sources.get((table, name)),
                        source=source,
                        previous_type=previous.type_name,
                        type=spec.type_name,
                    )
                existing[name] = spec
                self._field_sources[(table, name)] = source

    def add_all(self, schemas: list[Mapping[str, Any] | None]) -> None:
        for schema in schemas:
            self.add(schema)

    def live_view(self) -> MergedSchema:
        """Read-only view that reflects later additions."""
        return MergedSchema(self._tables)

    def snapshot(self) -> MergedSchema:
        """Read-only copy of the current state."""
        return MergedSchema({table: dict(fields) for table, fields in self._tables.items()})

    def freeze(self) -> MergedSchema:
        """Stop accepting contributions and return the final merged schema."""
        if self._frozen is None:
            self._frozen = self.snapshot()
        return self._frozen

    def source_of(self, table: str, field: str) -> str | None:
        """Plugin id that last declared a field."""
        return self._field_sources.get((table, field))


def merge_schemas(*schemas: Mapping[str, Any] | None) -> MergedSchema:
    """Fold schemas left to right and return the frozen result."""
    merger = SchemaMerger()
    for schema in schemas:
        merger.add(schema)
    return merger.freeze()
