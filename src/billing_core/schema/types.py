"""Schema definition types.

A schema maps table names to field sets; a field set maps field names to
``FieldSpec``s. Plugins may describe fields loosely (a bare type string or a
plain mapping); ``normalize_schema`` turns any accepted shape into specs.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from billing_core.errors import create_error
from billing_core.types import FieldType


class _NoDefault:
    """Marker for a field without a default value."""

    _instance: "_NoDefault | None" = None

    def __new__(cls) -> "_NoDefault":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_DEFAULT"

    def __bool__(self) -> bool:
        return False


NO_DEFAULT: Any = _NoDefault()

_FIELD_KEYS = frozenset({"type", "required", "default", "references"})


def coerce_field_type(value: FieldType | str) -> FieldType | str:
    """Known type names become FieldType members; anything else passes through."""
    if isinstance(value, FieldType):
        return value
    try:
        return FieldType(value)
    except ValueError:
        return value


@dataclass(frozen=True)
class FieldSpec:
    """Definition of one table column."""

    type: FieldType | str
    required: bool = False
    default: Any = NO_DEFAULT
    references: str | None = None  # "table.field" of a referenced column

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", coerce_field_type(self.type))

    @property
    def has_default(self) -> bool:
        return self.default is not NO_DEFAULT

    @property
    def type_name(self) -> str:
        return self.type.value if isinstance(self.type, FieldType) else str(self.type)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type_name, "required": self.required}
        if self.has_default:
            data["default"] = self.default
        if self.references:
            data["references"] = self.references
        return data

    @classmethod
    def from_value(cls, value: Any, table: str = "?", field: str = "?") -> "FieldSpec":
        """Build a spec from a FieldSpec, a type string or a mapping."""
        if isinstance(value, FieldSpec):
            return value
        if isinstance(value, (str, FieldType)):
            return cls(type=value)
        if isinstance(value, Mapping):
            unknown = set(value) - _FIELD_KEYS
            if unknown:
                raise create_error(
                    "SCHEMA_INVALID",
                    table=table,
                    field=field,
                    detail=f"Field '{field}' has unknown keys: {sorted(unknown)}",
                )
            if "type" not in value:
                raise create_error(
                    "SCHEMA_INVALID",
                    table=table,
                    field=field,
                    detail=f"Field '{field}' has no type",
                )
            return cls(
                type=value["type"],
                required=bool(value.get("required", False)),
                default=value.get("default", NO_DEFAULT),
                references=value.get("references"),
            )
        raise create_error(
            "SCHEMA_INVALID",
            table=table,
            field=field,
            detail=f"Field '{field}' must be a FieldSpec, type name or mapping",
        )


FieldSet = dict[str, FieldSpec]
SchemaDefinition = dict[str, FieldSet]


def normalize_table(table: str, raw: Any) -> FieldSet:
    """Normalize one table definition into a FieldSet.

    Accepts the field map directly or wrapped as ``{"fields": {...}}``.
    """
    if not isinstance(raw, Mapping):
        raise create_error(
            "SCHEMA_INVALID", table=table, detail="Table definition must be a mapping"
        )
    if set(raw) == {"fields"} and isinstance(raw["fields"], Mapping):
        raw = raw["fields"]

    fields: FieldSet = {}
    for name, value in raw.items():
        if not isinstance(name, str) or not name:
            raise create_error(
                "SCHEMA_INVALID", table=table, detail=f"Invalid field name {name!r}"
            )
        fields[name] = FieldSpec.from_value(value, table=table, field=name)
    return fields


def normalize_schema(raw: Mapping[str, Any] | None) -> SchemaDefinition:
    """Normalize a plugin's schema contribution. None yields an empty schema."""
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise create_error(
            "SCHEMA_INVALID", table="*", detail="Schema must map table names to field sets"
        )
    return {str(table): normalize_table(str(table), value) for table, value in raw.items()}


class MergedSchema(Mapping[str, Mapping[str, FieldSpec]]):
    """Read-only view of merged tables.

    Wraps either a private copy (frozen result) or the merger's live state
    (dependency views that must observe later growth).
    """

    def __init__(self, tables: Mapping[str, Mapping[str, FieldSpec]]):
        self._tables = tables

    def __getitem__(self, table: str) -> Mapping[str, FieldSpec]:
        return MappingProxyType(self._tables[table])  # type: ignore[arg-type]

    def __iter__(self) -> Iterator[str]:
        return iter(self._tables)

    def __len__(self) -> int:
        return len(self._tables)

    def __repr__(self) -> str:
        return f"MergedSchema(tables={list(self._tables)})"

    def has_table(self, table: str) -> bool:
        return table in self._tables

    def get_table(self, table: str) -> Mapping[str, FieldSpec] | None:
        if table not in self._tables:
            return None
        return self[table]

    def get_field(self, table: str, field: str) -> FieldSpec | None:
        fields = self._tables.get(table)
        if fields is None:
            return None
        return fields.get(field)

    def to_dict(self) -> dict[str, dict[str, dict[str, Any]]]:
        """Plain nested dict (for generators and debugging)."""
        return {
            table: {name: spec.to_dict() for name, spec in fields.items()}
            for table, fields in self._tables.items()
        }
