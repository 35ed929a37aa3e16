"""Schema definitions and cross-plugin merging."""

from .merger import SchemaMerger, merge_schemas
from .types import (
    NO_DEFAULT,
    FieldSet,
    FieldSpec,
    MergedSchema,
    SchemaDefinition,
    normalize_schema,
    normalize_table,
)

__all__ = [
    "NO_DEFAULT",
    "FieldSet",
    "FieldSpec",
    "MergedSchema",
    "SchemaDefinition",
    "SchemaMerger",
    "merge_schemas",
    "normalize_schema",
    "normalize_table",
]
