"""Storage adapters and the schema-bound database handle."""

from .adapter import DatabaseAdapter, Record, SortBy, generate_id
from .bound import SchemaBoundDatabase, SchemaView
from .memory import MemoryAdapter
from .sqlite import SQLConditionTranslator, SQLiteAdapter

__all__ = [
    # Contract
    "DatabaseAdapter",
    "Record",
    "SortBy",
    "generate_id",
    # Schema-bound handle
    "SchemaBoundDatabase",
    "SchemaView",
    # Adapters
    "MemoryAdapter",
    "SQLiteAdapter",
    "SQLConditionTranslator",
]
