"""Abstract schema entities, comparison, introspection and snapshots.

Usage:
    from db_schema_sync.schema import Table, Column, diff_schemas
    from db_schema_sync.schema import SchemaIntrospector, load_snapshot
"""

from db_schema_sync.schema.comparator import (
    ColumnChange,
    SchemaDiff,
    TableDelta,
    columns_differ,
    diff_schemas,
    diff_table,
)
from db_schema_sync.schema.introspector import SchemaIntrospector
from db_schema_sync.schema.models import (
    UNBOUNDED,
    Column,
    Constraint,
    ConstraintType,
    Index,
    IndexColumn,
    IndexType,
    ReferentialAction,
    SemanticType,
    Table,
)
from db_schema_sync.schema.snapshot import load_snapshot, save_snapshot

__all__ = [
    # Models
    "UNBOUNDED",
    "Column",
    "Constraint",
    "ConstraintType",
    "Index",
    "IndexColumn",
    "IndexType",
    "ReferentialAction",
    "SemanticType",
    "Table",
    # Comparator
    "ColumnChange",
    "SchemaDiff",
    "TableDelta",
    "columns_differ",
    "diff_schemas",
    "diff_table",
    # Introspection and snapshots
    "SchemaIntrospector",
    "load_snapshot",
    "save_snapshot",
]
