"""SQLite DDL generator.

Embedded dialect with restricted ALTER support: columns can only be added,
and only when the new column is not a key and is nullable or defaulted.
Anything else goes through table recreation (create shadow, copy the common
columns, drop, rename, re-index).  Constraints live inside CREATE TABLE.
"""

from db_schema_sync.ddl.base import DdlGenerator, Dialect
from db_schema_sync.errors import UnsupportedOperationError
from db_schema_sync.schema.comparator import TableDelta
from db_schema_sync.schema.models import Column, Constraint, IndexType, SemanticType, Table

_TYPE_MAP: dict[SemanticType, str] = {
    SemanticType.BOOLEAN: "INTEGER",
    SemanticType.INT8: "INTEGER",
    SemanticType.UINT8: "INTEGER",
    SemanticType.INT16: "INTEGER",
    SemanticType.UINT16: "INTEGER",
    SemanticType.INT32: "INTEGER",
    SemanticType.UINT32: "INTEGER",
    SemanticType.INT64: "INTEGER",
    SemanticType.UINT64: "INTEGER",
    SemanticType.FLOAT32: "REAL",
    SemanticType.FLOAT64: "REAL",
    SemanticType.DECIMAL: "REAL",
    SemanticType.DATETIME: "TEXT",
    SemanticType.DATETIME_OFFSET: "TEXT",
    SemanticType.DURATION: "TEXT",
    SemanticType.UUID: "TEXT",
    SemanticType.TEXT: "TEXT",
    SemanticType.BINARY: "BLOB",
    SemanticType.ENUM: "INTEGER",
}


class SqliteGenerator(DdlGenerator):
    """DDL for SQLite."""

    dialect = Dialect.SQLITE
    quote_open = "["
    quote_close = "]"
    supports_schemas = False
    supported_index_types = frozenset({IndexType.BTREE})
    supports_include_columns = False
    supports_partial_indexes = True
    inline_constraints = True

    def map_semantic_type(self, semantic_type: SemanticType, column: Column) -> str:
        return _TYPE_MAP[semantic_type]

    def identity_clause(self, column: Column) -> str:
        # Only a single INTEGER PRIMARY KEY can autoincrement; see _table_body
        return ""

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def autoincrement_column(self, table: Table) -> Column | None:
        """The single integer identity key column, if the table has one."""
        key = table.primary_key_columns
        if len(key) != 1:
            return None
        column = table.get_column(key[0])
        if column is not None and column.identity and column.semantic_type.is_integer:
            return column
        return None

    def _table_body(self, table: Table) -> list[str]:
        auto = self.autoincrement_column(table)
        lines: list[str] = []
        for column in table.columns:
            if auto is not None and column.name == auto.name:
                lines.append(f"{self.quote(column.name)} INTEGER PRIMARY KEY AUTOINCREMENT")
            else:
                lines.append(self.column_definition(column, table.full_name))

        if auto is None:
            pk_clause = self.primary_key_clause(table)
            if pk_clause:
                lines.append(pk_clause)
        lines.extend(self.inline_constraint_clauses(table))
        return lines

    # ------------------------------------------------------------------
    # Unsupported in-place operations
    # ------------------------------------------------------------------

    def _unsupported(self, operation: str, table_name: str) -> UnsupportedOperationError:
        return UnsupportedOperationError(
            f"SQLite cannot {operation} on '{table_name}' in place; "
            "the table must be recreated",
            dialect=self.dialect.value,
        )

    def drop_column_statement(self, column_name: str, table_name: str) -> str:
        raise self._unsupported(f"drop column '{column_name}'", table_name)

    def alter_column_statements(
        self, current: Column, target: Column, table_name: str
    ) -> list[str]:
        raise self._unsupported(f"alter column '{target.name}'", table_name)

    def add_constraint_statement(self, constraint: Constraint, table_name: str) -> str:
        raise self._unsupported(f"add constraint '{constraint.name}'", table_name)

    def drop_constraint_statement(self, constraint: Constraint, table_name: str) -> str:
        raise self._unsupported(f"drop constraint '{constraint.name}'", table_name)

    # ------------------------------------------------------------------
    # Recreation predicate
    # ------------------------------------------------------------------

    def requires_recreation(self, delta: TableDelta) -> bool:
        if delta.dropped_columns or delta.changed_columns:
            return True
        if delta.added_constraints or delta.dropped_constraints:
            return True
        return any(not self._can_add_in_place(c) for c in delta.added_columns)

    def _can_add_in_place(self, column: Column) -> bool:
        if column.primary_key or column.identity:
            return False
        return column.nullable or column.has_default
