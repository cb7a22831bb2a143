"""MySQL DDL generator.

No schema support (the database is the namespace) but full in-place ALTER
through ``MODIFY COLUMN``.  Constraints are dropped with type-specific
syntax.
"""

from datetime import datetime

from db_schema_sync.ddl.base import DdlGenerator, Dialect
from db_schema_sync.schema.models import (
    Column,
    Constraint,
    ConstraintType,
    Index,
    IndexType,
    SemanticType,
)

_TYPE_MAP: dict[SemanticType, str] = {
    SemanticType.BOOLEAN: "TINYINT(1)",
    SemanticType.INT8: "TINYINT",
    SemanticType.UINT8: "TINYINT UNSIGNED",
    SemanticType.INT16: "SMALLINT",
    SemanticType.UINT16: "SMALLINT UNSIGNED",
    SemanticType.INT32: "INT",
    SemanticType.UINT32: "INT UNSIGNED",
    SemanticType.INT64: "BIGINT",
    SemanticType.UINT64: "BIGINT UNSIGNED",
    SemanticType.FLOAT32: "FLOAT",
    SemanticType.FLOAT64: "DOUBLE",
    SemanticType.DATETIME: "DATETIME",
    SemanticType.DATETIME_OFFSET: "TIMESTAMP",
    SemanticType.DURATION: "TIME",
    SemanticType.UUID: "CHAR(36)",
    SemanticType.ENUM: "INT",
}


class MySqlGenerator(DdlGenerator):
    """DDL for MySQL / MariaDB."""

    dialect = Dialect.MYSQL
    quote_open = "`"
    quote_close = "`"
    supports_schemas = False
    supported_index_types = frozenset(
        {IndexType.BTREE, IndexType.HASH, IndexType.FULLTEXT, IndexType.SPATIAL}
    )
    supports_include_columns = False
    supports_partial_indexes = False

    def map_semantic_type(self, semantic_type: SemanticType, column: Column) -> str:
        if semantic_type == SemanticType.TEXT:
            return self._text_type(column, "VARCHAR", "LONGTEXT")
        if semantic_type == SemanticType.BINARY:
            if column.max_length is None or column.is_unbounded:
                return "LONGBLOB"
            return f"VARBINARY({column.max_length})"
        if semantic_type == SemanticType.DECIMAL:
            return self._decimal_type(column, "DECIMAL")
        return _TYPE_MAP[semantic_type]

    def identity_clause(self, column: Column) -> str:
        return " AUTO_INCREMENT"

    def _format_datetime_offset(self, value: datetime) -> str:
        # TIMESTAMP literals carry neither fraction nor offset
        return f"'{value:%Y-%m-%d %H:%M:%S}'"

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    def render_create_index(self, index: Index, table_name: str) -> str:
        if index.index_type == IndexType.FULLTEXT:
            prefix = "FULLTEXT "
        elif index.index_type == IndexType.SPATIAL:
            prefix = "SPATIAL "
        elif index.unique:
            prefix = "UNIQUE "
        else:
            prefix = ""

        sql = (
            f"CREATE {prefix}INDEX {self.quote(index.name)} "
            f"ON {self.quote_table_name(table_name)} ({self._index_columns(index)})"
        )
        if index.index_type == IndexType.HASH:
            sql += " USING HASH"
        return sql + ";"

    def drop_index_statement(self, index: Index, table_name: str) -> str:
        return f"DROP INDEX {self.quote(index.name)} ON {self.quote_table_name(table_name)};"

    # ------------------------------------------------------------------
    # Columns and constraints
    # ------------------------------------------------------------------

    def alter_column_statements(
        self, current: Column, target: Column, table_name: str
    ) -> list[str]:
        return [
            f"ALTER TABLE {self.quote_table_name(table_name)} "
            f"MODIFY COLUMN {self.column_definition(target, table_name)};"
        ]

    def drop_constraint_statement(self, constraint: Constraint, table_name: str) -> str:
        table = self.quote_table_name(table_name)
        name = self.quote(constraint.name)
        kind = constraint.constraint_type

        if kind == ConstraintType.PRIMARY_KEY:
            return f"ALTER TABLE {table} DROP PRIMARY KEY;"
        if kind == ConstraintType.FOREIGN_KEY:
            return f"ALTER TABLE {table} DROP FOREIGN KEY {name};"
        if kind == ConstraintType.UNIQUE:
            return f"ALTER TABLE {table} DROP INDEX {name};"
        return f"ALTER TABLE {table} DROP CHECK {name};"
