"""PostgreSQL DDL generator.

Full-featured dialect: schemas, every PostgreSQL access method, covering
(``INCLUDE``) and partial indexes, and per-attribute ``ALTER COLUMN``.
"""

from datetime import datetime, timedelta
from uuid import UUID

from db_schema_sync.ddl.base import DdlGenerator, Dialect, format_offset_timestamp
from db_schema_sync.schema.models import Column, Index, IndexType, SemanticType

_TYPE_MAP: dict[SemanticType, str] = {
    SemanticType.BOOLEAN: "BOOLEAN",
    SemanticType.INT8: "SMALLINT",
    SemanticType.UINT8: "SMALLINT",
    SemanticType.INT16: "SMALLINT",
    SemanticType.UINT16: "INTEGER",
    SemanticType.INT32: "INTEGER",
    SemanticType.UINT32: "BIGINT",
    SemanticType.INT64: "BIGINT",
    SemanticType.UINT64: "NUMERIC(20,0)",
    SemanticType.FLOAT32: "REAL",
    SemanticType.FLOAT64: "DOUBLE PRECISION",
    SemanticType.DATETIME: "TIMESTAMP",
    SemanticType.DATETIME_OFFSET: "TIMESTAMPTZ",
    SemanticType.DURATION: "INTERVAL",
    SemanticType.UUID: "UUID",
    SemanticType.BINARY: "BYTEA",
    SemanticType.ENUM: "INTEGER",
}

# Access method names for USING; spatial indexes are GiST in PostgreSQL
_ACCESS_METHODS: dict[IndexType, str] = {
    IndexType.HASH: "HASH",
    IndexType.GIN: "GIN",
    IndexType.GIST: "GIST",
    IndexType.BRIN: "BRIN",
    IndexType.SPGIST: "SPGIST",
    IndexType.SPATIAL: "GIST",
}


class PostgresGenerator(DdlGenerator):
    """DDL for PostgreSQL."""

    dialect = Dialect.POSTGRESQL
    supports_schemas = True
    supported_index_types = frozenset({IndexType.BTREE, *_ACCESS_METHODS})
    supports_include_columns = True
    supports_partial_indexes = True

    def map_semantic_type(self, semantic_type: SemanticType, column: Column) -> str:
        if semantic_type == SemanticType.TEXT:
            return self._text_type(column, "VARCHAR", "TEXT")
        if semantic_type == SemanticType.DECIMAL:
            return self._decimal_type(column, "NUMERIC")
        return _TYPE_MAP[semantic_type]

    def identity_clause(self, column: Column) -> str:
        return " GENERATED ALWAYS AS IDENTITY"

    def collation_clause(self, column: Column) -> str:
        return f" COLLATE {self.quote(column.collation)}" if column.collation else ""

    def _format_bool(self, value: bool) -> str:
        return "true" if value else "false"

    def _format_datetime(self, value: datetime) -> str:
        return f"'{value:%Y-%m-%d %H:%M:%S}'::timestamp"

    def _format_datetime_offset(self, value: datetime) -> str:
        return f"'{format_offset_timestamp(value)}'::timestamptz"

    def _format_timedelta(self, value: timedelta) -> str:
        return f"'{int(value.total_seconds())} seconds'::interval"

    def _format_uuid(self, value: UUID) -> str:
        return f"'{value}'::uuid"

    def _format_bytes(self, value: bytes) -> str:
        return f"'\\x{value.hex()}'::bytea"

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    def render_create_index(self, index: Index, table_name: str) -> str:
        unique = "UNIQUE " if index.unique else ""
        method = _ACCESS_METHODS.get(index.index_type)
        using = f" USING {method}" if method else ""
        sql = (
            f"CREATE {unique}INDEX {self.quote(index.name)} "
            f"ON {self.quote_table_name(table_name)}{using} ({self._index_columns(index)})"
        )
        if index.include_columns:
            sql += f" INCLUDE ({self._column_list(index.include_columns)})"
        if index.where:
            sql += f" WHERE {index.where}"
        return sql + ";"

    def drop_index_statement(self, index: Index, table_name: str) -> str:
        # Indexes live in their table's schema
        if "." in table_name:
            schema = table_name.split(".", 1)[0]
            return f"DROP INDEX {self.quote(schema)}.{self.quote(index.name)};"
        return f"DROP INDEX {self.quote(index.name)};"

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def alter_column_statements(
        self, current: Column, target: Column, table_name: str
    ) -> list[str]:
        prefix = (
            f"ALTER TABLE {self.quote_table_name(table_name)} "
            f"ALTER COLUMN {self.quote(target.name)}"
        )
        statements: list[str] = []

        if current.identity and not target.identity:
            statements.append(f"{prefix} DROP IDENTITY IF EXISTS;")

        new_type = self.map_type(target)
        if self.map_type(current) != new_type or current.collation != target.collation:
            statements.append(f"{prefix} TYPE {new_type}{self.collation_clause(target)};")

        if (current.default, current.default_is_raw_sql) != (
            target.default,
            target.default_is_raw_sql,
        ):
            if target.has_default and not target.identity:
                statements.append(f"{prefix} SET DEFAULT {self.format_default(target)};")
            elif current.has_default:
                statements.append(f"{prefix} DROP DEFAULT;")

        if current.nullable != target.nullable:
            action = "DROP NOT NULL" if target.nullable else "SET NOT NULL"
            statements.append(f"{prefix} {action};")

        if target.identity and not current.identity:
            statements.append(f"{prefix} ADD{self.identity_clause(target)};")

        return statements
