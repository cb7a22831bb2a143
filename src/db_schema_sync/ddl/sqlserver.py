"""SQL Server DDL generator.

Schema-aware dialect with clustered, columnstore, spatial and full-text
indexes.  Column defaults are named constraints (``DF_<table>_<column>``) so
they can be dropped and re-added when a column changes.
"""

from db_schema_sync.ddl.base import DdlGenerator, Dialect
from db_schema_sync.errors import UnsupportedOperationError
from db_schema_sync.schema.models import Column, Index, IndexType, SemanticType

_TYPE_MAP: dict[SemanticType, str] = {
    SemanticType.BOOLEAN: "BIT",
    SemanticType.INT8: "SMALLINT",
    SemanticType.UINT8: "TINYINT",
    SemanticType.INT16: "SMALLINT",
    SemanticType.UINT16: "INT",
    SemanticType.INT32: "INT",
    SemanticType.UINT32: "BIGINT",
    SemanticType.INT64: "BIGINT",
    SemanticType.UINT64: "DECIMAL(20,0)",
    SemanticType.FLOAT32: "REAL",
    SemanticType.FLOAT64: "FLOAT",
    SemanticType.DATETIME: "DATETIME2",
    SemanticType.DATETIME_OFFSET: "DATETIMEOFFSET",
    SemanticType.DURATION: "TIME",
    SemanticType.UUID: "UNIQUEIDENTIFIER",
    SemanticType.ENUM: "INT",
}


class SqlServerGenerator(DdlGenerator):
    """DDL for Microsoft SQL Server."""

    dialect = Dialect.SQLSERVER
    quote_open = "["
    quote_close = "]"
    supports_schemas = True
    supported_index_types = frozenset(
        {
            IndexType.BTREE,
            IndexType.CLUSTERED,
            IndexType.NONCLUSTERED,
            IndexType.COLUMNSTORE,
            IndexType.SPATIAL,
            IndexType.FULLTEXT,
        }
    )
    supports_include_columns = True
    supports_partial_indexes = True
    add_column_keyword = "ADD"

    def map_semantic_type(self, semantic_type: SemanticType, column: Column) -> str:
        if semantic_type == SemanticType.TEXT:
            return self._text_type(column, "NVARCHAR", "NVARCHAR(MAX)")
        if semantic_type == SemanticType.BINARY:
            if column.max_length is None or column.is_unbounded:
                return "VARBINARY(MAX)"
            return f"VARBINARY({column.max_length})"
        if semantic_type == SemanticType.DECIMAL:
            return self._decimal_type(column, "DECIMAL")
        return _TYPE_MAP[semantic_type]

    def identity_clause(self, column: Column) -> str:
        return " IDENTITY(1,1)"

    def _format_bytes(self, value: bytes) -> str:
        return f"0x{value.hex().upper()}"

    # ------------------------------------------------------------------
    # Defaults as named constraints
    # ------------------------------------------------------------------

    def default_constraint_name(self, column: Column, table_name: str) -> str:
        return f"DF_{table_name.split('.')[-1]}_{column.name}"

    def default_clause(self, column: Column, table_name: str) -> str:
        if not column.has_default or column.identity:
            return ""
        name = self.quote(self.default_constraint_name(column, table_name))
        return f" CONSTRAINT {name} DEFAULT {self.format_default(column)}"

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    def _primary_key_index(self, table_name: str) -> str:
        return f"PK_{table_name.split('.')[-1]}"

    def render_create_index(self, index: Index, table_name: str) -> str:
        table = self.quote_table_name(table_name)

        if index.index_type == IndexType.FULLTEXT:
            # Full-text indexes are unnamed and keyed on the table's primary key
            key_index = self.quote(self._primary_key_index(table_name))
            return (
                f"CREATE FULLTEXT INDEX ON {table} "
                f"({self._index_columns(index, with_direction=False)}) "
                f"KEY INDEX {key_index};"
            )

        if index.index_type == IndexType.SPATIAL:
            return (
                f"CREATE SPATIAL INDEX {self.quote(index.name)} ON {table} "
                f"({self._index_columns(index, with_direction=False)});"
            )

        if index.index_type == IndexType.COLUMNSTORE:
            if index.clustered:
                return f"CREATE CLUSTERED COLUMNSTORE INDEX {self.quote(index.name)} ON {table};"
            return (
                f"CREATE NONCLUSTERED COLUMNSTORE INDEX {self.quote(index.name)} ON {table} "
                f"({self._index_columns(index, with_direction=False)});"
            )

        unique = "UNIQUE " if index.unique else ""
        kind = "CLUSTERED" if index.clustered else "NONCLUSTERED"
        columns = ", ".join(
            f"{self.quote(c.name)} {'DESC' if c.descending else 'ASC'}"
            for c in sorted(index.columns, key=lambda c: c.order)
        )
        sql = f"CREATE {unique}{kind} INDEX {self.quote(index.name)} ON {table} ({columns})"
        if index.include_columns:
            sql += f" INCLUDE ({self._column_list(index.include_columns)})"
        if index.where:
            sql += f" WHERE {index.where}"
        return sql + ";"

    def drop_index_statement(self, index: Index, table_name: str) -> str:
        table = self.quote_table_name(table_name)
        if index.index_type == IndexType.FULLTEXT:
            return f"DROP FULLTEXT INDEX ON {table};"
        return f"DROP INDEX {self.quote(index.name)} ON {table};"

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def drop_column_statements(self, column: Column, table_name: str) -> list[str]:
        statements: list[str] = []
        if column.has_default and not column.identity:
            statements.append(self._drop_default_statement(column, table_name))
        statements.append(self.drop_column_statement(column.name, table_name))
        return statements

    def _drop_default_statement(self, column: Column, table_name: str) -> str:
        name = self.quote(self.default_constraint_name(column, table_name))
        return f"ALTER TABLE {self.quote_table_name(table_name)} DROP CONSTRAINT {name};"

    def alter_column_statements(
        self, current: Column, target: Column, table_name: str
    ) -> list[str]:
        if current.identity != target.identity:
            raise UnsupportedOperationError(
                f"SQL Server cannot add or remove IDENTITY on existing column "
                f"'{target.name}' of '{table_name}'",
                dialect=self.dialect.value,
            )

        table = self.quote_table_name(table_name)
        statements: list[str] = []
        default_changed = (current.default, current.default_is_raw_sql) != (
            target.default,
            target.default_is_raw_sql,
        )

        if default_changed and current.has_default:
            statements.append(self._drop_default_statement(current, table_name))

        if (
            self.map_type(current) != self.map_type(target)
            or current.nullable != target.nullable
            or current.collation != target.collation
        ):
            nullability = "NULL" if target.nullable else "NOT NULL"
            statements.append(
                f"ALTER TABLE {table} ALTER COLUMN {self.quote(target.name)} "
                f"{self.map_type(target)}{self.collation_clause(target)} {nullability};"
            )

        if default_changed and target.has_default:
            name = self.quote(self.default_constraint_name(target, table_name))
            statements.append(
                f"ALTER TABLE {table} ADD CONSTRAINT {name} "
                f"DEFAULT {self.format_default(target)} FOR {self.quote(target.name)};"
            )

        return statements
