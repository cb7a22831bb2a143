"""Shared DDL generation contract.

``DdlGenerator`` holds everything the dialects have in common: statement
templates, constraint clauses, default-literal formatting, the in-place
alter path and the table-recreation path.  Each dialect subclass supplies
its policies as class-level constants plus a handful of overrides
(type mapping, identity clause, alter-column rendering).

Generators carry no instance state, so one instance per dialect is shared
through the registry in ``db_schema_sync.ddl``.

Statement methods come in two forms:

- ``*_statement(s)`` return individual statements (what the planner uses).
- ``generate_*`` return the same statements joined with a blank line.
"""

import hashlib
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar
from uuid import UUID

from db_schema_sync.errors import UnsupportedOperationError
from db_schema_sync.schema.comparator import TableDelta, diff_table
from db_schema_sync.schema.models import (
    Column,
    Constraint,
    ConstraintType,
    Index,
    IndexType,
    ReferentialAction,
    SemanticType,
    Table,
)

STATEMENT_SEPARATOR = "\n\n"


class Dialect(str, Enum):
    """Supported database backends."""

    POSTGRESQL = "postgresql"
    SQLSERVER = "sqlserver"
    MYSQL = "mysql"
    SQLITE = "sqlite"


class DdlGenerator:
    """Base class for the per-dialect DDL generators."""

    dialect: ClassVar[Dialect]

    # Identifier quoting
    quote_open: ClassVar[str] = '"'
    quote_close: ClassVar[str] = '"'

    # Capabilities
    supports_schemas: ClassVar[bool] = True
    supported_index_types: ClassVar[frozenset[IndexType]] = frozenset({IndexType.BTREE})
    supports_include_columns: ClassVar[bool] = False
    supports_partial_indexes: ClassVar[bool] = False
    inline_constraints: ClassVar[bool] = False

    add_column_keyword: ClassVar[str] = "ADD COLUMN"
    default_decimal: ClassVar[tuple[int, int]] = (18, 2)
    default_text_length: ClassVar[int] = 255

    # ------------------------------------------------------------------
    # Identifiers
    # ------------------------------------------------------------------

    def quote(self, identifier: str) -> str:
        """Quote a single identifier, escaping the closing quote character."""
        escaped = identifier.replace(self.quote_close, self.quote_close * 2)
        return f"{self.quote_open}{escaped}{self.quote_close}"

    def quote_table_name(self, table_name: str) -> str:
        """Quote a possibly schema-qualified table name part by part.

        Dialects without schema support drop the schema part.
        """
        parts = table_name.split(".")
        if not self.supports_schemas:
            parts = parts[-1:]
        return ".".join(self.quote(p) for p in parts)

    def table_ref(self, table: Table) -> str:
        return self.quote_table_name(table.full_name)

    def _column_list(self, names: list[str]) -> str:
        return ", ".join(self.quote(n) for n in names)

    # ------------------------------------------------------------------
    # Types and defaults
    # ------------------------------------------------------------------

    def map_type(self, column: Column) -> str:
        """Native type for ``column``.  A raw ``native_type`` always wins."""
        if column.native_type and column.native_type.strip():
            return column.native_type.strip()
        return self.map_semantic_type(column.semantic_type, column)

    def map_semantic_type(self, semantic_type: SemanticType, column: Column) -> str:
        raise NotImplementedError

    def _text_type(self, column: Column, bounded: str, unbounded: str) -> str:
        if column.max_length is None:
            return f"{bounded}({self.default_text_length})"
        if column.is_unbounded:
            return unbounded
        return f"{bounded}({column.max_length})"

    def _decimal_type(self, column: Column, name: str) -> str:
        if column.precision is not None:
            return f"{name}({column.precision},{column.scale or 0})"
        precision, scale = self.default_decimal
        return f"{name}({precision},{scale})"

    def validate_index_type(self, index_type: IndexType) -> bool:
        """Capability predicate: is ``index_type`` legal on this dialect?"""
        return index_type in self.supported_index_types

    def format_default(self, column: Column) -> str:
        """Render a column default; raw SQL passes through verbatim."""
        if column.default_is_raw_sql:
            return str(column.default)
        return self.format_literal(column.default)

    def format_literal(self, value: Any) -> str:
        """Render a Python value as a SQL literal for this dialect."""
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return self._format_bool(value)
        if isinstance(value, Enum):
            return self.format_literal(value.value)
        if isinstance(value, str):
            return self._quote_string(value)
        if isinstance(value, datetime):
            if value.tzinfo is not None and value.utcoffset() is not None:
                return self._format_datetime_offset(value)
            return self._format_datetime(value)
        if isinstance(value, date):
            return self._quote_string(value.strftime("%Y-%m-%d"))
        if isinstance(value, timedelta):
            return self._format_timedelta(value)
        if isinstance(value, UUID):
            return self._format_uuid(value)
        if isinstance(value, (bytes, bytearray)):
            return self._format_bytes(bytes(value))
        if isinstance(value, (int, float, Decimal)):
            return str(value)
        return self._quote_string(str(value))

    def _quote_string(self, value: str) -> str:
        return "'" + value.replace("'", "''") + "'"

    def _format_bool(self, value: bool) -> str:
        return "1" if value else "0"

    def _format_datetime(self, value: datetime) -> str:
        return f"'{value:%Y-%m-%d %H:%M:%S}'"

    def _format_datetime_offset(self, value: datetime) -> str:
        return f"'{format_offset_timestamp(value)}'"

    def _format_timedelta(self, value: timedelta) -> str:
        total = int(value.total_seconds())
        hours, remainder = divmod(total, 3600)
        minutes, seconds = divmod(remainder, 60)
        return f"'{hours:02d}:{minutes:02d}:{seconds:02d}'"

    def _format_uuid(self, value: UUID) -> str:
        return f"'{value}'"

    def _format_bytes(self, value: bytes) -> str:
        return f"X'{value.hex().upper()}'"

    # ------------------------------------------------------------------
    # Column definitions
    # ------------------------------------------------------------------

    def identity_clause(self, column: Column) -> str:
        """Auto-increment clause, with a leading space."""
        raise NotImplementedError

    def collation_clause(self, column: Column) -> str:
        return f" COLLATE {column.collation}" if column.collation else ""

    def default_clause(self, column: Column, table_name: str) -> str:
        if not column.has_default or column.identity:
            return ""
        return f" DEFAULT {self.format_default(column)}"

    def column_definition(self, column: Column, table_name: str) -> str:
        """``name type [COLLATE] [identity] NULL|NOT NULL [DEFAULT]``."""
        definition = f"{self.quote(column.name)} {self.map_type(column)}"
        definition += self.collation_clause(column)
        if column.identity:
            definition += self.identity_clause(column)
        definition += " NULL" if column.nullable else " NOT NULL"
        definition += self.default_clause(column, table_name)
        return definition

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def _primary_key_name(self, table: Table) -> str:
        for constraint in table.constraints:
            if constraint.constraint_type == ConstraintType.PRIMARY_KEY:
                return constraint.name
        return f"PK_{table.name}"

    def primary_key_clause(self, table: Table) -> str | None:
        """The single PRIMARY KEY clause, or None for a keyless table."""
        key = table.primary_key_columns
        if not key:
            return None
        return (
            f"CONSTRAINT {self.quote(self._primary_key_name(table))} "
            f"PRIMARY KEY ({self._column_list(key)})"
        )

    def inline_constraint_clauses(self, table: Table) -> list[str]:
        """Non-PK constraint clauses rendered inside CREATE TABLE."""
        if not self.inline_constraints:
            return []
        return [
            self.constraint_clause(c)
            for c in table.constraints
            if c.constraint_type != ConstraintType.PRIMARY_KEY
        ]

    def _table_body(self, table: Table) -> list[str]:
        lines = [self.column_definition(c, table.full_name) for c in table.columns]
        pk_clause = self.primary_key_clause(table)
        if pk_clause:
            lines.append(pk_clause)
        lines.extend(self.inline_constraint_clauses(table))
        return lines

    def create_table_statements(self, table: Table) -> list[str]:
        """CREATE TABLE, then its indexes, then its non-PK constraints."""
        body = ",\n    ".join(self._table_body(table))
        statements = [f"CREATE TABLE {self.table_ref(table)} (\n    {body}\n);"]
        statements.extend(self.create_index_statement(i, table.full_name) for i in table.indexes)
        if not self.inline_constraints:
            statements.extend(
                self.add_constraint_statement(c, table.full_name)
                for c in table.constraints
                if c.constraint_type != ConstraintType.PRIMARY_KEY
            )
        return statements

    def generate_create_table(self, table: Table) -> str:
        return STATEMENT_SEPARATOR.join(self.create_table_statements(table))

    def drop_table_statement(self, table: Table) -> str:
        return f"DROP TABLE {self.table_ref(table)};"

    def generate_drop_table(self, table: Table) -> str:
        return self.drop_table_statement(table)

    def rename_table_statement(self, table_name: str, new_name: str) -> str:
        return f"ALTER TABLE {self.quote_table_name(table_name)} RENAME TO {self.quote(new_name)};"

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    def check_index(self, index: Index) -> None:
        """Raise ``UnsupportedOperationError`` if ``index`` is not legal here."""
        if not self.validate_index_type(index.index_type):
            raise UnsupportedOperationError(
                f"Index type '{index.index_type.value}' is not supported by "
                f"{self.dialect.value} (index '{index.name}')",
                dialect=self.dialect.value,
            )
        if index.include_columns and not self.supports_include_columns:
            raise UnsupportedOperationError(
                f"{self.dialect.value} does not support INCLUDE columns "
                f"(index '{index.name}')",
                dialect=self.dialect.value,
            )
        if index.where and not self.supports_partial_indexes:
            raise UnsupportedOperationError(
                f"{self.dialect.value} does not support partial indexes "
                f"(index '{index.name}')",
                dialect=self.dialect.value,
            )

    def _index_columns(self, index: Index, with_direction: bool = True) -> str:
        parts = []
        for col in sorted(index.columns, key=lambda c: c.order):
            rendered = self.quote(col.name)
            if with_direction and col.descending:
                rendered += " DESC"
            parts.append(rendered)
        return ", ".join(parts)

    def render_create_index(self, index: Index, table_name: str) -> str:
        unique = "UNIQUE " if index.unique else ""
        sql = (
            f"CREATE {unique}INDEX {self.quote(index.name)} "
            f"ON {self.quote_table_name(table_name)} ({self._index_columns(index)})"
        )
        if index.include_columns:
            sql += f" INCLUDE ({self._column_list(index.include_columns)})"
        if index.where:
            sql += f" WHERE {index.where}"
        return sql + ";"

    def create_index_statement(self, index: Index, table_name: str) -> str:
        self.check_index(index)
        return self.render_create_index(index, table_name)

    def generate_create_index(self, index: Index, table_name: str) -> str:
        return self.create_index_statement(index, table_name)

    def drop_index_statement(self, index: Index, table_name: str) -> str:
        return f"DROP INDEX {self.quote(index.name)};"

    def generate_drop_index(self, index: Index, table_name: str) -> str:
        return self.drop_index_statement(index, table_name)

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def add_column_statement(self, column: Column, table_name: str) -> str:
        return (
            f"ALTER TABLE {self.quote_table_name(table_name)} "
            f"{self.add_column_keyword} {self.column_definition(column, table_name)};"
        )

    def generate_add_column(self, column: Column, table_name: str) -> str:
        return self.add_column_statement(column, table_name)

    def drop_column_statement(self, column_name: str, table_name: str) -> str:
        return (
            f"ALTER TABLE {self.quote_table_name(table_name)} "
            f"DROP COLUMN {self.quote(column_name)};"
        )

    def drop_column_statements(self, column: Column, table_name: str) -> list[str]:
        """Statements to drop ``column``, including anything attached to it."""
        return [self.drop_column_statement(column.name, table_name)]

    def generate_drop_column(self, column_name: str, table_name: str) -> str:
        return self.drop_column_statement(column_name, table_name)

    def alter_column_statements(
        self, current: Column, target: Column, table_name: str
    ) -> list[str]:
        raise NotImplementedError

    def generate_alter_column(self, current: Column, target: Column, table_name: str) -> str:
        return STATEMENT_SEPARATOR.join(self.alter_column_statements(current, target, table_name))

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------

    def _referential_clause(self, keyword: str, action: ReferentialAction) -> str:
        if action == ReferentialAction.NO_ACTION:
            return ""
        return f" ON {keyword} {action.sql}"

    def constraint_clause(self, constraint: Constraint) -> str:
        """``CONSTRAINT name ...`` body, as used in CREATE TABLE and ADD."""
        name = self.quote(constraint.name)
        columns = self._column_list(constraint.columns)
        kind = constraint.constraint_type

        if kind == ConstraintType.PRIMARY_KEY:
            return f"CONSTRAINT {name} PRIMARY KEY ({columns})"
        if kind == ConstraintType.UNIQUE:
            return f"CONSTRAINT {name} UNIQUE ({columns})"
        if kind == ConstraintType.CHECK:
            return f"CONSTRAINT {name} CHECK ({constraint.expression})"

        referenced = self.quote_table_name(constraint.referenced_table or "")
        ref_column = self.quote(constraint.referenced_column or "Id")
        return (
            f"CONSTRAINT {name} FOREIGN KEY ({columns}) "
            f"REFERENCES {referenced} ({ref_column})"
            f"{self._referential_clause('DELETE', constraint.on_delete)}"
            f"{self._referential_clause('UPDATE', constraint.on_update)}"
        )

    def add_constraint_statement(self, constraint: Constraint, table_name: str) -> str:
        return (
            f"ALTER TABLE {self.quote_table_name(table_name)} "
            f"ADD {self.constraint_clause(constraint)};"
        )

    def generate_add_constraint(self, constraint: Constraint, table_name: str) -> str:
        return self.add_constraint_statement(constraint, table_name)

    def drop_constraint_statement(self, constraint: Constraint, table_name: str) -> str:
        return (
            f"ALTER TABLE {self.quote_table_name(table_name)} "
            f"DROP CONSTRAINT {self.quote(constraint.name)};"
        )

    def generate_drop_constraint(self, constraint: Constraint, table_name: str) -> str:
        return self.drop_constraint_statement(constraint, table_name)

    # ------------------------------------------------------------------
    # Alter table
    # ------------------------------------------------------------------

    def requires_recreation(self, delta: TableDelta) -> bool:
        """True if ``delta`` cannot be applied in place on this dialect."""
        return False

    def alter_table_statements(self, current: Table, target: Table) -> list[str]:
        """Statements that move ``current`` to ``target``."""
        return self.delta_statements(diff_table(current, target, self.map_type))

    def generate_alter_table(self, current: Table, target: Table) -> str:
        return STATEMENT_SEPARATOR.join(self.alter_table_statements(current, target))

    def delta_statements(self, delta: TableDelta) -> list[str]:
        """Render a table delta, in place or through table recreation.

        In-place order: drop changed/removed constraints and indexes, add
        columns, alter columns, drop columns, create indexes, add constraints.
        """
        if not delta.has_changes:
            return []
        if self.requires_recreation(delta):
            return self.recreate_table_statements(delta)

        table_name = delta.target.full_name
        statements: list[str] = []
        statements.extend(
            self.drop_constraint_statement(c, table_name) for c in delta.dropped_constraints
        )
        statements.extend(self.drop_index_statement(i, table_name) for i in delta.dropped_indexes)
        statements.extend(self.add_column_statement(c, table_name) for c in delta.added_columns)
        for change in delta.changed_columns:
            statements.extend(
                self.alter_column_statements(change.current, change.target, table_name)
            )
        for column in delta.dropped_columns:
            statements.extend(self.drop_column_statements(column, table_name))
        statements.extend(self.create_index_statement(i, table_name) for i in delta.added_indexes)
        statements.extend(
            self.add_constraint_statement(c, table_name) for c in delta.added_constraints
        )
        return statements

    # ------------------------------------------------------------------
    # Table recreation
    # ------------------------------------------------------------------

    def shadow_table_name(self, target: Table) -> str:
        """Deterministic shadow name derived from the target definition."""
        digest = hashlib.sha1(target.model_dump_json().encode("utf-8")).hexdigest()
        return f"{target.name}__shadow_{digest[:8]}"

    def recreate_table_statements(self, delta: TableDelta) -> list[str]:
        """Create shadow, copy common columns, drop original, rename, index."""
        target = delta.target
        constraints = list(target.constraints)
        # The primary key keeps the target's name once the shadow is renamed
        if target.primary_key_columns and not any(
            c.constraint_type == ConstraintType.PRIMARY_KEY for c in constraints
        ):
            constraints.insert(
                0,
                Constraint(
                    name=self._primary_key_name(target),
                    constraint_type=ConstraintType.PRIMARY_KEY,
                    columns=target.primary_key_columns,
                ),
            )
        shadow = target.model_copy(
            update={
                "name": self.shadow_table_name(target),
                "indexes": [],
                "constraints": constraints,
            }
        )
        shadow_ref = self.table_ref(shadow)

        statements = self.create_table_statements(shadow)

        common = delta.common_column_names
        if common:
            columns = self._column_list(common)
            statements.append(
                f"INSERT INTO {shadow_ref} ({columns}) "
                f"SELECT {columns} FROM {self.table_ref(delta.current)};"
            )

        statements.append(self.drop_table_statement(delta.current))
        statements.append(self.rename_table_statement(shadow.full_name, target.name))
        statements.extend(self.create_index_statement(i, target.full_name) for i in target.indexes)
        return statements


def format_offset_timestamp(value: datetime) -> str:
    """``YYYY-MM-DD HH:MM:SS.fff +HH:MM`` for an aware datetime."""
    offset = value.utcoffset() or timedelta(0)
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(int(offset.total_seconds())) // 60
    millis = value.microsecond // 1000
    return (
        f"{value:%Y-%m-%d %H:%M:%S}.{millis:03d} "
        f"{sign}{minutes // 60:02d}:{minutes % 60:02d}"
    )
