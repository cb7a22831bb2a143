"""PostgreSQL schema introspection via information_schema and pg_catalog.

This module queries the live database and produces the "current" side of a
migration in the same shape the model analyzer produces for the target:
- Columns with semantic types, lengths, precision, nullability, identity
  and defaults
- Constraints (primary key, foreign key, unique, check)
- Indexes (columns, direction, uniqueness, access method, INCLUDE columns
  and partial predicates), excluding those backing a constraint

Uses psycopg (v3) async connections.
"""

import logging
import re
from typing import Any

import psycopg
from psycopg import AsyncConnection

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

logger = logging.getLogger(__name__)

# Normalized data type -> semantic type.  Types not listed here are kept as
# a raw ``native_type``.
_SEMANTIC_TYPES: dict[str, SemanticType] = {
    "bool": SemanticType.BOOLEAN,
    "smallint": SemanticType.INT16,
    "int": SemanticType.INT32,
    "bigint": SemanticType.INT64,
    "real": SemanticType.FLOAT32,
    "double precision": SemanticType.FLOAT64,
    "numeric": SemanticType.DECIMAL,
    "timestamp": SemanticType.DATETIME,
    "timestamptz": SemanticType.DATETIME_OFFSET,
    "interval": SemanticType.DURATION,
    "uuid": SemanticType.UUID,
    "varchar": SemanticType.TEXT,
    "text": SemanticType.TEXT,
    "bytea": SemanticType.BINARY,
}

_CONSTRAINT_TYPES = {
    "p": ConstraintType.PRIMARY_KEY,
    "f": ConstraintType.FOREIGN_KEY,
    "u": ConstraintType.UNIQUE,
    "c": ConstraintType.CHECK,
}

# pg_constraint.confdeltype / confupdtype codes
_REFERENTIAL_ACTIONS = {
    "a": ReferentialAction.NO_ACTION,
    "r": ReferentialAction.RESTRICT,
    "c": ReferentialAction.CASCADE,
    "n": ReferentialAction.SET_NULL,
    "d": ReferentialAction.SET_DEFAULT,
}

_INDEX_TYPES = {
    "btree": IndexType.BTREE,
    "hash": IndexType.HASH,
    "gin": IndexType.GIN,
    "gist": IndexType.GIST,
    "brin": IndexType.BRIN,
    "spgist": IndexType.SPGIST,
}

_TEXT_CASTS = {"text", "character varying", "character", "bpchar"}
_NUMERIC_CASTS = {"smallint", "integer", "bigint", "numeric", "real", "double precision"}
_QUOTED_DEFAULT = re.compile(r"^'((?:[^']|'')*)'(?:::([\w\s]+))?$")
_NUMBER = re.compile(r"^-?\d+(\.\d+)?$")


class SchemaIntrospector:
    """Introspects a PostgreSQL schema into ``Table`` entities.

    Tables in the ``public`` schema come back unqualified (``schema_name``
    is None), matching models declared without a schema.  Tables in any
    other schema carry it.

    Usage:
        async with SchemaIntrospector(database_url) as introspector:
            tables = await introspector.introspect("public")

            # Or just get column names
            columns = await introspector.get_column_names()
    """

    # Tables to exclude from introspection (system tables)
    EXCLUDED_TABLES_DEFAULT = {
        "schema_migrations",
        "pg_stat_statements",
        "spatial_ref_sys",
    }

    def __init__(
        self,
        database_url: str,
        excluded_tables: set[str] | None = None,
        connect_timeout: int = 10,
    ):
        """Initialize with database connection URL.

        Args:
            database_url: PostgreSQL connection URL.  A SQLAlchemy driver
                suffix (``postgresql+asyncpg://``) is removed.
            excluded_tables: Table names to skip.  Defaults to
                ``EXCLUDED_TABLES_DEFAULT``.
            connect_timeout: Connection timeout in seconds.
        """
        self._database_url = _libpq_url(database_url)
        self._excluded_tables = (
            set(self.EXCLUDED_TABLES_DEFAULT) if excluded_tables is None else excluded_tables
        )
        self._connect_timeout = connect_timeout
        self._conn: AsyncConnection | None = None

    async def __aenter__(self) -> "SchemaIntrospector":
        """Async context manager entry - opens connection."""
        self._conn = await psycopg.AsyncConnection.connect(
            self._database_url,
            connect_timeout=self._connect_timeout,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit - closes connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_connection(self) -> AsyncConnection:
        if not self._conn:
            raise RuntimeError("Introspector not connected. Use 'async with'.")
        return self._conn

    async def _fetch(self, query: str, params: tuple = ()) -> list[tuple]:
        conn = self._require_connection()
        async with conn.cursor() as cur:
            await cur.execute(query, params)
            return await cur.fetchall()

    async def test_connection(self) -> bool:
        """Run ``SELECT 1`` on the open connection.

        Raises:
            RuntimeError: If not connected.
            ConnectionError: If the query fails.
        """
        conn = self._require_connection()
        try:
            async with conn.cursor() as cur:
                await cur.execute("SELECT 1")
                await cur.fetchone()
        except psycopg.Error as e:
            raise ConnectionError(f"Connection test failed: {e}") from e
        return True

    async def introspect(self, schema_name: str = "public") -> list[Table]:
        """Introspect every base table in ``schema_name``.

        Args:
            schema_name: PostgreSQL schema to introspect (default: public)

        Returns:
            Tables in name order.  An empty schema returns an empty list.
        """
        self._require_connection()
        qualifier = None if schema_name == "public" else schema_name

        tables: list[Table] = []
        for table_name in await self._get_tables(schema_name):
            if table_name in self._excluded_tables:
                continue

            logger.debug("Introspecting table: %s.%s", schema_name, table_name)
            constraints = await self._get_constraints(schema_name, table_name)
            pk_columns = {
                name
                for c in constraints
                if c.constraint_type == ConstraintType.PRIMARY_KEY
                for name in c.columns
            }
            tables.append(
                Table(
                    name=table_name,
                    schema_name=qualifier,
                    columns=await self._get_columns(schema_name, table_name, pk_columns),
                    indexes=await self._get_indexes(schema_name, table_name),
                    constraints=constraints,
                )
            )

        logger.info("Introspected %d table(s) from schema '%s'", len(tables), schema_name)
        return tables

    async def get_column_names(self, schema_name: str = "public") -> dict[str, set[str]]:
        """Get column names for all tables.

        Lightweight alternative to full introspection when only column
        presence matters.

        Returns:
            Dict mapping table name to set of column names
        """
        self._require_connection()
        query = """
            SELECT table_name, column_name
            FROM information_schema.columns
            WHERE table_schema = %s
        """
        tables = set(await self._get_tables(schema_name)) - self._excluded_tables
        result: dict[str, set[str]] = {name: set() for name in sorted(tables)}
        for table_name, column_name in await self._fetch(query, (schema_name,)):
            if table_name in result:
                result[table_name].add(column_name)
        return result

    async def _get_tables(self, schema_name: str) -> list[str]:
        """Get all table names in schema."""
        query = """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = %s
              AND table_type = 'BASE TABLE'
            ORDER BY table_name
        """
        return [row[0] for row in await self._fetch(query, (schema_name,))]

    async def _get_columns(
        self, schema_name: str, table_name: str, pk_columns: set[str] | None = None
    ) -> list[Column]:
        """Get columns for a table, in ordinal order."""
        query = """
            SELECT
                column_name,
                data_type,
                udt_name,
                is_nullable,
                column_default,
                character_maximum_length,
                numeric_precision,
                numeric_scale,
                is_identity,
                collation_name
            FROM information_schema.columns
            WHERE table_schema = %s
              AND table_name = %s
            ORDER BY ordinal_position
        """
        pk_columns = pk_columns or set()
        columns = []
        for row in await self._fetch(query, (schema_name, table_name)):
            (
                name,
                data_type,
                udt_name,
                is_nullable,
                default,
                max_length,
                precision,
                scale,
                is_identity,
                collation,
            ) = row

            fields: dict[str, Any] = {
                "name": name,
                "nullable": is_nullable == "YES",
                "primary_key": name in pk_columns,
                "identity": is_identity == "YES",
                "collation": collation,
            }
            fields.update(self._column_type(data_type, udt_name, max_length, precision, scale))

            if default is not None and default.startswith("nextval("):
                # serial / bigserial
                fields["identity"] = True
            elif default is not None:
                value, is_raw = _parse_default(default)
                fields["default"] = value
                fields["default_is_raw_sql"] = is_raw

            columns.append(Column(**fields))
        return columns

    def _column_type(
        self,
        data_type: str,
        udt_name: str | None,
        max_length: int | None,
        precision: int | None,
        scale: int | None,
    ) -> dict[str, Any]:
        normalized = self._normalize_data_type(data_type)
        semantic = _SEMANTIC_TYPES.get(normalized)

        if semantic == SemanticType.TEXT:
            return {
                "semantic_type": semantic,
                "max_length": max_length if max_length is not None else UNBOUNDED,
            }
        if semantic == SemanticType.DECIMAL:
            if precision is None:
                return {"native_type": "NUMERIC"}
            return {"semantic_type": semantic, "precision": precision, "scale": scale or 0}
        if semantic is not None:
            return {"semantic_type": semantic}

        if normalized in ("array", "user-defined") and udt_name:
            return {"native_type": udt_name}
        if max_length is not None:
            return {"native_type": f"{normalized.upper()}({max_length})"}
        return {"native_type": normalized.upper()}

    def _normalize_data_type(self, data_type: str) -> str:
        """Normalize PostgreSQL data type names.

        Maps verbose information_schema types to standard names.
        """
        type_map = {
            "character varying": "varchar",
            "character": "char",
            "timestamp with time zone": "timestamptz",
            "timestamp without time zone": "timestamp",
            "integer": "int",
            "boolean": "bool",
        }
        return type_map.get(data_type.lower(), data_type.lower())

    async def _get_constraints(self, schema_name: str, table_name: str) -> list[Constraint]:
        """Get primary key, foreign key, unique and check constraints."""
        query = """
            SELECT
                c.conname,
                c.contype,
                ARRAY(
                    SELECT a.attname
                    FROM unnest(c.conkey) WITH ORDINALITY AS k(attnum, ordinality)
                    JOIN pg_attribute a ON a.attrelid = c.conrelid AND a.attnum = k.attnum
                    ORDER BY k.ordinality
                ) AS columns,
                rt.relname AS referenced_table,
                ra.attname AS referenced_column,
                c.confdeltype,
                c.confupdtype,
                pg_get_expr(c.conbin, c.conrelid) AS check_expression
            FROM pg_constraint c
            JOIN pg_class t ON t.oid = c.conrelid
            JOIN pg_namespace n ON n.oid = t.relnamespace
            LEFT JOIN pg_class rt ON rt.oid = c.confrelid
            LEFT JOIN pg_attribute ra
                ON ra.attrelid = c.confrelid AND ra.attnum = c.confkey[1]
            WHERE n.nspname = %s
              AND t.relname = %s
              AND c.contype IN ('p', 'f', 'u', 'c')
            ORDER BY c.conname
        """
        constraints = []
        for row in await self._fetch(query, (schema_name, table_name)):
            name, ctype, columns, ref_table, ref_col, on_delete, on_update, check = row
            kind = _CONSTRAINT_TYPES[ctype]

            fields: dict[str, Any] = {
                "name": name,
                "constraint_type": kind,
                "columns": list(columns or []),
            }
            if kind == ConstraintType.FOREIGN_KEY:
                fields["referenced_table"] = ref_table
                fields["referenced_column"] = ref_col
                fields["on_delete"] = _REFERENTIAL_ACTIONS.get(on_delete, ReferentialAction.NO_ACTION)
                fields["on_update"] = _REFERENTIAL_ACTIONS.get(on_update, ReferentialAction.NO_ACTION)
            elif kind == ConstraintType.CHECK:
                fields["expression"] = _strip_parens(check) if check else check
            constraints.append(Constraint(**fields))
        return constraints

    async def _get_indexes(self, schema_name: str, table_name: str) -> list[Index]:
        """Get indexes for a table.

        Excludes the primary key index and indexes that back a UNIQUE
        constraint; those are reported as constraints.  Expression index
        members are not represented.
        """
        query = """
            SELECT
                i.relname AS index_name,
                ARRAY(
                    SELECT a.attname
                    FROM unnest(ix.indkey) WITH ORDINALITY AS k(attnum, ordinality)
                    JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = k.attnum
                    ORDER BY k.ordinality
                ) AS columns,
                ix.indnkeyatts AS key_count,
                ix.indoption::int2[] AS options,
                ix.indisunique AS is_unique,
                ix.indisclustered AS is_clustered,
                am.amname AS index_type,
                pg_get_expr(ix.indpred, ix.indrelid) AS predicate
            FROM pg_index ix
            JOIN pg_class t ON t.oid = ix.indrelid
            JOIN pg_class i ON i.oid = ix.indexrelid
            JOIN pg_namespace n ON n.oid = t.relnamespace
            JOIN pg_am am ON am.oid = i.relam
            WHERE n.nspname = %s
              AND t.relname = %s
              AND NOT ix.indisprimary
              AND NOT EXISTS (
                  SELECT 1 FROM pg_constraint c
                  WHERE c.conindid = ix.indexrelid
                    AND c.conrelid = ix.indrelid
              )
            ORDER BY i.relname
        """
        indexes = []
        for row in await self._fetch(query, (schema_name, table_name)):
            name, columns, key_count, options, is_unique, is_clustered, method, predicate = row
            columns = list(columns or [])
            options = list(options or [])
            if not columns:
                logger.debug("Skipping expression index %s", name)
                continue

            key_columns = columns[:key_count]
            indexes.append(
                Index(
                    name=name,
                    columns=[
                        IndexColumn(
                            name=col,
                            order=position,
                            # indoption bit 0 is DESC
                            descending=bool(position < len(options) and options[position] & 1),
                        )
                        for position, col in enumerate(key_columns)
                    ],
                    index_type=_INDEX_TYPES.get(method, IndexType.BTREE),
                    unique=is_unique,
                    clustered=is_clustered,
                    include_columns=columns[key_count:],
                    where=predicate,
                )
            )
        return indexes


def _libpq_url(url: str) -> str:
    """Strip a SQLAlchemy driver suffix so libpq accepts the URL."""
    scheme, sep, rest = url.partition("://")
    if sep and "+" in scheme:
        scheme = scheme.split("+", 1)[0]
    if scheme == "postgres":
        scheme = "postgresql"
    return f"{scheme}{sep}{rest}"


def _strip_parens(expression: str) -> str:
    expression = expression.strip()
    if expression.startswith("(") and expression.endswith(")"):
        depth = 0
        for i, ch in enumerate(expression):
            depth += ch == "("
            depth -= ch == ")"
            if depth == 0 and i < len(expression) - 1:
                return expression
        return expression[1:-1].strip()
    return expression


def _parse_default(default: str) -> tuple[Any, bool]:
    """Turn a ``column_default`` expression into ``(value, is_raw_sql)``.

    Simple literals come back as Python values so they compare equal to
    declared defaults; anything else stays raw SQL.

    Examples:
        >>> _parse_default("'draft'::character varying")
        ('draft', False)
        >>> _parse_default("now()")
        ('now()', True)
    """
    text = _strip_parens(default)

    match = _QUOTED_DEFAULT.match(text)
    if match:
        cast = (match.group(2) or "text").strip()
        literal = match.group(1)
        if cast in _TEXT_CASTS:
            return literal.replace("''", "'"), False
        if cast in _NUMERIC_CASTS and _NUMBER.match(literal):
            return _number(literal), False
        return default, True

    if text in ("true", "false"):
        return text == "true", False
    if _NUMBER.match(text):
        return _number(text), False
    return default, True


def _number(text: str) -> int | float:
    return float(text) if "." in text else int(text)
