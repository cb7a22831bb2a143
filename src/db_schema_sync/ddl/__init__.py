"""Per-dialect DDL generators and their registry.

Usage:
    from db_schema_sync.ddl import get_generator

    generator = get_generator("postgresql")
    print(generator.generate_create_table(table))
"""

from db_schema_sync.ddl.base import STATEMENT_SEPARATOR, DdlGenerator, Dialect
from db_schema_sync.ddl.mysql import MySqlGenerator
from db_schema_sync.ddl.postgres import PostgresGenerator
from db_schema_sync.ddl.sqlite import SqliteGenerator
from db_schema_sync.ddl.sqlserver import SqlServerGenerator

# Generators are stateless; one shared instance per dialect
_REGISTRY: dict[Dialect, DdlGenerator] = {
    Dialect.POSTGRESQL: PostgresGenerator(),
    Dialect.SQLSERVER: SqlServerGenerator(),
    Dialect.MYSQL: MySqlGenerator(),
    Dialect.SQLITE: SqliteGenerator(),
}

_ALIASES: dict[str, Dialect] = {
    "postgres": Dialect.POSTGRESQL,
    "pg": Dialect.POSTGRESQL,
    "mssql": Dialect.SQLSERVER,
    "sql_server": Dialect.SQLSERVER,
    "mariadb": Dialect.MYSQL,
    "sqlite3": Dialect.SQLITE,
}


def resolve_dialect(dialect: "Dialect | str") -> Dialect:
    """Resolve a dialect name (case-insensitive, common aliases accepted).

    Raises:
        ValueError: If the name is not a known dialect.
    """
    if isinstance(dialect, Dialect):
        return dialect
    key = dialect.strip().lower()
    if key in _ALIASES:
        return _ALIASES[key]
    try:
        return Dialect(key)
    except ValueError:
        valid = ", ".join(d.value for d in Dialect)
        raise ValueError(f"Unknown dialect '{dialect}'. Valid dialects: {valid}") from None


def get_generator(dialect: "Dialect | str | DdlGenerator") -> DdlGenerator:
    """Return the shared generator for ``dialect``.

    Accepts a ``Dialect`` member, a dialect name, or a generator instance
    (returned unchanged).
    """
    if isinstance(dialect, DdlGenerator):
        return dialect
    return _REGISTRY[resolve_dialect(dialect)]


__all__ = [
    "STATEMENT_SEPARATOR",
    "DdlGenerator",
    "Dialect",
    "MySqlGenerator",
    "PostgresGenerator",
    "SqlServerGenerator",
    "SqliteGenerator",
    "get_generator",
    "resolve_dialect",
]
