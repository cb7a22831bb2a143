"""Migration diff planner.

Compares current and target table lists and delegates statement generation
to the active dialect generator.  Pure logic -- no I/O.

Usage:
    from db_schema_sync.migration.planner import plan_migration

    statements = plan_migration(current_tables, target_tables, "postgresql")
    for sql in statements:
        print(sql)
"""

import logging
from collections.abc import Iterable

from db_schema_sync.ddl import DdlGenerator, Dialect, get_generator
from db_schema_sync.schema.comparator import SchemaDiff, diff_schemas
from db_schema_sync.schema.models import Table

logger = logging.getLogger(__name__)


def statements_for_diff(diff: SchemaDiff, generator: DdlGenerator) -> list[str]:
    """Render a schema diff as an ordered statement list.

    Every create statement comes first, then every alter statement, then
    every drop statement.  Input order is preserved within each bucket.
    """
    creates = [s for t in diff.created_tables for s in generator.create_table_statements(t)]
    alters = [s for d in diff.altered_tables for s in generator.delta_statements(d)]
    drops = [generator.drop_table_statement(t) for t in diff.dropped_tables]
    return creates + alters + drops


def plan_migration(
    current_tables: Iterable[Table],
    target_tables: Iterable[Table],
    dialect: "Dialect | str | DdlGenerator",
) -> list[str]:
    """Plan the statements that move ``current_tables`` to ``target_tables``.

    Tables are matched by fully-qualified name.  Column types are compared
    by their native rendering on ``dialect``.  No foreign-key-aware ordering
    is applied: callers pass tables in dependency order.

    Args:
        current_tables: Tables as they exist now (may be empty).
        target_tables: Tables as declared.
        dialect: ``Dialect``, dialect name, or generator instance.

    Returns:
        Ordered statement texts; empty when the schemas already match.

    Raises:
        ValueError: If either list repeats a fully-qualified table name.
        UnsupportedOperationError: If a change cannot be expressed on
            ``dialect``.

    Examples:
        >>> users = Table(name="Users", columns=[Column(name="Id")])
        >>> plan_migration([users], [users], "sqlite")
        []
    """
    generator = get_generator(dialect)
    diff = diff_schemas(current_tables, target_tables, generator.map_type)
    statements = statements_for_diff(diff, generator)
    logger.debug(
        "Planned %d statement(s) for %s: %d create, %d alter, %d drop",
        len(statements),
        generator.dialect.value,
        len(diff.created_tables),
        len(diff.altered_tables),
        len(diff.dropped_tables),
    )
    return statements
