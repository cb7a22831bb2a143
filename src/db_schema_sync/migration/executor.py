"""Apply a gated migration plan through a ``DatabaseClient``.

Statements run sequentially in plan order; the first failure stops the run.
The executor does not wrap the batch in a transaction (not every backend
supports transactional DDL): each statement commits on its own.

Usage:
    from db_schema_sync.adapters import AsyncSqlExecutor
    from db_schema_sync.migration.executor import apply_migration
    from db_schema_sync.migration.gate import prepare_migration

    plan = prepare_migration(current, target, "postgresql")
    client = AsyncSqlExecutor(database_url)
    try:
        result = await apply_migration(client, plan)
    finally:
        await client.close()
"""

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from pydantic import BaseModel

from db_schema_sync.ddl import DdlGenerator, Dialect
from db_schema_sync.migration.gate import MigrationMode, MigrationPlan, prepare_migration
from db_schema_sync.schema.models import Table

if TYPE_CHECKING:
    from db_schema_sync.adapters.base import DatabaseClient

logger = logging.getLogger(__name__)


class MigrationResult(BaseModel):
    """Result of applying a migration plan.

    Attributes:
        success: True if every statement ran (or nothing had to run).
        dry_run: True if the plan was a dry-run and nothing was executed.
        statements_total: Number of statements in the plan.
        statements_executed: Number of statements that completed.
        failed_statement: The statement that failed, if any.
        error: Error message if the migration failed.
    """

    success: bool = False
    dry_run: bool = False
    statements_total: int = 0
    statements_executed: int = 0
    failed_statement: str | None = None
    error: str | None = None


async def apply_migration(client: "DatabaseClient", plan: MigrationPlan) -> MigrationResult:
    """Execute ``plan`` statement by statement.

    Args:
        client: Any object implementing the ``DatabaseClient`` Protocol.
        plan: Plan from ``prepare_migration()``.  Dry-run plans are never
            executed.

    Returns:
        ``MigrationResult`` with outcome.  Statement failures are captured
        in ``error`` and ``failed_statement``; statements before the failure
        stay applied.

    Raises:
        RuntimeError: If the client does not support DDL operations
            (raises ``NotImplementedError`` on ``execute()``).

    Example:
        result = await apply_migration(client, plan)
        if not result.success:
            print(result.error)
    """
    result = MigrationResult(statements_total=len(plan.statements))

    if plan.mode == MigrationMode.DRY_RUN:
        result.success = True
        result.dry_run = True
        return result

    if not plan.statements:
        result.success = True
        return result

    for sql in plan.statements:
        try:
            await client.execute(sql)
        except NotImplementedError:
            raise RuntimeError("DDL operations not supported for this client type")
        except Exception as e:
            logger.error("Statement %d failed: %s", result.statements_executed + 1, e)
            result.failed_statement = sql
            result.error = f"Failed to apply migration: {e}"
            return result
        result.statements_executed += 1

    logger.info("Applied %d statement(s)", result.statements_executed)
    result.success = True
    return result


async def synchronize(
    client: "DatabaseClient",
    current_tables: Iterable[Table],
    target_tables: Iterable[Table],
    dialect: "Dialect | str | DdlGenerator",
    mode: MigrationMode | str = MigrationMode.NORMAL,
) -> MigrationResult:
    """Prepare, gate and apply a migration in one call.

    Raises:
        MigrationAbortedError: In normal mode when a HIGH finding exists;
            nothing is executed.
    """
    plan = prepare_migration(current_tables, target_tables, dialect, mode)
    return await apply_migration(client, plan)
