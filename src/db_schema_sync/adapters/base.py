"""Database client protocol definition.

Defines the ``DatabaseClient`` Protocol the migration executor talks to.
All methods are ``async def`` -- the library is async-first.

Usage:
    from db_schema_sync.adapters.base import DatabaseClient

    async def do_work(client: DatabaseClient) -> None:
        await client.execute('ALTER TABLE "Users" ADD COLUMN "Email" VARCHAR(255) NULL;')
        await client.close()
"""

from typing import Protocol


class DatabaseClient(Protocol):
    """Statement-execution interface used to apply migrations.

    Any object with these two coroutines qualifies; ``AsyncSqlExecutor`` is
    the bundled implementation.
    """

    async def execute(self, sql: str, params: dict | None = None) -> None:
        """Execute a single SQL statement (DDL or other non-query operation).

        Args:
            sql: SQL statement to execute.
            params: Optional dict of named parameters for the statement.

        Raises:
            NotImplementedError: If the client does not support DDL.
        """
        ...

    async def close(self) -> None:
        """Close the connection and clean up resources."""
        ...
