"""Database adapters package.

Provides the ``DatabaseClient`` Protocol and the SQLAlchemy-backed
``AsyncSqlExecutor`` used to apply migrations.

Usage:
    from db_schema_sync.adapters import DatabaseClient, AsyncSqlExecutor
"""

from db_schema_sync.adapters.base import DatabaseClient
from db_schema_sync.adapters.engine import AsyncSqlExecutor

__all__ = [
    "DatabaseClient",
    "AsyncSqlExecutor",
]
