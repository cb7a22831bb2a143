"""Tests for the async SQL executor and engine creation."""

import inspect
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from db_schema_sync.adapters.base import DatabaseClient
from db_schema_sync.adapters.engine import (
    AsyncSqlExecutor,
    create_async_engine_pooled,
    normalize_database_url,
)


def _mock_engine() -> tuple[MagicMock, AsyncMock]:
    """Engine whose begin()/connect() yield the same async connection."""
    conn = AsyncMock()
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=conn)
    ctx.__aexit__ = AsyncMock(return_value=None)

    engine = MagicMock()
    engine.begin.return_value = ctx
    engine.connect.return_value = ctx
    engine.dispose = AsyncMock()
    return engine, conn


class TestNormalizeDatabaseUrl:
    """Verify URL scheme normalization."""

    @pytest.mark.parametrize(
        "url, expected",
        [
            ("postgres://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
            ("postgresql://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
            ("postgresql+asyncpg://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
            ("sqlite+aiosqlite:///app.db", "sqlite+aiosqlite:///app.db"),
            ("mysql+aiomysql://u:p@h/db", "mysql+aiomysql://u:p@h/db"),
        ],
    )
    def test_normalize(self, url: str, expected: str) -> None:
        assert normalize_database_url(url) == expected


class TestCreateEngine:
    """Verify pool defaults."""

    def test_server_database_gets_pool_settings(self) -> None:
        with patch("db_schema_sync.adapters.engine.create_async_engine") as mock_create:
            create_async_engine_pooled("postgresql+asyncpg://h/db", pool_size=2)

        kwargs = mock_create.call_args.kwargs
        assert kwargs["pool_size"] == 2
        assert kwargs["max_overflow"] == 10
        assert kwargs["pool_pre_ping"] is True
        assert kwargs["pool_recycle"] == 300

    def test_sqlite_keeps_default_pool(self) -> None:
        with patch("db_schema_sync.adapters.engine.create_async_engine") as mock_create:
            create_async_engine_pooled("sqlite+aiosqlite:///app.db")

        mock_create.assert_called_once_with("sqlite+aiosqlite:///app.db", echo=False)


class TestAsyncSqlExecutor:
    """Verify statement execution through a mocked engine."""

    def test_satisfies_protocol_shape(self) -> None:
        for name in ("execute", "close"):
            assert hasattr(DatabaseClient, name)
            assert inspect.iscoroutinefunction(getattr(AsyncSqlExecutor, name))

    @pytest.mark.asyncio
    async def test_execute_without_params_goes_to_driver(self) -> None:
        engine, conn = _mock_engine()
        with patch("db_schema_sync.adapters.engine.create_async_engine_pooled", return_value=engine):
            executor = AsyncSqlExecutor("postgres://h/db")

        await executor.execute("DEFAULT '10:30'")

        assert executor.database_url == "postgresql+asyncpg://h/db"
        engine.begin.assert_called_once()
        conn.exec_driver_sql.assert_awaited_once_with("DEFAULT '10:30'")
        conn.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_execute_with_params_binds(self) -> None:
        engine, conn = _mock_engine()
        with patch("db_schema_sync.adapters.engine.create_async_engine_pooled", return_value=engine):
            executor = AsyncSqlExecutor("sqlite+aiosqlite:///app.db")

        await executor.execute("DELETE FROM t WHERE id = :id", {"id": 1})

        conn.execute.assert_awaited_once()
        assert conn.execute.await_args.args[1] == {"id": 1}

    @pytest.mark.asyncio
    async def test_close_disposes_engine(self) -> None:
        engine, _ = _mock_engine()
        with patch("db_schema_sync.adapters.engine.create_async_engine_pooled", return_value=engine):
            executor = AsyncSqlExecutor("sqlite+aiosqlite:///app.db")

        await executor.close()
        engine.dispose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_test_connection(self) -> None:
        engine, conn = _mock_engine()
        result = MagicMock()
        result.scalar.return_value = 1
        conn.execute.return_value = result
        with patch("db_schema_sync.adapters.engine.create_async_engine_pooled", return_value=engine):
            executor = AsyncSqlExecutor("sqlite+aiosqlite:///app.db")

        assert await executor.test_connection() is True
