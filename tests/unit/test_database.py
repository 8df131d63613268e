"""Unit tests for database helpers and the background ledger sweeper."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

from fakes import MockConnection, MockPool
from ikiraha.database import (
    MIGRATIONS_DIR,
    connection,
    health_check,
    run_migrations,
    transaction,
)
from ikiraha.main import sweep_refresh_tokens_periodically


class TestConnectionHelpers:
    async def test_connection_reuses_callers_connection(self, mock_pool):
        pool, pool_conn = mock_pool
        own = MockConnection()

        async with connection(pool, own) as conn:
            assert conn is own

    async def test_connection_acquires_from_pool(self, mock_pool):
        pool, pool_conn = mock_pool

        async with connection(pool) as conn:
            assert conn is pool_conn

    async def test_transaction_wraps_block(self):
        conn = MockConnection()
        tx = MagicMock()
        tx.__aenter__ = AsyncMock()
        tx.__aexit__ = AsyncMock(return_value=False)
        conn.transaction = MagicMock(return_value=tx)

        async with transaction(MockPool(conn)) as c:
            assert c is conn

        tx.__aenter__.assert_awaited_once()
        tx.__aexit__.assert_awaited_once()


class TestMigrations:
    def test_migrations_ship_with_package(self):
        names = sorted(p.name for p in MIGRATIONS_DIR.glob("*.sql"))
        assert names == ["001_users.sql", "002_refresh_tokens.sql"]

    async def test_applies_files_in_order(self, mock_pool):
        pool, conn = mock_pool

        await run_migrations(pool)

        executed = [call.args[0] for call in conn.execute.await_args_list]
        assert "CREATE TABLE IF NOT EXISTS users" in executed[0]
        assert "CREATE TABLE IF NOT EXISTS refresh_tokens" in executed[1]

    async def test_missing_directory_is_skipped(self, mock_pool, tmp_path):
        pool, conn = mock_pool

        await run_migrations(pool, tmp_path / "nope")

        conn.execute.assert_not_awaited()


class TestHealthCheck:
    async def test_no_pool(self):
        assert await health_check(None) is False

    async def test_select_one(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchval.return_value = 1
        assert await health_check(pool) is True

    async def test_connection_failure(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchval.side_effect = OSError("refused")
        assert await health_check(pool) is False


class TestSweeper:
    async def test_sweeps_until_cancelled(self):
        ledger = MagicMock()
        ledger.sweep_expired = AsyncMock(return_value=0)

        task = asyncio.create_task(sweep_refresh_tokens_periodically(ledger, 0))
        await asyncio.sleep(0.01)
        task.cancel()
        await task

        assert ledger.sweep_expired.await_count >= 1

    async def test_survives_sweep_errors(self):
        ledger = MagicMock()
        ledger.sweep_expired = AsyncMock(side_effect=[OSError("down"), 0, 0, 0])

        task = asyncio.create_task(sweep_refresh_tokens_periodically(ledger, 0))
        await asyncio.sleep(0.01)
        task.cancel()
        await task

        assert ledger.sweep_expired.await_count >= 2
