"""Unit tests for the refresh-token ledger with a mocked asyncpg pool."""

import hashlib
from datetime import datetime, timedelta, timezone

import pytest

from fakes import MockConnection
from ikiraha.services.errors import InvalidRefreshTokenError, PersistenceError
from ikiraha.services.refresh_token_service import RefreshTokenService, hash_token


@pytest.fixture
def ledger_with_conn(mock_pool, token_service, settings):
    pool, conn = mock_pool
    return RefreshTokenService(pool, token_service, settings), conn


class TestStore:
    async def test_inserts_digest_with_thirty_day_expiry(self, ledger_with_conn, token_service):
        ledger, conn = ledger_with_conn
        conn.fetchval.return_value = 11
        token = token_service.issue_refresh_token(5, "a@x.com")

        row = await ledger.store(5, token)

        conn.fetchval.assert_awaited_once()
        args = conn.fetchval.call_args[0]
        assert "INSERT INTO refresh_tokens" in args[0]
        assert args[1] == 5
        assert args[2] == hashlib.sha256(token.encode("utf-8")).hexdigest()
        assert args[3] - args[4] == timedelta(days=30)
        assert row.id == 11
        assert row.token_hash == hash_token(token)
        assert row.expires_at > row.created_at

    async def test_uses_callers_connection(self, ledger_with_conn):
        ledger, pool_conn = ledger_with_conn
        tx_conn = MockConnection()
        tx_conn.fetchval.return_value = 1

        await ledger.store(5, "token", conn=tx_conn)

        tx_conn.fetchval.assert_awaited_once()
        pool_conn.fetchval.assert_not_awaited()

    async def test_storage_fault_raises_persistence_error(self, ledger_with_conn):
        ledger, conn = ledger_with_conn
        conn.fetchval.side_effect = ConnectionResetError("connection lost")

        with pytest.raises(PersistenceError):
            await ledger.store(5, "token")


class TestValidate:
    async def test_valid_token_with_live_row_returns_claims(self, ledger_with_conn, token_service):
        ledger, conn = ledger_with_conn
        token = token_service.issue_refresh_token(5, "a@x.com")
        conn.fetchrow.return_value = {"user_id": 5}

        claims = await ledger.validate(token)

        assert claims["userId"] == 5
        sql, digest, now = conn.fetchrow.call_args[0]
        assert "expires_at > $2" in sql
        assert digest == hash_token(token)
        assert now.tzinfo is not None

    async def test_signed_but_unknown_token_is_rejected(self, ledger_with_conn, token_service):
        ledger, conn = ledger_with_conn
        conn.fetchrow.return_value = None

        with pytest.raises(InvalidRefreshTokenError):
            await ledger.validate(token_service.issue_refresh_token(5, "a@x.com"))

    async def test_bad_signature_skips_database(self, ledger_with_conn):
        ledger, conn = ledger_with_conn

        with pytest.raises(InvalidRefreshTokenError):
            await ledger.validate("not.a.token")

        conn.fetchrow.assert_not_awaited()

    async def test_access_token_is_not_a_refresh_token(self, ledger_with_conn, token_service):
        ledger, conn = ledger_with_conn
        conn.fetchrow.return_value = {"user_id": 5}

        with pytest.raises(InvalidRefreshTokenError):
            await ledger.validate(token_service.issue_access_token(5, "a@x.com"))

    async def test_row_owned_by_other_user_is_rejected(self, ledger_with_conn, token_service):
        ledger, conn = ledger_with_conn
        conn.fetchrow.return_value = {"user_id": 99}

        with pytest.raises(InvalidRefreshTokenError):
            await ledger.validate(token_service.issue_refresh_token(5, "a@x.com"))


class TestRevokeAndSweep:
    async def test_revoke_deletes_by_digest(self, ledger_with_conn):
        ledger, conn = ledger_with_conn
        conn.execute.return_value = "DELETE 1"

        assert await ledger.revoke("some-token") is True

        sql, digest = conn.execute.call_args[0]
        assert sql.startswith("DELETE FROM refresh_tokens")
        assert digest == hash_token("some-token")

    async def test_revoke_missing_row_is_not_an_error(self, ledger_with_conn):
        ledger, conn = ledger_with_conn
        conn.execute.return_value = "DELETE 0"

        assert await ledger.revoke("gone") is False

    async def test_revoke_all_returns_count(self, ledger_with_conn):
        ledger, conn = ledger_with_conn
        conn.execute.return_value = "DELETE 3"

        assert await ledger.revoke_all(5) == 3
        assert conn.execute.call_args[0][1] == 5

    async def test_sweep_deletes_expired_rows(self, ledger_with_conn):
        ledger, conn = ledger_with_conn
        conn.execute.return_value = "DELETE 4"

        assert await ledger.sweep_expired() == 4

        sql, cutoff = conn.execute.call_args[0]
        assert "expires_at <= $1" in sql
        assert abs(datetime.now(timezone.utc) - cutoff) < timedelta(seconds=5)
