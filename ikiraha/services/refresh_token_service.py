"""Refresh-token ledger backed by the ``refresh_tokens`` table."""

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Optional

import asyncpg
import structlog

from ikiraha.config import Settings
from ikiraha.database import DATABASE_ERRORS, connection
from ikiraha.models.user import RefreshToken
from ikiraha.services.errors import (
    InvalidRefreshTokenError,
    InvalidTokenError,
    PersistenceError,
)
from ikiraha.services.token_service import REFRESH_TOKEN_TYPE, TokenService

logger = structlog.get_logger(__name__)


def hash_token(token: str) -> str:
    """SHA-256 digest stored in place of the raw token string."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _rows_affected(status: str) -> int:
    """Parse the row count from an asyncpg status string such as ``DELETE 3``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


class RefreshTokenService:
    """Records issued refresh tokens so they can be revoked.

    A refresh token is valid only while its signature verifies AND a
    matching, unexpired ledger row exists.
    """

    def __init__(self, pool: asyncpg.Pool, tokens: TokenService, settings: Settings):
        self.pool = pool
        self.tokens = tokens
        self.ttl = timedelta(days=settings.refresh_token_ttl_days)

    async def store(
        self,
        user_id: int,
        token: str,
        conn: Optional[asyncpg.Connection] = None,
    ) -> RefreshToken:
        """Insert a ledger row expiring ``refresh_token_ttl_days`` from now.

        Args:
            user_id: Owning user id
            token: Signed refresh token string
            conn: Connection of an enclosing transaction, if any

        Returns:
            The stored ledger row

        Raises:
            PersistenceError: If the insert fails
        """
        token_hash = hash_token(token)
        now = datetime.now(timezone.utc)
        expires_at = now + self.ttl

        try:
            async with connection(self.pool, conn) as c:
                row_id = await c.fetchval(
                    """
                    INSERT INTO refresh_tokens (user_id, token_hash, expires_at, created_at)
                    VALUES ($1, $2, $3, $4)
                    RETURNING id
                    """,
                    user_id,
                    token_hash,
                    expires_at,
                    now,
                )
        except DATABASE_ERRORS as e:
            logger.error("refresh_token_store_failed", user_id=user_id, error=str(e))
            raise PersistenceError("Failed to store refresh token") from e

        logger.info(
            "refresh_token_stored",
            user_id=user_id,
            expires_at=expires_at.isoformat(),
        )

        return RefreshToken(
            id=row_id,
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
            created_at=now,
        )

    async def validate(self, token: str) -> dict:
        """Check signature and ledger presence of a refresh token.

        Args:
            token: Signed refresh token string

        Returns:
            Decoded claims

        Raises:
            InvalidRefreshTokenError: If the signature is bad, the token has
                expired, or no live ledger row matches it
        """
        try:
            claims = self.tokens.verify(token, expected_type=REFRESH_TOKEN_TYPE)
        except InvalidTokenError as e:
            logger.warning("refresh_token_signature_rejected", reason=e.message)
            raise InvalidRefreshTokenError() from e

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT user_id
                FROM refresh_tokens
                WHERE token_hash = $1 AND expires_at > $2
                """,
                hash_token(token),
                datetime.now(timezone.utc),
            )

        if row is None or row["user_id"] != claims["userId"]:
            logger.warning("refresh_token_not_in_ledger", user_id=claims["userId"])
            raise InvalidRefreshTokenError()

        return claims

    async def revoke(self, token: str) -> bool:
        """Delete the ledger row for ``token``; a missing row is not an error.

        Returns:
            True if a row was removed
        """
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM refresh_tokens WHERE token_hash = $1",
                hash_token(token),
            )

        revoked = _rows_affected(result) > 0
        logger.info("refresh_token_revoked", found=revoked)
        return revoked

    async def revoke_all(
        self, user_id: int, conn: Optional[asyncpg.Connection] = None
    ) -> int:
        """Delete every ledger row owned by ``user_id``.

        Returns:
            Number of rows removed
        """
        async with connection(self.pool, conn) as c:
            result = await c.execute(
                "DELETE FROM refresh_tokens WHERE user_id = $1",
                user_id,
            )

        count = _rows_affected(result)
        logger.info("all_refresh_tokens_revoked", user_id=user_id, count=count)
        return count

    async def sweep_expired(self) -> int:
        """Delete all rows whose expiry has passed.

        Returns:
            Number of rows removed
        """
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM refresh_tokens WHERE expires_at <= $1",
                datetime.now(timezone.utc),
            )

        count = _rows_affected(result)
        logger.info("expired_refresh_tokens_swept", count=count)
        return count
