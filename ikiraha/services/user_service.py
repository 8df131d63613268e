"""Credential store: parameterized queries over the ``users`` table."""

from datetime import datetime, timezone
from typing import Optional

import asyncpg
import structlog

from ikiraha.database import connection
from ikiraha.models.user import UserProfile
from ikiraha.services.errors import ConflictError

logger = structlog.get_logger(__name__)

PROFILE_COLUMNS = (
    "id, email, first_name, last_name, phone_number, profile_image_url, "
    "is_email_verified, is_admin, created_at, updated_at, last_login_at"
)

# Fields a user may change through the profile endpoint
UPDATABLE_PROFILE_FIELDS = ("first_name", "last_name", "phone_number", "profile_image_url")


def _row_to_profile(row) -> UserProfile:
    return UserProfile(
        id=row["id"],
        email=row["email"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        phone_number=row["phone_number"],
        profile_image_url=row["profile_image_url"],
        is_email_verified=row["is_email_verified"],
        is_admin=row["is_admin"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        last_login_at=row["last_login_at"],
    )


class UserService:
    """Service for user CRUD operations.

    Methods that take ``conn`` can join a transaction opened by the caller.
    """

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def create_user(
        self,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        phone_number: Optional[str] = None,
        verification_token: Optional[str] = None,
        conn: Optional[asyncpg.Connection] = None,
    ) -> UserProfile:
        """Insert a new user row.

        Args:
            email: Normalized email address
            password_hash: bcrypt hash of the password
            first_name: Given name
            last_name: Family name
            phone_number: Optional phone number
            verification_token: One-time email verification token
            conn: Connection of an enclosing transaction, if any

        Returns:
            Created UserProfile

        Raises:
            ConflictError: If the email is already registered
        """
        now = datetime.now(timezone.utc)

        try:
            async with connection(self.pool, conn) as c:
                row = await c.fetchrow(
                    f"""
                    INSERT INTO users (email, password_hash, first_name, last_name, phone_number,
                                       email_verification_token, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $7)
                    RETURNING {PROFILE_COLUMNS}
                    """,
                    email,
                    password_hash,
                    first_name,
                    last_name,
                    phone_number,
                    verification_token,
                    now,
                )
        except asyncpg.UniqueViolationError as e:
            logger.warning("user_create_conflict")
            raise ConflictError() from e

        user = _row_to_profile(row)
        logger.info("user_created", user_id=user.id)
        return user

    async def email_exists(self, email: str) -> bool:
        async with self.pool.acquire() as conn:
            found = await conn.fetchval(
                "SELECT 1 FROM users WHERE LOWER(email) = LOWER($1)",
                email,
            )
        return found is not None

    async def get_by_email(self, email: str) -> Optional[tuple[UserProfile, str]]:
        """Get a user by email (case-insensitive).

        Args:
            email: Email to look up

        Returns:
            Tuple of (UserProfile, password_hash) or None if not found
        """
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {PROFILE_COLUMNS}, password_hash
                FROM users
                WHERE LOWER(email) = LOWER($1)
                """,
                email,
            )

        if row is None:
            return None

        return _row_to_profile(row), row["password_hash"]

    async def get_by_id(
        self, user_id: int, conn: Optional[asyncpg.Connection] = None
    ) -> Optional[UserProfile]:
        """Get a user by id.

        Returns:
            UserProfile or None if not found
        """
        async with connection(self.pool, conn) as c:
            row = await c.fetchrow(
                f"SELECT {PROFILE_COLUMNS} FROM users WHERE id = $1",
                user_id,
            )

        if row is None:
            return None

        return _row_to_profile(row)

    async def get_password_hash_for_update(
        self, user_id: int, conn: asyncpg.Connection
    ) -> Optional[str]:
        """Read the password hash and lock the row until the transaction ends."""
        return await conn.fetchval(
            "SELECT password_hash FROM users WHERE id = $1 FOR UPDATE",
            user_id,
        )

    async def record_login(
        self, user_id: int, conn: Optional[asyncpg.Connection] = None
    ) -> Optional[UserProfile]:
        """Stamp ``last_login_at`` and return the refreshed profile."""
        async with connection(self.pool, conn) as c:
            row = await c.fetchrow(
                f"""
                UPDATE users
                SET last_login_at = $1
                WHERE id = $2
                RETURNING {PROFILE_COLUMNS}
                """,
                datetime.now(timezone.utc),
                user_id,
            )

        if row is None:
            return None

        return _row_to_profile(row)

    async def update_profile(self, user_id: int, changes: dict) -> Optional[UserProfile]:
        """Update profile fields that are present in ``changes``.

        Args:
            user_id: Id of the user to update
            changes: Mapping of snake_case field name to new value

        Returns:
            Updated UserProfile, or None if user not found
        """
        set_clauses = []
        params = []
        param_idx = 1

        for field in UPDATABLE_PROFILE_FIELDS:
            if field in changes:
                set_clauses.append(f"{field} = ${param_idx}")
                params.append(changes[field])
                param_idx += 1

        if not set_clauses:
            return await self.get_by_id(user_id)

        set_clauses.append(f"updated_at = ${param_idx}")
        params.append(datetime.now(timezone.utc))
        param_idx += 1

        params.append(user_id)

        query = f"""
            UPDATE users
            SET {', '.join(set_clauses)}
            WHERE id = ${param_idx}
            RETURNING {PROFILE_COLUMNS}
        """

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(query, *params)

        if row is None:
            return None

        logger.info(
            "user_profile_updated",
            user_id=user_id,
            fields_updated=[c.split(" = ")[0] for c in set_clauses if "updated_at" not in c],
        )

        return _row_to_profile(row)

    async def update_password(
        self,
        user_id: int,
        password_hash: str,
        conn: Optional[asyncpg.Connection] = None,
    ) -> None:
        """Store a new password hash and drop any pending reset token."""
        async with connection(self.pool, conn) as c:
            await c.execute(
                """
                UPDATE users
                SET password_hash = $1,
                    password_reset_token = NULL,
                    password_reset_expires = NULL,
                    updated_at = $2
                WHERE id = $3
                """,
                password_hash,
                datetime.now(timezone.utc),
                user_id,
            )

        logger.info("user_password_updated", user_id=user_id)

    async def set_password_reset_token(
        self, email: str, token: str, expires_at: datetime
    ) -> Optional[int]:
        """Overwrite the user's reset token in one statement.

        Returns:
            The user id, or None when no account has that email
        """
        async with self.pool.acquire() as conn:
            return await conn.fetchval(
                """
                UPDATE users
                SET password_reset_token = $1, password_reset_expires = $2
                WHERE LOWER(email) = LOWER($3)
                RETURNING id
                """,
                token,
                expires_at,
                email,
            )

    async def find_by_reset_token_for_update(
        self, token: str, conn: asyncpg.Connection
    ) -> Optional[int]:
        """Lock and return the user holding an unexpired reset token."""
        return await conn.fetchval(
            """
            SELECT id
            FROM users
            WHERE password_reset_token = $1 AND password_reset_expires > $2
            FOR UPDATE
            """,
            token,
            datetime.now(timezone.utc),
        )

    async def verify_email(self, token: str) -> Optional[UserProfile]:
        """Consume a verification token and mark the email verified.

        Returns:
            Updated UserProfile, or None when no user holds the token
        """
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE users
                SET is_email_verified = TRUE,
                    email_verification_token = NULL,
                    updated_at = $1
                WHERE email_verification_token = $2
                RETURNING {PROFILE_COLUMNS}
                """,
                datetime.now(timezone.utc),
                token,
            )

        if row is None:
            return None

        logger.info("user_email_verified", user_id=row["id"])
        return _row_to_profile(row)
