"""Password hashing with bcrypt, run off the event loop."""

import asyncio

import bcrypt

from ikiraha.config import Settings
from ikiraha.models.auth import MAX_PASSWORD_BYTES


class PasswordService:
    """bcrypt hashing and verification.

    Every call runs in the default executor so hashing never blocks the
    event loop.
    """

    def __init__(self, settings: Settings):
        self.rounds = settings.bcrypt_salt_rounds
        self._dummy_hash: str | None = None

    def hash_password_sync(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain-text password to hash

        Returns:
            Bcrypt hash string
        """
        salt = bcrypt.gensalt(rounds=self.rounds)
        hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    def verify_password_sync(self, password: str, password_hash: str) -> bool:
        """Verify a password against a bcrypt hash.

        Args:
            password: Plain-text password to check
            password_hash: Bcrypt hash to verify against

        Returns:
            True if the password matches, False otherwise
        """
        candidate = password.encode("utf-8")
        if len(candidate) > MAX_PASSWORD_BYTES:
            # No stored hash can match; spend a check anyway so timing stays flat
            bcrypt.checkpw(b"", password_hash.encode("utf-8"))
            return False
        return bcrypt.checkpw(candidate, password_hash.encode("utf-8"))

    async def hash_password(self, password: str) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.hash_password_sync, password)

    async def verify_password(self, password: str, password_hash: str) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self.verify_password_sync, password, password_hash
        )

    async def burn_verification(self, password: str) -> None:
        """Spend the same time as a real check when there is no stored hash.

        Keeps login latency identical for unknown emails and wrong passwords.
        """
        if self._dummy_hash is None:
            self._dummy_hash = await self.hash_password("not-a-real-password")
        await self.verify_password(password, self._dummy_hash)
