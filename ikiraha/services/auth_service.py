"""Session flows: register, login, refresh, logout and password management."""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import asyncpg
import structlog

from ikiraha.config import Settings
from ikiraha.database import transaction
from ikiraha.models.auth import AuthResult, RefreshResult
from ikiraha.models.user import UserProfile
from ikiraha.services.errors import (
    ConflictError,
    InvalidCredentialsError,
    InvalidResetTokenError,
    InvalidVerificationTokenError,
    UserNotFoundError,
    ValidationError,
)
from ikiraha.services.password_service import PasswordService
from ikiraha.services.refresh_token_service import RefreshTokenService
from ikiraha.services.token_service import TokenService
from ikiraha.services.user_service import UserService

logger = structlog.get_logger(__name__)

# Random bytes in verification and reset tokens (hex-encoded, so 64 chars)
ONE_TIME_TOKEN_BYTES = 32

FORGOT_PASSWORD_MESSAGE = (
    "If an account with that email exists, a password reset link has been sent"
)


def generate_one_time_token() -> str:
    return secrets.token_hex(ONE_TIME_TOKEN_BYTES)


class AuthService:
    """Orchestrates the credential store, token issuer and refresh-token ledger."""

    def __init__(
        self,
        pool: asyncpg.Pool,
        users: UserService,
        refresh_tokens: RefreshTokenService,
        tokens: TokenService,
        passwords: PasswordService,
        settings: Settings,
    ):
        self.pool = pool
        self.users = users
        self.refresh_tokens = refresh_tokens
        self.tokens = tokens
        self.passwords = passwords
        self.settings = settings

    def _deliver_out_of_band(self, event: str, email: str, token: str, **fields) -> None:
        """Hand a one-time token to the delivery channel (a log event for now)."""
        if self.settings.is_production:
            logger.info(event, email=email, **fields)
        else:
            logger.info(event, email=email, token=token, **fields)

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        phone_number: Optional[str] = None,
    ) -> AuthResult:
        """Create an account and sign the user in.

        Args:
            email: Normalized email address
            password: Plain-text password (will be hashed)
            first_name: Given name
            last_name: Family name
            phone_number: Optional phone number

        Returns:
            AuthResult with the new profile and a token pair

        Raises:
            ConflictError: If the email is already registered
        """
        if await self.users.email_exists(email):
            raise ConflictError()

        password_hash = await self.passwords.hash_password(password)
        verification_token = generate_one_time_token()

        # The unique email index decides races between concurrent registrations
        async with transaction(self.pool) as conn:
            user = await self.users.create_user(
                email=email,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
                phone_number=phone_number,
                verification_token=verification_token,
                conn=conn,
            )
            pair = self.tokens.issue_token_pair(user.id, user.email)
            await self.refresh_tokens.store(user.id, pair.refresh_token, conn=conn)

        logger.info("user_registered", user_id=user.id)
        self._deliver_out_of_band(
            "email_verification_token_issued", user.email, verification_token
        )

        return AuthResult(
            user=user,
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
        )

    async def login(self, email: str, password: str) -> AuthResult:
        """Authenticate with email and password.

        Raises:
            InvalidCredentialsError: For an unknown email or a wrong password
                (same message either way)
        """
        result = await self.users.get_by_email(email)

        if result is None:
            await self.passwords.burn_verification(password)
            logger.warning("login_failed")
            raise InvalidCredentialsError()

        user, password_hash = result

        if not await self.passwords.verify_password(password, password_hash):
            logger.warning("login_failed", user_id=user.id)
            raise InvalidCredentialsError()

        pair = self.tokens.issue_token_pair(user.id, user.email)

        async with transaction(self.pool) as conn:
            updated = await self.users.record_login(user.id, conn=conn)
            await self.refresh_tokens.store(user.id, pair.refresh_token, conn=conn)

        logger.info("user_logged_in", user_id=user.id)

        return AuthResult(
            user=updated or user,
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
        )

    async def refresh(self, refresh_token: str) -> RefreshResult:
        """Issue a new access token for a valid refresh token.

        The refresh token itself is not rotated; it stays valid until it
        expires or is revoked.

        Raises:
            InvalidRefreshTokenError: If the token fails signature or ledger checks
            UserNotFoundError: If the user was removed since issuance
        """
        claims = await self.refresh_tokens.validate(refresh_token)

        user = await self.users.get_by_id(claims["userId"])
        if user is None:
            logger.warning("refresh_user_missing", user_id=claims["userId"])
            raise UserNotFoundError()

        access_token = self.tokens.issue_access_token(user.id, user.email)
        logger.info("access_token_refreshed", user_id=user.id)
        return RefreshResult(access_token=access_token, user=user)

    async def logout(self, refresh_token: Optional[str]) -> None:
        """Revoke ``refresh_token`` when given; never fails for the caller."""
        if refresh_token:
            await self.refresh_tokens.revoke(refresh_token)

    async def get_profile(self, user_id: int) -> UserProfile:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(status_code=404)
        return user

    async def update_profile(self, user_id: int, changes: dict) -> UserProfile:
        """Apply profile changes.

        Raises:
            ValidationError: If ``changes`` is empty
            UserNotFoundError: If the user no longer exists (404)
        """
        if not changes:
            raise ValidationError("No fields to update")

        user = await self.users.update_profile(user_id, changes)
        if user is None:
            raise UserNotFoundError(status_code=404)
        return user

    async def forgot_password(self, email: str) -> str:
        """Issue a password reset token if the account exists.

        Returns:
            The same generic message whether or not the email is registered
        """
        token = generate_one_time_token()
        expires_at = datetime.now(timezone.utc) + timedelta(
            minutes=self.settings.password_reset_ttl_minutes
        )

        user_id = await self.users.set_password_reset_token(email, token, expires_at)

        if user_id is None:
            logger.info("password_reset_requested_unknown_email")
        else:
            self._deliver_out_of_band(
                "password_reset_token_issued",
                email,
                token,
                user_id=user_id,
                expires_at=expires_at.isoformat(),
            )

        return FORGOT_PASSWORD_MESSAGE

    async def reset_password(self, token: str, new_password: str) -> None:
        """Set a new password using a reset token; the token is single-use.

        Raises:
            InvalidResetTokenError: If no user holds the token or it has expired
        """
        async with transaction(self.pool) as conn:
            user_id = await self.users.find_by_reset_token_for_update(token, conn)
            if user_id is None:
                logger.warning("password_reset_token_rejected")
                raise InvalidResetTokenError()

            password_hash = await self.passwords.hash_password(new_password)
            await self.users.update_password(user_id, password_hash, conn=conn)
            await self.refresh_tokens.revoke_all(user_id, conn=conn)

        logger.info("password_reset_completed", user_id=user_id)

    async def change_password(
        self, user_id: int, current_password: str, new_password: str
    ) -> None:
        """Replace the password of an authenticated user.

        Raises:
            UserNotFoundError: If the user no longer exists (404)
            InvalidCredentialsError: If ``current_password`` is wrong (400)
        """
        async with transaction(self.pool) as conn:
            current_hash = await self.users.get_password_hash_for_update(user_id, conn)
            if current_hash is None:
                raise UserNotFoundError(status_code=404)

            if not await self.passwords.verify_password(current_password, current_hash):
                logger.warning("change_password_rejected", user_id=user_id)
                raise InvalidCredentialsError(
                    "Current password is incorrect", status_code=400
                )

            new_hash = await self.passwords.hash_password(new_password)
            await self.users.update_password(user_id, new_hash, conn=conn)
            await self.refresh_tokens.revoke_all(user_id, conn=conn)

        logger.info("password_changed", user_id=user_id)

    async def verify_email(self, token: str) -> UserProfile:
        """Mark the holder of ``token`` as verified.

        Raises:
            InvalidVerificationTokenError: If no user holds the token
        """
        user = await self.users.verify_email(token)
        if user is None:
            raise InvalidVerificationTokenError()
        return user
