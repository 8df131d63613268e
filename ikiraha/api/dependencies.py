"""FastAPI dependencies: service wiring and the authentication gate."""

from typing import Optional

import asyncpg
import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ikiraha.config import Settings, get_settings
from ikiraha.models.user import UserProfile
from ikiraha.services.auth_service import AuthService
from ikiraha.services.errors import (
    ForbiddenError,
    MissingTokenError,
    PersistenceError,
    ServiceError,
    UserNotFoundError,
)
from ikiraha.services.password_service import PasswordService
from ikiraha.services.refresh_token_service import RefreshTokenService
from ikiraha.services.token_service import ACCESS_TOKEN_TYPE, TokenService
from ikiraha.services.user_service import UserService

logger = structlog.get_logger(__name__)

# auto_error=False so a missing header surfaces as MissingTokenError
bearer_scheme = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------

def get_app_settings(request: Request) -> Settings:
    """Settings the application was built with."""
    return getattr(request.app.state, "settings", None) or get_settings()


def get_pool(request: Request) -> asyncpg.Pool:
    """Return the connection pool created in the application lifespan."""
    pool = getattr(request.app.state, "pool", None)
    if pool is None:
        raise PersistenceError("Database is not available")
    return pool


def get_token_service(settings: Settings = Depends(get_app_settings)) -> TokenService:
    return TokenService(settings)


def get_password_service(request: Request) -> PasswordService:
    """Shared hasher; created once per app so the dummy hash is computed once."""
    passwords = getattr(request.app.state, "passwords", None)
    if passwords is None:
        passwords = PasswordService(get_app_settings(request))
        request.app.state.passwords = passwords
    return passwords


def get_user_service(pool: asyncpg.Pool = Depends(get_pool)) -> UserService:
    return UserService(pool)


def get_refresh_token_service(
    pool: asyncpg.Pool = Depends(get_pool),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_app_settings),
) -> RefreshTokenService:
    return RefreshTokenService(pool, tokens, settings)


def get_auth_service(
    pool: asyncpg.Pool = Depends(get_pool),
    users: UserService = Depends(get_user_service),
    refresh_tokens: RefreshTokenService = Depends(get_refresh_token_service),
    tokens: TokenService = Depends(get_token_service),
    passwords: PasswordService = Depends(get_password_service),
    settings: Settings = Depends(get_app_settings),
) -> AuthService:
    return AuthService(pool, users, refresh_tokens, tokens, passwords, settings)


# ---------------------------------------------------------------------------
# Authentication gate
# ---------------------------------------------------------------------------

async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
    users: UserService = Depends(get_user_service),
) -> UserProfile:
    """Extract and validate the current user from a Bearer access token.

    Args:
        credentials: Bearer token from Authorization header

    Returns:
        Authenticated UserProfile, also stored on ``request.state.user``

    Raises:
        MissingTokenError: If no bearer token was sent (401)
        InvalidTokenError: If the token is invalid, expired or not an access token (403)
        UserNotFoundError: If the token's user no longer exists (401)
    """
    if credentials is None or not credentials.credentials:
        raise MissingTokenError()

    claims = tokens.verify(credentials.credentials, expected_type=ACCESS_TOKEN_TYPE)

    user = await users.get_by_id(claims["userId"])
    if user is None:
        logger.warning("authenticated_user_missing", user_id=claims["userId"])
        raise UserNotFoundError()

    request.state.user = user
    structlog.contextvars.bind_contextvars(user_id=user.id)
    return user


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
    users: UserService = Depends(get_user_service),
) -> Optional[UserProfile]:
    """Like ``get_current_user`` but any auth failure yields an anonymous request."""
    if credentials is None:
        return None
    try:
        return await get_current_user(request, credentials, tokens, users)
    except ServiceError as e:
        logger.debug("optional_auth_ignored", reason=e.message)
        return None


async def require_admin(
    current_user: UserProfile = Depends(get_current_user),
) -> UserProfile:
    """Require the current user to have admin privileges.

    Raises:
        ForbiddenError: If user is not an admin
    """
    if not current_user.is_admin:
        raise ForbiddenError("Admin access required")
    return current_user


async def require_email_verified(
    current_user: UserProfile = Depends(get_current_user),
) -> UserProfile:
    """Require the current user to have verified their email address.

    Raises:
        ForbiddenError: If the email is unverified
    """
    if not current_user.is_email_verified:
        raise ForbiddenError("Email verification required")
    return current_user
