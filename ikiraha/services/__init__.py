"""Services package exports."""

from ikiraha.services.auth_service import AuthService
from ikiraha.services.logging_service import configure_logging, get_logger
from ikiraha.services.password_service import PasswordService
from ikiraha.services.refresh_token_service import RefreshTokenService
from ikiraha.services.token_service import TokenService
from ikiraha.services.user_service import UserService

__all__ = [
    "AuthService",
    "PasswordService",
    "RefreshTokenService",
    "TokenService",
    "UserService",
    "configure_logging",
    "get_logger",
]
