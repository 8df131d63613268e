"""Models package exports."""

from ikiraha.models.auth import AuthResult, ProfileResult, RefreshResult
from ikiraha.models.response import ApiResponse, FieldError
from ikiraha.models.user import RefreshToken, UserProfile

__all__ = [
    "ApiResponse",
    "AuthResult",
    "FieldError",
    "ProfileResult",
    "RefreshResult",
    "RefreshToken",
    "UserProfile",
]
