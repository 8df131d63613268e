"""Authentication API endpoints."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ikiraha.api.dependencies import get_auth_service, get_current_user
from ikiraha.api.responses import envelope
from ikiraha.models.auth import (
    AuthResult,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LogoutRequest,
    ProfileResult,
    RefreshResult,
    RefreshTokenRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UpdateProfileRequest,
    VerifyEmailRequest,
)
from ikiraha.models.response import ApiResponse
from ikiraha.models.user import UserProfile
from ikiraha.services.auth_service import AuthService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[AuthResult],
)
async def register(
    request: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Create an account and return the profile with a token pair.

    Raises:
        ConflictError 409: If the email is already registered
    """
    result = await auth_service.register(
        email=request.email,
        password=request.password,
        first_name=request.first_name,
        last_name=request.last_name,
        phone_number=request.phone_number,
    )
    return envelope(
        "User registered successfully", result, status_code=status.HTTP_201_CREATED
    )


@router.post("/login", response_model=ApiResponse[AuthResult])
async def login(
    request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Login with email and password.

    Raises:
        InvalidCredentialsError 401: If credentials are invalid
    """
    result = await auth_service.login(request.email, request.password)
    return envelope("Login successful", result)


@router.post("/refresh-token", response_model=ApiResponse[RefreshResult])
async def refresh_token(
    request: RefreshTokenRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Exchange a refresh token for a new access token.

    Raises:
        InvalidRefreshTokenError 401: If the refresh token is invalid, expired or revoked
    """
    result = await auth_service.refresh(request.refresh_token)
    return envelope("Token refreshed successfully", result)


@router.post("/logout", response_model=ApiResponse[None])
async def logout(
    request: Optional[LogoutRequest] = None,
    current_user: UserProfile = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Revoke the supplied refresh token, if any."""
    await auth_service.logout(request.refresh_token if request else None)
    logger.info("user_logged_out", user_id=current_user.id)
    return envelope("Logout successful")


@router.get("/profile", response_model=ApiResponse[ProfileResult])
async def get_profile(
    current_user: UserProfile = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Get the current user's profile."""
    user = await auth_service.get_profile(current_user.id)
    return envelope("Profile retrieved successfully", ProfileResult(user=user))


@router.put("/profile", response_model=ApiResponse[ProfileResult])
async def update_profile(
    request: UpdateProfileRequest,
    current_user: UserProfile = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Update profile fields; at least one must be supplied.

    Raises:
        ValidationError 400: If no fields were supplied
    """
    user = await auth_service.update_profile(current_user.id, request.changes())
    return envelope("Profile updated successfully", ProfileResult(user=user))


@router.post("/forgot-password", response_model=ApiResponse[None])
async def forgot_password(
    request: ForgotPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Start a password reset. The response never reveals whether the email exists."""
    message = await auth_service.forgot_password(request.email)
    return envelope(message)


@router.post("/reset-password", response_model=ApiResponse[None])
async def reset_password(
    request: ResetPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Set a new password with a reset token.

    Raises:
        InvalidResetTokenError 400: If the token is unknown, used or expired
    """
    await auth_service.reset_password(request.token, request.password)
    return envelope("Password reset successful")


@router.put("/change-password", response_model=ApiResponse[None])
async def change_password(
    request: ChangePasswordRequest,
    current_user: UserProfile = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Change the current user's password.

    Raises:
        InvalidCredentialsError 400: If the current password is wrong
    """
    await auth_service.change_password(
        current_user.id, request.current_password, request.new_password
    )
    return envelope("Password changed successfully")


@router.post("/verify-email", response_model=ApiResponse[ProfileResult])
async def verify_email(
    request: VerifyEmailRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Confirm an email address with the token issued at registration."""
    user = await auth_service.verify_email(request.token)
    return envelope("Email verified successfully", ProfileResult(user=user))
