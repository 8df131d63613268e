"""Auth request and response models with validation."""

import re
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from ikiraha.models.base import CamelModel
from ikiraha.models.user import UserProfile

NAME_PATTERN = re.compile(r"^[a-zA-Z\s\-']+$")
PHONE_PATTERN = re.compile(r"^(?=.{7,20}$)\+?[0-9\s\-()]+$")
PASSWORD_STRENGTH_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


def normalize_email(value: str) -> str:
    return value.strip().lower()


def check_password_strength(value: str) -> str:
    """Enforce length and character-class rules for a new password."""
    if len(value) < 6:
        raise ValueError("Password must be at least 6 characters long")
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    if not PASSWORD_STRENGTH_PATTERN.match(value):
        raise ValueError(
            "Password must contain at least one uppercase letter, "
            "one lowercase letter, and one number"
        )
    return value


def check_name(value: Optional[str], label: str) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not 2 <= len(value) <= 50:
        raise ValueError(f"{label} must be between 2 and 50 characters")
    if not NAME_PATTERN.match(value):
        raise ValueError(
            f"{label} can only contain letters, spaces, hyphens, and apostrophes"
        )
    return value


def check_phone(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not PHONE_PATTERN.match(value):
        raise ValueError("Please provide a valid phone number")
    return value


class RegisterRequest(CamelModel):
    """New account details.

    Attributes:
        email: Account email (normalized to lower case)
        password: Min 6 chars with upper, lower and digit
        first_name: 2-50 letters, spaces, hyphens or apostrophes
        last_name: Same rules as first_name
        phone_number: Optional phone number
    """

    email: EmailStr
    password: str
    first_name: str
    last_name: str
    phone_number: Optional[str] = None

    @field_validator("email")
    @classmethod
    def email_normalized(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("password")
    @classmethod
    def password_strong(cls, v: str) -> str:
        return check_password_strength(v)

    @field_validator("first_name")
    @classmethod
    def first_name_valid(cls, v: str) -> str:
        return check_name(v, "First name")

    @field_validator("last_name")
    @classmethod
    def last_name_valid(cls, v: str) -> str:
        return check_name(v, "Last name")

    @field_validator("phone_number")
    @classmethod
    def phone_valid(cls, v: Optional[str]) -> Optional[str]:
        return check_phone(v)


class LoginRequest(CamelModel):
    """Login credentials for authentication."""

    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def email_normalized(cls, v: str) -> str:
        return normalize_email(v)


class RefreshTokenRequest(CamelModel):
    """Request to exchange a refresh token for a new access token."""

    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(CamelModel):
    refresh_token: Optional[str] = None


class ForgotPasswordRequest(CamelModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def email_normalized(cls, v: str) -> str:
        return normalize_email(v)


class ResetPasswordRequest(CamelModel):
    """Reset token from the out-of-band message plus the new password."""

    token: str = Field(..., min_length=1)
    password: str

    @field_validator("password")
    @classmethod
    def password_strong(cls, v: str) -> str:
        return check_password_strength(v)


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def new_password_strong(cls, v: str) -> str:
        return check_password_strength(v)


class UpdateProfileRequest(CamelModel):
    """Profile fields to change.

    All fields are optional; only provided fields are updated. An explicit
    null clears phone_number or profile_image_url; names cannot be cleared.
    """

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    profile_image_url: Optional[str] = Field(default=None, max_length=2048)

    @field_validator("first_name")
    @classmethod
    def first_name_valid(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            raise ValueError("First name cannot be empty")
        return check_name(v, "First name")

    @field_validator("last_name")
    @classmethod
    def last_name_valid(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            raise ValueError("Last name cannot be empty")
        return check_name(v, "Last name")

    @field_validator("phone_number")
    @classmethod
    def phone_valid(cls, v: Optional[str]) -> Optional[str]:
        return check_phone(v)

    def changes(self) -> dict:
        """Return the snake_case fields the client actually supplied."""
        return self.model_dump(exclude_unset=True)


class VerifyEmailRequest(CamelModel):
    token: str = Field(..., min_length=1)


class AuthResult(CamelModel):
    """User profile plus a freshly issued token pair (register/login)."""

    user: UserProfile
    access_token: str
    refresh_token: str


class RefreshResult(CamelModel):
    """New access token for a still-valid refresh token."""

    access_token: str
    user: UserProfile


class ProfileResult(CamelModel):
    user: UserProfile


class SweepResult(CamelModel):
    deleted: int
