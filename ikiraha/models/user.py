"""User and refresh-token models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ikiraha.models.base import CamelModel


class UserProfile(CamelModel):
    """A registered user as exposed by the API (never carries the password hash)."""

    id: int
    email: str
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    profile_image_url: Optional[str] = None
    is_email_verified: bool = False
    is_admin: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None


class RefreshToken(BaseModel):
    """A ledger row for an issued refresh token."""

    id: int
    user_id: int
    token_hash: str
    expires_at: datetime
    created_at: datetime
