"""Signed JWT access and refresh tokens."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import uuid4

import jwt
import structlog

from ikiraha.config import Settings
from ikiraha.services.errors import InvalidTokenError

logger = structlog.get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class TokenService:
    """Issues and verifies HS256 tokens carrying ``{userId, email}`` claims.

    Stateless: the signing secret and lifetimes come from settings and
    nothing is persisted here.
    """

    def __init__(self, settings: Settings):
        self.secret = settings.jwt_secret
        self.algorithm = settings.jwt_algorithm
        self.access_lifetime = timedelta(minutes=settings.jwt_access_expires_minutes)
        self.refresh_lifetime = timedelta(days=settings.jwt_refresh_expires_days)

    def _issue(self, user_id: int, email: str, token_type: str, lifetime: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "userId": user_id,
            "email": email,
            "type": token_type,
            "jti": uuid4().hex,
            "iat": now,
            "exp": now + lifetime,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def issue_access_token(self, user_id: int, email: str) -> str:
        """Create a short-lived access token.

        Args:
            user_id: Numeric user id (``userId`` claim)
            email: User email (``email`` claim)

        Returns:
            Encoded JWT string
        """
        token = self._issue(user_id, email, ACCESS_TOKEN_TYPE, self.access_lifetime)
        logger.debug(
            "access_token_issued",
            user_id=user_id,
            expires_minutes=int(self.access_lifetime.total_seconds() // 60),
        )
        return token

    def issue_refresh_token(self, user_id: int, email: str) -> str:
        """Create a long-lived refresh token with the same claim shape."""
        return self._issue(user_id, email, REFRESH_TOKEN_TYPE, self.refresh_lifetime)

    def issue_token_pair(self, user_id: int, email: str) -> TokenPair:
        return TokenPair(
            access_token=self.issue_access_token(user_id, email),
            refresh_token=self.issue_refresh_token(user_id, email),
        )

    def verify(self, token: str, expected_type: Optional[str] = None) -> dict:
        """Decode and validate a token.

        Args:
            token: Encoded JWT string
            expected_type: ``"access"`` or ``"refresh"``; None accepts either

        Returns:
            Decoded claims with userId, email, type, jti, iat, exp

        Raises:
            InvalidTokenError: If the token is expired, tampered, malformed,
                lacks identity claims or has the wrong type
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidTokenError("Token has expired")
        except jwt.InvalidTokenError as e:
            logger.debug("token_rejected", reason=str(e))
            raise InvalidTokenError()

        user_id = payload.get("userId")
        if not isinstance(user_id, int) or isinstance(user_id, bool) or not payload.get("email"):
            raise InvalidTokenError("Invalid token payload")

        if expected_type is not None and payload.get("type") != expected_type:
            raise InvalidTokenError("Invalid token type")

        return payload
