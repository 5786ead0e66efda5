"""Session management models."""

from datetime import datetime
from typing import NewType
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from otpgate.core.db import TimestampedModel
from otpgate.core.modules.otp.models import SecurityFingerprint
from otpgate.core.modules.user.models import User, UserRole

AuthToken = NewType("AuthToken", str)


class Session(TimestampedModel):
    """Successful login backing a bearer token.

    Indexed on session_token - unique, and (user_id, session_token, expired).
    The session_token is the one embedded in the token's ``session`` claim.
    """

    user_id: UUID
    session_token: str
    session_expiry: datetime
    security: SecurityFingerprint
    push_token: str | None = None
    expired: bool = False


class TokenClaims(BaseModel):
    """Claims carried by a bearer token."""

    user_id: str
    session: str
    email: str
    role: UserRole
    iat: int = 0  # Set by the signer
    exp: int = 0  # Set by the signer

    model_config = ConfigDict(extra="ignore")


class IssuedToken(BaseModel):
    token: AuthToken
    session_expiry: datetime


class AuthContext(BaseModel):
    """Caller identity resolved by the access guard."""

    claims: TokenClaims
    session: Session
    user: User
