"""OTP challenge models."""

from pydantic import BaseModel, field_validator

from otpgate.core.db import TimestampedModel
from otpgate.utils import normalize_ip


class SecurityFingerprint(BaseModel):
    """Client context captured when a code is requested."""

    ip: str
    platform: str = "unknown"
    os: str = "unknown"
    device: str = "unknown"
    location: str = "unknown"

    @field_validator("ip")
    @classmethod
    def normalize(cls, value: str) -> str:
        return normalize_ip(value)


class Otp(TimestampedModel):
    """One emailed code awaiting validation.

    Indexed on (otp, session_token), (email, expired), and session_token - unique.
    Rows are never deleted; ``expired`` and ``used`` record their fate.
    """

    email: str
    otp: str
    session_token: str
    remember_me: bool = False
    security: SecurityFingerprint
    push_token: str | None = None
    expired: bool = False
    used: bool = False
