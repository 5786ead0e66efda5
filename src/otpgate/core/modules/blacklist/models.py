"""Per-IP lockout records."""

from datetime import datetime

from pydantic import BaseModel

from otpgate.core.db import TimestampedModel


class Blacklist(TimestampedModel):
    """Failed-attempt counter and suspension window for one IP address.

    Indexed on ip_address - unique. ``is_blocked`` is only ever set together
    with a ``blocked_until`` in the future; it is cleared lazily on the first
    read after that moment passes.
    """

    ip_address: str
    attempts: int = 0
    blocked_until: datetime | None = None
    is_blocked: bool = False
    is_permanently_blocked: bool = False  # Reserved, set by operators only


class LockoutStatus(BaseModel):
    """Outcome of a lockout check for the caller's IP."""

    blocked: bool
    attempts: int
    blocked_until: datetime | None = None
    max_attempts: int

    @property
    def attempts_left(self) -> int:
        return max(self.max_attempts - self.attempts, 0)
