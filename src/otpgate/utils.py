import math
import re
from datetime import UTC, datetime

WHITESPACE_RE = re.compile(r"\s")


def now() -> datetime:
    return datetime.now(UTC)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_ip(ip: str) -> str:
    """Canonical form of an IP address used as a lookup key."""
    return WHITESPACE_RE.sub("-", ip.strip().lower())


def seconds_between(start: datetime, end: datetime) -> int:
    """Whole seconds from start to end, rounded up, never negative."""
    return max(math.ceil((end - start).total_seconds()), 0)


def format_wait(seconds: int) -> str:
    minutes, secs = divmod(seconds, 60)
    return f"{minutes:02d} minute(s) and {secs:02d} second(s)"
