from abc import ABC


class UserError(ABC, Exception):
    """Base class for user-related errors.

    All errors that inherit from UserError will have their messages
    displayed to the user. These errors should not contain any
    sensitive information.

    ``reason`` is a stable machine-readable code for clients, and
    ``attempts_left`` is set on the OTP validation path only.
    """

    def __init__(self, message: str, reason: str | None = None, attempts_left: int | None = None) -> None:
        super().__init__(message)
        self.reason = reason
        self.attempts_left = attempts_left


class NotFoundError(UserError):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str = "Document not found", reason: str | None = None, attempts_left: int | None = None) -> None:
        super().__init__(message, reason, attempts_left)


class AuthenticationError(UserError):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message, reason="unauthorized")


class AccessDeniedError(UserError):
    """Raised when the account is not allowed to authenticate (banned or deleted)."""


class ValidationError(UserError):
    """Raised when user input fails validation."""


class ConflictError(UserError):
    """Raised when the request conflicts with the current state (user exists, OTP already used)."""


class ExpiredError(UserError):
    """Raised when an OTP or session is past its validity window."""


class MismatchError(UserError):
    """Raised when a submitted code or fingerprint does not match the stored challenge."""


class RateLimitedError(UserError):
    """Raised when the caller's IP is under an active lockout."""


class CooldownError(UserError):
    """Raised when a new code is requested before the cooldown has elapsed."""

    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message, reason="otp_cooldown")
        self.retry_after = retry_after


class DeliveryFailureError(Exception):
    """Raised when the mail transport refused or failed to send a message.

    Not a UserError: the details are logged, the client gets a generic message.
    The OTP stays persisted, so resending remains possible.
    """
