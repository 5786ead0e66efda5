import structlog
from fastapi import Request
from fastapi.responses import JSONResponse, Response

from otpgate.errors import (
    AccessDeniedError,
    AuthenticationError,
    ConflictError,
    CooldownError,
    ExpiredError,
    MismatchError,
    NotFoundError,
    RateLimitedError,
    UserError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

# Checked in order, first match wins
USER_ERROR_STATUS: list[tuple[type[UserError], int, str]] = [
    (AuthenticationError, 401, "authentication_error"),
    (AccessDeniedError, 403, "access_denied"),
    (NotFoundError, 404, "not_found"),
    (CooldownError, 429, "cooldown"),
    (RateLimitedError, 429, "rate_limited"),
    (ConflictError, 409, "conflict"),
    (ExpiredError, 410, "expired"),
    (MismatchError, 400, "mismatch"),
    (ValidationError, 400, "validation_error"),
]


def create_json_error_response(
    status_code: int,
    message: str,
    error_type: str | None = None,
    reason: str | None = None,
    attempts_left: int | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Create JSON error response with optional type for machine parsing."""
    content: dict[str, str | int] = {"message": message}
    if error_type:
        content["type"] = error_type
    if reason:
        content["reason"] = reason
    if attempts_left is not None:
        content["attempts_left"] = attempts_left
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def user_error_handler(request: Request, exc: Exception) -> Response:
    """Handle all UserError subclasses with appropriate status codes."""
    if not isinstance(exc, UserError):
        return await general_exception_handler(request, exc)

    # Default for any other UserError subclass
    status_code, error_type = 400, "bad_request"
    for error_class, code, name in USER_ERROR_STATUS:
        if isinstance(exc, error_class):
            status_code, error_type = code, name
            break

    headers = {"Retry-After": str(exc.retry_after)} if isinstance(exc, CooldownError) else None
    return create_json_error_response(
        status_code=status_code,
        message=str(exc),
        error_type=error_type,
        reason=exc.reason,
        attempts_left=exc.attempts_left,
        headers=headers,
    )


async def delivery_failure_handler(_: Request, exc: Exception) -> Response:
    """Handle mail delivery failures (502), the transport details stay in the log."""
    logger.error("delivery_failed", error=str(exc))
    return create_json_error_response(
        status_code=502,
        message="Failed to send the email, please try again later.",
        error_type="delivery_failure",
        reason="email_delivery_failed",
    )


async def general_exception_handler(_: Request, exc: Exception) -> Response:
    """Handle unexpected errors (500)."""
    logger.exception("unexpected_error", error=str(exc))
    return create_json_error_response(
        status_code=500, message="An unexpected error occurred.", error_type="internal_server_error"
    )
