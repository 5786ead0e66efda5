from typing import Any

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from pydantic import BaseModel, Field


def set_custom_openapi(app: FastAPI) -> None:
    def custom_openapi() -> dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title="otpgate API",
            version="0.1.0",
            summary="Passwordless email one-time-code authentication",
            routes=app.routes,
        )

        openapi_schema.setdefault("components", {})["securitySchemes"] = {
            "BearerAuth": {
                "type": "http",
                "scheme": "bearer",
                "bearerFormat": "JWT",
                "description": "RS256 token returned by OTP validation",
            },
        }

        # Apply security globally (will be overridden for public endpoints)
        openapi_schema["security"] = [{"BearerAuth": []}]

        public_endpoints = {
            ("POST", "/api/v1/auth/otp/send"),
            ("POST", "/api/v1/auth/otp/validate"),
            ("POST", "/api/v1/auth/otp/resend"),
            ("GET", "/health"),
        }

        for path, path_item in openapi_schema["paths"].items():
            for method, operation in path_item.items():
                if (method.upper(), path) in public_endpoints:
                    operation["security"] = []

        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi  # type: ignore[method-assign]


class ErrorResponse(BaseModel):
    """Standard error response format."""

    message: str = Field(..., description="Human-readable error message")
    type: str = Field(..., description="Machine-readable error type")
    reason: str | None = Field(None, description="Stable machine-readable failure reason")
    attempts_left: int | None = Field(None, description="Validation attempts left before the IP is locked")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"message": "Invalid OTP", "type": "mismatch", "reason": "invalid_otp", "attempts_left": 3},
                {"message": "Authentication failed", "type": "authentication_error", "reason": "unauthorized"},
                {"message": "User is banned", "type": "access_denied", "reason": "user_account_banned"},
            ]
        }
    }
