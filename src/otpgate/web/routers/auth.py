from datetime import datetime
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel, Field

from otpgate.core.modules.otp.models import SecurityFingerprint
from otpgate.core.modules.user.models import UserRole
from otpgate.web.deps import AppDep, ClientIpDep
from otpgate.web.openapi import ErrorResponse

router = APIRouter(tags=["auth"])


class SendOtpRequest(BaseModel):
    """Request a one-time code by email (signup or login)."""

    email: str = Field(
        ..., max_length=254, pattern=r"^\s*[^@\s]+@[^@\s]+\s*$", description="Email address the code is sent to"
    )
    is_signup: bool = Field(..., description="True to register a new account, false to log into an existing one")
    name: str | None = Field(None, max_length=100, description="Display name, used on signup only")
    role: UserRole = Field(UserRole.USER, description="Account role, used on signup only; admin cannot be requested")
    remember_me: bool = Field(False, description="Issue a long-lived session on validation")
    platform: str = Field("unknown", max_length=100, description="Client platform")
    os: str = Field("unknown", max_length=100, description="Client operating system")
    device: str = Field("unknown", max_length=100, description="Client device")
    location: str = Field("unknown", max_length=200, description="Approximate client location")
    push_token: str | None = Field(None, max_length=500, description="Push notification token of the device")


class SendOtpResponse(BaseModel):
    status: Literal["success"] = "success"
    message: str = Field(..., description="Human-readable result")
    session_token: str = Field(..., description="Opaque token to echo back on validate and resend")


class ValidateOtpRequest(BaseModel):
    """Exchange an emailed code for a bearer token."""

    otp: str = Field(..., min_length=1, max_length=32, description="The code from the email")
    session_token: str = Field(..., min_length=1, description="Session token returned when the code was sent")


class ValidateOtpResponse(BaseModel):
    status: Literal["success"] = "success"
    message: str = Field(..., description="Human-readable result")
    token: str = Field(..., description="RS256 bearer token for subsequent requests")
    session_expiry: datetime = Field(..., description="Absolute expiry of the session")


class ResendOtpRequest(BaseModel):
    session_token: str = Field(..., min_length=1, description="Session token of the outstanding challenge")


class ResendOtpResponse(BaseModel):
    status: Literal["success"] = "success"
    message: str = Field(..., description="Human-readable result")


@router.post(
    "/auth/otp/send",
    summary="Send one-time code",
    description="Create or look up the account and email it a fresh one-time code.",
    operation_id="sendOtp",
    responses={
        200: {"description": "Code sent"},
        403: {"model": ErrorResponse, "description": "Account banned or deleted"},
        409: {"model": ErrorResponse, "description": "Account already exists (signup) or does not exist (login)"},
        429: {"model": ErrorResponse, "description": "IP locked or cooldown not elapsed"},
        502: {"model": ErrorResponse, "description": "Email could not be delivered"},
    },
)
async def send_otp(request: SendOtpRequest, app: AppDep, client_ip: ClientIpDep) -> SendOtpResponse:
    security = SecurityFingerprint(
        ip=client_ip,
        platform=request.platform,
        os=request.os,
        device=request.device,
        location=request.location,
    )
    session_token = await app.send_otp(
        email=request.email,
        is_signup=request.is_signup,
        security=security,
        name=request.name,
        role=request.role,
        remember_me=request.remember_me,
        push_token=request.push_token,
    )
    return SendOtpResponse(message="OTP sent successfully", session_token=session_token)


@router.post(
    "/auth/otp/validate",
    summary="Validate one-time code",
    description="Validate the emailed code and receive a bearer token. Every call counts against the caller's IP.",
    operation_id="validateOtp",
    responses={
        200: {"description": "Code accepted"},
        400: {"model": ErrorResponse, "description": "Wrong code or IP mismatch"},
        409: {"model": ErrorResponse, "description": "Code already used"},
        410: {"model": ErrorResponse, "description": "Code expired"},
        429: {"model": ErrorResponse, "description": "Too many attempts from this IP"},
    },
)
async def validate_otp(request: ValidateOtpRequest, app: AppDep, client_ip: ClientIpDep) -> ValidateOtpResponse:
    issued = await app.validate_otp(client_ip, request.otp, request.session_token)
    return ValidateOtpResponse(
        message="OTP validated successfully", token=issued.token, session_expiry=issued.session_expiry
    )


@router.post(
    "/auth/otp/resend",
    summary="Resend one-time code",
    description="Rotate the code of an outstanding challenge and email it again.",
    operation_id="resendOtp",
    responses={
        200: {"description": "Code resent"},
        404: {"model": ErrorResponse, "description": "Unknown session token"},
        409: {"model": ErrorResponse, "description": "Code already used"},
        429: {"model": ErrorResponse, "description": "IP locked or cooldown not elapsed"},
        502: {"model": ErrorResponse, "description": "Email could not be delivered"},
    },
)
async def resend_otp(request: ResendOtpRequest, app: AppDep, client_ip: ClientIpDep) -> ResendOtpResponse:
    await app.resend_otp(request.session_token, client_ip)
    return ResendOtpResponse(message="OTP resent successfully")
