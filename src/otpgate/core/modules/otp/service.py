import secrets
import string
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

import structlog
from pymongo import ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase

from otpgate.core.core import Service
from otpgate.core.modules.blacklist.models import LockoutStatus
from otpgate.core.modules.otp.models import Otp, SecurityFingerprint
from otpgate.core.modules.session.models import IssuedToken
from otpgate.core.modules.user.models import User, UserRole
from otpgate.core.modules.user.validators import ensure_not_terminated, ensure_self_assignable_role
from otpgate.errors import ConflictError, CooldownError, DeliveryFailureError, ExpiredError, MismatchError, NotFoundError
from otpgate.utils import format_wait, normalize_email, normalize_ip, now, seconds_between

logger = structlog.get_logger(__name__)

CODE_LENGTH = 9
CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_code() -> str:
    """Random uppercase alphanumeric one-time code."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def generate_session_token() -> str:
    return secrets.token_urlsafe(32)


class OtpService(Service):
    """Issues, rotates and validates emailed one-time codes."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("otps")

    async def on_start(self) -> None:
        """Create indexes on startup."""
        await self._collection.create_index([("otp", 1), ("session_token", 1)])
        await self._collection.create_index([("email", 1), ("expired", 1)])
        await self._collection.create_index([("session_token", 1)], unique=True)

    async def send_otp(
        self,
        email: str,
        is_signup: bool,
        security: SecurityFingerprint,
        name: str | None = None,
        role: UserRole = UserRole.USER,
        remember_me: bool = False,
        push_token: str | None = None,
    ) -> str:
        """Issue a new code for the email and return its session token.

        Signup state is established here: a signup creates the user in
        pending status even if the code is never validated.
        """
        await self.core.services.blacklist.ensure_not_blocked(security.ip)

        email = normalize_email(email)
        user = await self.core.services.user.get_user_by_email(email)

        if is_signup and user is not None:
            raise ConflictError("User already exists, please login to continue", reason="user_already_exists")
        if not is_signup and user is None:
            raise ConflictError("User not found, please signup to continue", reason="user_not_found")

        if user is None:
            ensure_self_assignable_role(role)
            user = await self.core.services.user.create_pending_user(email, name, role)
            await self.core.services.notification.notify_welcome(user.id)
        else:
            ensure_not_terminated(user)

        timestamp = now()
        active = await self._collection.find_one({"email": email, "expired": False}, sort=[("updated_at", -1)])
        if active is not None:
            self._ensure_cooldown_elapsed(active["updated_at"], self.config.otp_issue_cooldown_seconds, timestamp)

        await self._expire_active(email)

        otp = Otp(
            email=email,
            otp=generate_code(),
            session_token=generate_session_token(),
            remember_me=remember_me,
            security=security,
            push_token=push_token,
        )
        await self._collection.insert_one(otp.to_mongo())
        # Repairs interleaving with a concurrent issuance for the same email
        await self._expire_active(email, keep_id=otp.id, created_before=otp.created_at)
        logger.info("otp_issued", user_id=user.id, ip=security.ip)

        if not await self.core.services.mail.send_otp_code(email, user.name, otp.otp):
            raise DeliveryFailureError(f"Failed to deliver OTP for user {user.id}")

        return otp.session_token

    async def validate_otp(self, ip: str, code: str, session_token: str) -> IssuedToken:
        """Exchange a code for a bearer token and a new session.

        Every call counts against the caller's IP, whatever its outcome.
        """
        lockout = await self.core.services.blacklist.record_attempt(ip)

        doc = await self._collection.find_one({"otp": code, "session_token": session_token})
        if doc is None:
            raise MismatchError("Invalid OTP", reason="invalid_otp", attempts_left=lockout.attempts_left)
        otp = Otp.model_validate(doc)

        if otp.used:
            raise ConflictError("OTP already used", reason="otp_already_used", attempts_left=lockout.attempts_left)
        if otp.expired:
            raise ExpiredError("OTP expired", reason="otp_expired", attempts_left=lockout.attempts_left)

        timestamp = now()
        if timestamp > otp.updated_at + timedelta(seconds=self.config.otp_validity_seconds):
            await self._collection.update_one({"_id": otp.id}, {"$set": {"expired": True, "updated_at": timestamp}})
            raise ExpiredError("OTP expired", reason="otp_expired", attempts_left=lockout.attempts_left)

        if otp.security.ip != normalize_ip(ip):
            raise MismatchError(
                "IP address mismatch, try again from the device that requested the code",
                reason="ip_mismatch",
                attempts_left=lockout.attempts_left,
            )

        user = await self.core.services.user.get_user_by_email(otp.email)
        if user is None:
            logger.error("otp_owner_missing", otp_id=otp.id)
            raise NotFoundError("User not found", reason="user_not_found", attempts_left=lockout.attempts_left)

        await self._consume(otp, lockout)
        issued = await self.core.services.session.create_session(user, otp)
        await self.core.services.user.activate(user.id)
        await self.core.services.blacklist.reset(ip)
        logger.info("otp_validated", user_id=user.id, ip=otp.security.ip)

        await self._announce_login(user, otp)
        return issued

    async def resend_otp(self, session_token: str, ip: str) -> None:
        """Rotate the code of an outstanding challenge in place and send it again."""
        doc = await self._collection.find_one({"session_token": session_token})
        if doc is None:
            raise NotFoundError("Invalid session token", reason="invalid_session_token")
        otp = Otp.model_validate(doc)

        if otp.used:
            raise ConflictError("OTP already used", reason="otp_already_used")

        timestamp = now()
        self._ensure_cooldown_elapsed(otp.updated_at, self.config.otp_resend_cooldown_seconds, timestamp)

        await self.core.services.blacklist.ensure_not_blocked(ip)

        code = generate_code()
        result = await self._collection.update_one(
            {"_id": otp.id, "used": False},
            {"$set": {"otp": code, "expired": False, "updated_at": timestamp}},
        )
        if result.matched_count == 0:
            raise ConflictError("OTP already used", reason="otp_already_used")
        # The rotated challenge becomes the only active one for the email
        await self._expire_active(otp.email, keep_id=otp.id)
        logger.info("otp_resent", otp_id=otp.id, ip=normalize_ip(ip))

        user = await self.core.services.user.get_user_by_email(otp.email)
        name = user.name if user else ""
        if not await self.core.services.mail.send_otp_code(otp.email, name, code):
            raise DeliveryFailureError(f"Failed to deliver rotated OTP {otp.id}")

    async def _consume(self, otp: Otp, lockout: LockoutStatus) -> None:
        """Mark the OTP used; only one concurrent validation can win."""
        doc = await self._collection.find_one_and_update(
            {"_id": otp.id, "used": False, "expired": False},
            {"$set": {"used": True, "expired": True, "updated_at": now()}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            raise ConflictError("OTP already used", reason="otp_already_used", attempts_left=lockout.attempts_left)

    async def _expire_active(self, email: str, keep_id: UUID | None = None, created_before: datetime | None = None) -> None:
        """Expire active OTPs for the email, except keep_id.

        With created_before, only challenges created up to that moment are
        expired, so of two interleaved issuances the newer one survives.
        """
        query: dict[str, Any] = {"email": email, "expired": False}
        if keep_id is not None:
            query["_id"] = {"$ne": keep_id}
        if created_before is not None:
            query["created_at"] = {"$lte": created_before}
        await self._collection.update_many(query, {"$set": {"expired": True}})

    async def _announce_login(self, user: User, otp: Otp) -> None:
        await self.core.services.notification.notify_new_login(user.id, otp.security.ip)
        if not await self.core.services.mail.send_login_alert(user.email, user.name, otp.security):
            logger.warning("login_alert_not_delivered", user_id=user.id)

    @staticmethod
    def _ensure_cooldown_elapsed(last_update: datetime, cooldown_seconds: int, timestamp: datetime) -> None:
        available_at = last_update + timedelta(seconds=cooldown_seconds)
        if timestamp < available_at:
            wait = seconds_between(timestamp, available_at)
            raise CooldownError(f"Please wait {format_wait(wait)} before requesting a new OTP", retry_after=wait)
