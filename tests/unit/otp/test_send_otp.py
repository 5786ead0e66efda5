"""Tests for OTP issuance (signup and login)."""

import pytest

from otpgate.core.modules.otp.service import CODE_ALPHABET, CODE_LENGTH
from otpgate.core.modules.user.models import UserRole, UserStatus
from otpgate.errors import (
    AccessDeniedError,
    ConflictError,
    CooldownError,
    DeliveryFailureError,
    RateLimitedError,
    ValidationError,
)

EMAIL = "jane@example.com"


class TestSignup:
    async def test_creates_pending_user_and_otp(self, core, database, security, outbox):
        session_token = await core.services.otp.send_otp(EMAIL, True, security, name="Jane", role=UserRole.TEACHER)

        user = await core.services.user.get_user_by_email(EMAIL)
        assert user is not None
        assert user.status == UserStatus.PENDING
        assert user.role == UserRole.TEACHER
        assert user.name == "Jane"
        assert user.avatar.url.startswith("https://ui-avatars.com/api/?name=Jane")

        otp = await database["otps"].find_one({"session_token": session_token})
        assert otp["email"] == EMAIL
        assert otp["expired"] is False
        assert otp["used"] is False
        assert otp["security"]["ip"] == security.ip
        assert len(otp["otp"]) == CODE_LENGTH
        assert set(otp["otp"]) <= set(CODE_ALPHABET)

        assert outbox.last_code(EMAIL) == otp["otp"]
        assert outbox.last_to(EMAIL)["Subject"] == "Acme - Your OTP for authentication"

    async def test_email_is_normalized(self, core, security):
        await core.services.otp.send_otp("  Jane@Example.COM ", True, security, name="Jane")

        assert await core.services.user.get_user_by_email(EMAIL) is not None

    async def test_signup_creates_welcome_notification(self, core, database, security):
        await core.services.otp.send_otp(EMAIL, True, security, name="Jane")

        user = await core.services.user.get_user_by_email(EMAIL)
        notifications = await core.services.notification.get_user_notifications(user.id)
        assert notifications.total == 1
        assert notifications.items[0].title == "Welcome to Acme"

    async def test_signup_for_existing_user_conflicts(self, core, security, clock):
        await core.services.otp.send_otp(EMAIL, True, security, name="Jane")
        clock.advance(minutes=5)

        with pytest.raises(ConflictError) as exc_info:
            await core.services.otp.send_otp(EMAIL, True, security, name="Jane")

        assert exc_info.value.reason == "user_already_exists"

    async def test_user_stays_pending_without_validation(self, core, security):
        await core.services.otp.send_otp(EMAIL, True, security)

        user = await core.services.user.get_user_by_email(EMAIL)
        assert user.status == UserStatus.PENDING

    async def test_admin_role_cannot_be_requested(self, core, database, security, outbox):
        with pytest.raises(ValidationError) as exc_info:
            await core.services.otp.send_otp(EMAIL, True, security, name="Mallory", role=UserRole.ADMIN)

        assert exc_info.value.reason == "role_not_allowed"
        assert await core.services.user.get_user_by_email(EMAIL) is None
        assert await database["otps"].count_documents({}) == 0
        assert outbox.messages == []

    @pytest.mark.parametrize("role", [UserRole.USER, UserRole.PARENT, UserRole.STUDENT, UserRole.TEACHER])
    async def test_non_privileged_roles_are_accepted(self, core, security, role):
        await core.services.otp.send_otp(EMAIL, True, security, role=role)

        user = await core.services.user.get_user_by_email(EMAIL)
        assert user.role == role


class TestLogin:
    async def test_login_for_unknown_user_conflicts(self, core, database, security, outbox):
        with pytest.raises(ConflictError) as exc_info:
            await core.services.otp.send_otp(EMAIL, False, security)

        assert exc_info.value.reason == "user_not_found"
        assert await database["otps"].count_documents({}) == 0
        assert outbox.messages == []

    @pytest.mark.parametrize(
        ("status", "reason"),
        [(UserStatus.BANNED, "user_account_banned"), (UserStatus.DELETED, "user_account_deleted")],
    )
    async def test_terminated_user_is_denied(self, core, database, security, status, reason):
        await core.services.otp.send_otp(EMAIL, True, security)
        await database["users"].update_one({"email": EMAIL}, {"$set": {"status": status}})

        with pytest.raises(AccessDeniedError) as exc_info:
            await core.services.otp.send_otp(EMAIL, False, security)

        assert exc_info.value.reason == reason


class TestCooldown:
    async def test_wait_shrinks_until_cooldown_elapses(self, core, security, clock):
        await core.services.otp.send_otp(EMAIL, True, security)
        clock.advance(seconds=20)

        with pytest.raises(CooldownError) as exc_info:
            await core.services.otp.send_otp(EMAIL, False, security)

        assert exc_info.value.retry_after == 40
        assert "00 minute(s) and 40 second(s)" in str(exc_info.value)

        clock.advance(seconds=25)
        with pytest.raises(CooldownError) as exc_info:
            await core.services.otp.send_otp(EMAIL, False, security)
        assert exc_info.value.retry_after == 15

        clock.advance(seconds=14, microseconds=500000)
        with pytest.raises(CooldownError) as exc_info:
            await core.services.otp.send_otp(EMAIL, False, security)
        assert exc_info.value.retry_after == 1

        clock.advance(microseconds=500000)
        assert await core.services.otp.send_otp(EMAIL, False, security)

    async def test_request_after_cooldown_supersedes_previous(self, core, database, security, clock):
        first = await core.services.otp.send_otp(EMAIL, True, security)
        clock.advance(seconds=60)

        second = await core.services.otp.send_otp(EMAIL, False, security)

        assert first != second
        assert (await database["otps"].find_one({"session_token": first}))["expired"] is True
        assert (await database["otps"].find_one({"session_token": second}))["expired"] is False
        assert await database["otps"].count_documents({"email": EMAIL, "expired": False}) == 1


class TestGuards:
    async def test_locked_ip_cannot_request(self, core, database, security, outbox):
        for _ in range(5):
            await core.services.blacklist.record_attempt(security.ip)
        with pytest.raises(RateLimitedError):
            await core.services.blacklist.record_attempt(security.ip)

        with pytest.raises(RateLimitedError) as exc_info:
            await core.services.otp.send_otp(EMAIL, True, security)

        assert exc_info.value.reason == "max_attempts_exceeded"
        assert await core.services.user.get_user_by_email(EMAIL) is None
        assert outbox.messages == []

    async def test_delivery_failure_keeps_otp(self, core, database, security, outbox):
        outbox.fail = True

        with pytest.raises(DeliveryFailureError):
            await core.services.otp.send_otp(EMAIL, True, security)

        assert await database["otps"].count_documents({"email": EMAIL, "expired": False}) == 1
