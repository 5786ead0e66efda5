"""Tests for resolving bearer tokens to live sessions."""

import pytest

from otpgate.core.modules.session.models import AuthToken
from otpgate.core.modules.user.models import UserStatus
from otpgate.errors import AuthenticationError

EMAIL = "jane@example.com"


@pytest.fixture
def sign_in(core, security, login_flow):
    async def run(remember_me: bool = False):
        session_token, code = await login_flow(EMAIL, remember_me=remember_me)
        issued = await core.services.otp.validate_otp(security.ip, code, session_token)
        return issued.token, session_token

    return run


class TestAuthenticate:
    async def test_valid_token_resolves_context(self, core, sign_in):
        token, session_token = await sign_in()

        context = await core.services.session.authenticate(token)

        assert context.user.email == EMAIL
        assert context.session.session_token == session_token
        assert context.claims.session == session_token
        assert context.claims.user_id == str(context.user.id)

    async def test_session_expires_after_a_day(self, core, database, sign_in, clock):
        token, session_token = await sign_in()
        clock.advance(days=1, seconds=1)

        with pytest.raises(AuthenticationError):
            await core.services.session.authenticate(token)

        session = await database["sessions"].find_one({"session_token": session_token})
        assert session["expired"] is True

    async def test_remember_me_session_outlives_a_day(self, core, sign_in, clock):
        token, _ = await sign_in(remember_me=True)
        clock.advance(days=29)

        context = await core.services.session.authenticate(token)

        assert context.user.email == EMAIL

    async def test_expired_session_row_is_rejected(self, core, database, sign_in):
        token, session_token = await sign_in()
        await database["sessions"].update_one({"session_token": session_token}, {"$set": {"expired": True}})

        with pytest.raises(AuthenticationError):
            await core.services.session.authenticate(token)

    @pytest.mark.parametrize("status", [UserStatus.BANNED, UserStatus.DELETED])
    async def test_terminated_user_is_rejected(self, core, database, sign_in, status):
        token, _ = await sign_in()
        await database["users"].update_one({"email": EMAIL}, {"$set": {"status": status}})

        with pytest.raises(AuthenticationError):
            await core.services.session.authenticate(token)

    async def test_session_missing_from_user_is_rejected(self, core, database, sign_in):
        token, _ = await sign_in()
        await database["users"].update_one({"email": EMAIL}, {"$set": {"sessions": []}})

        with pytest.raises(AuthenticationError):
            await core.services.session.authenticate(token)

    async def test_deleted_user_record_is_rejected(self, core, database, sign_in):
        token, _ = await sign_in()
        database["users"].docs.clear()

        with pytest.raises(AuthenticationError):
            await core.services.session.authenticate(token)

    async def test_failures_share_one_message(self, core, database, sign_in):
        token, session_token = await sign_in()
        await database["sessions"].update_one({"session_token": session_token}, {"$set": {"expired": True}})

        with pytest.raises(AuthenticationError) as missing_session:
            await core.services.session.authenticate(token)
        with pytest.raises(AuthenticationError) as bad_token:
            await core.services.session.authenticate("not-a-token")

        assert str(missing_session.value) == str(bad_token.value) == "Authentication failed"


class TestEnsureAuthenticated:
    async def test_missing_token_is_rejected(self, core):
        with pytest.raises(AuthenticationError):
            await core.services.access.ensure_authenticated(None)

    async def test_returns_context(self, core, sign_in):
        token, _ = await sign_in()

        context = await core.services.access.ensure_authenticated(AuthToken(token))

        assert context.user.status == UserStatus.ACTIVE
