from datetime import timedelta
from typing import Any, NoReturn
from uuid import UUID

import structlog
from pymongo.asynchronous.database import AsyncDatabase

from otpgate.core.core import Service
from otpgate.core.modules.otp.models import Otp
from otpgate.core.modules.session.models import AuthContext, IssuedToken, Session, TokenClaims
from otpgate.core.modules.session.tokens import TokenSigner
from otpgate.core.modules.user.models import User
from otpgate.errors import AuthenticationError
from otpgate.utils import now

logger = structlog.get_logger(__name__)


class SessionService(Service):
    """Mints bearer tokens backed by session rows and verifies them on every request."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("sessions")
        self._signer: TokenSigner | None = None

    async def on_start(self) -> None:
        """Create indexes on startup."""
        await self._collection.create_index([("session_token", 1)], unique=True)
        await self._collection.create_index([("user_id", 1), ("session_token", 1), ("expired", 1)])

    @property
    def signer(self) -> TokenSigner:
        if self._signer is None:
            self._signer = TokenSigner(self.config.jwt_private_key, self.config.jwt_public_key)
        return self._signer

    async def create_session(self, user: User, otp: Otp) -> IssuedToken:
        """Persist a session for a validated OTP and sign its token.

        The session row is written before the token exists, so a token can
        never refer to a session that was not stored.
        """
        issued_at = now()
        lifetime = self.config.remember_me_session_days if otp.remember_me else self.config.session_days
        session_expiry = issued_at + timedelta(days=lifetime)

        session = Session(
            user_id=user.id,
            session_token=otp.session_token,
            session_expiry=session_expiry,
            security=otp.security,
            push_token=otp.push_token,
        )
        await self._collection.insert_one(session.to_mongo())
        await self.core.services.user.add_session(user.id, session.id)

        claims = TokenClaims(user_id=str(user.id), session=otp.session_token, email=otp.email, role=user.role)
        token = self.signer.issue(claims, issued_at=issued_at, expires_at=session_expiry)
        logger.info("session_created", user_id=user.id, session_id=session.id, remember_me=otp.remember_me)
        return IssuedToken(token=token, session_expiry=session_expiry)

    async def authenticate(self, token: str) -> AuthContext:
        """Resolve a bearer token to its claims, session and user.

        Every failure raises the same AuthenticationError; the specific
        reason is only logged.
        """
        claims = self.signer.verify(token)
        try:
            user_id = UUID(claims.user_id)
        except ValueError:
            self._deny("malformed_user_id")

        doc = await self._collection.find_one({"user_id": user_id, "session_token": claims.session, "expired": False})
        if doc is None:
            self._deny("session_not_found", user_id=user_id)
        session = Session.model_validate(doc)

        timestamp = now()
        if timestamp > session.session_expiry:
            await self._collection.update_one({"_id": session.id}, {"$set": {"expired": True, "updated_at": timestamp}})
            logger.info("session_expired", session_id=session.id, user_id=user_id)
            self._deny("session_expired", user_id=user_id)

        if timestamp.timestamp() >= claims.exp:
            self._deny("token_expired", user_id=user_id)

        user = await self.core.services.user.get_user(user_id)
        if user is None:
            self._deny("user_not_found", user_id=user_id)
        if user.is_terminated:
            self._deny("user_terminated", user_id=user_id, status=user.status)
        if session.id not in user.sessions:
            self._deny("session_not_owned", user_id=user_id, session_id=session.id)
        # Redundant with the lookup filter, guards against that query ever being widened
        if session.user_id != user_id:
            self._deny("session_user_mismatch", user_id=user_id, session_id=session.id)

        return AuthContext(claims=claims, session=session, user=user)

    def _deny(self, reason: str, **context: Any) -> NoReturn:
        logger.info("authentication_denied", reason=reason, **context)
        raise AuthenticationError
