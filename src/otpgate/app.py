from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from otpgate.config import Config
from otpgate.core.core import Core
from otpgate.core.modules.notification.models import AuthNotification
from otpgate.core.modules.otp.models import SecurityFingerprint
from otpgate.core.modules.session.models import AuthContext, AuthToken, IssuedToken
from otpgate.core.modules.user.models import UserRole, UserView
from otpgate.core.pagination import PaginationResult


class App:
    """Facade for all application operations, authenticates callers before delegating to Core."""

    def __init__(self, config: Config, core: Core | None = None) -> None:
        self._core = core or Core(config)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    # === OTP flow (public) ===
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
        """Email a new code, return the session token the client echoes back."""
        return await self._core.services.otp.send_otp(email, is_signup, security, name, role, remember_me, push_token)

    async def validate_otp(self, ip: str, otp: str, session_token: str) -> IssuedToken:
        """Exchange a code for a bearer token."""
        return await self._core.services.otp.validate_otp(ip, otp, session_token)

    async def resend_otp(self, session_token: str, ip: str) -> None:
        """Rotate and re-send the code of an outstanding challenge."""
        await self._core.services.otp.resend_otp(session_token, ip)

    # === Protected ===
    async def authenticate(self, auth_token: AuthToken | None) -> AuthContext:
        """Resolve a bearer token to the caller's identity."""
        return await self._core.services.access.ensure_authenticated(auth_token)

    async def get_current_user(self, auth: AuthContext) -> UserView:
        """Get current authenticated user profile."""
        return UserView.from_domain(auth.user)

    async def get_notifications(self, auth: AuthContext, limit: int = 50, offset: int = 0) -> PaginationResult[AuthNotification]:
        """Get paginated auth notifications of the current user."""
        return await self._core.services.notification.get_user_notifications(auth.user.id, limit, offset)
