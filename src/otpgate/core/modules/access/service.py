from otpgate.core.core import Service
from otpgate.core.modules.session.models import AuthContext, AuthToken
from otpgate.errors import AuthenticationError


class AccessService(Service):
    """Gate for protected operations."""

    async def ensure_authenticated(self, auth_token: AuthToken | None) -> AuthContext:
        """Resolve the bearer token to a live session, or raise AuthenticationError."""
        if not auth_token:
            raise AuthenticationError
        return await self.core.services.session.authenticate(auth_token)
