from typing import Annotated, cast

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from otpgate.app import App
from otpgate.config import Config
from otpgate.core.modules.session.models import AuthContext, AuthToken
from otpgate.errors import AuthenticationError, ValidationError

logger = structlog.get_logger(__name__)

# Security schemes
bearer_scheme = HTTPBearer(auto_error=False)


async def get_app(request: Request) -> App:
    return cast(App, request.app.state.app)


async def get_client_ip(request: Request) -> str:
    """Caller IP used for lockout and fingerprinting."""
    config = cast(Config, request.app.state.config)
    if config.trust_forwarded_for:
        first_hop = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client is None or not request.client.host:
        logger.warning("client_ip_unavailable", path=request.url.path)
        raise ValidationError("Could not determine the client address", reason="client_ip_unavailable")
    return request.client.host


async def get_auth_context(
    request: Request,
    app: Annotated[App, Depends(get_app)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)] = None,
) -> AuthContext:
    """Validate the Authorization Bearer token against its session."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError
    auth = await app.authenticate(AuthToken(credentials.credentials))
    request.state.auth = auth
    return auth


# Type aliases for dependencies
AppDep = Annotated[App, Depends(get_app)]
ClientIpDep = Annotated[str, Depends(get_client_ip)]
AuthDep = Annotated[AuthContext, Depends(get_auth_context)]
