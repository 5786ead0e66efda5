"""Bearer token signing and verification (RS256 only)."""

from datetime import datetime

from jose import JWTError, jwt
from pydantic import ValidationError as PydanticValidationError

from otpgate.core.modules.session.models import AuthToken, TokenClaims
from otpgate.errors import AuthenticationError

ALGORITHM = "RS256"


class TokenSigner:
    """Signs with the private key, verifies with the public key.

    The accepted algorithm list is fixed; the token header never selects it.
    """

    def __init__(self, private_key: str, public_key: str) -> None:
        self._private_key = private_key
        self._public_key = public_key

    def issue(self, claims: TokenClaims, issued_at: datetime, expires_at: datetime) -> AuthToken:
        payload = claims.model_dump(mode="json", exclude={"iat", "exp"})
        payload["iat"] = issued_at
        payload["exp"] = expires_at
        return AuthToken(jwt.encode(payload, self._private_key, algorithm=ALGORITHM))

    def verify(self, token: str) -> TokenClaims:
        """Check the signature and decode the claims.

        Expiry is required but not enforced here: the guard compares ``exp``
        after loading the backing session, so an expired session row is
        still marked expired when its token is presented.

        Raises:
            AuthenticationError: If the signature, algorithm or claims are invalid
        """
        try:
            payload = jwt.decode(
                token,
                self._public_key,
                algorithms=[ALGORITHM],
                options={"verify_exp": False, "require_exp": True, "require_iat": True},
            )
            return TokenClaims.model_validate(payload)
        except (JWTError, PydanticValidationError) as e:
            raise AuthenticationError from e
