"""Tests for RS256 bearer token signing and verification."""

from datetime import UTC, datetime, timedelta

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwt

from otpgate.core.modules.session.models import TokenClaims
from otpgate.core.modules.session.tokens import TokenSigner
from otpgate.core.modules.user.models import UserRole
from otpgate.errors import AuthenticationError

ISSUED_AT = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def signer(rsa_keys):
    private_pem, public_pem = rsa_keys
    return TokenSigner(private_pem, public_pem)


@pytest.fixture
def claims():
    return TokenClaims(
        user_id="6f1c2a4e-3b0d-4c1e-9a57-0d2f5b8e7c31", session="abc", email="jane@example.com", role=UserRole.STUDENT
    )


class TestTokenSigner:
    def test_round_trip_claims(self, signer, claims):
        token = signer.issue(claims, issued_at=ISSUED_AT, expires_at=ISSUED_AT + timedelta(days=1))

        decoded = signer.verify(token)

        assert decoded.user_id == claims.user_id
        assert decoded.session == "abc"
        assert decoded.email == "jane@example.com"
        assert decoded.role == UserRole.STUDENT
        assert decoded.iat == int(ISSUED_AT.timestamp())
        assert decoded.exp == int((ISSUED_AT + timedelta(days=1)).timestamp())

    def test_header_declares_rs256(self, signer, claims):
        token = signer.issue(claims, issued_at=ISSUED_AT, expires_at=ISSUED_AT + timedelta(days=1))

        assert jwt.get_unverified_header(token)["alg"] == "RS256"

    def test_tampered_payload_is_rejected(self, signer, claims):
        token = signer.issue(claims, issued_at=ISSUED_AT, expires_at=ISSUED_AT + timedelta(days=1))
        header, payload, signature = token.split(".")
        forged = signer.issue(
            claims.model_copy(update={"role": UserRole.ADMIN}), issued_at=ISSUED_AT, expires_at=ISSUED_AT + timedelta(days=1)
        )

        with pytest.raises(AuthenticationError):
            signer.verify(f"{header}.{forged.split('.')[1]}.{signature}")

    def test_hs256_token_is_rejected(self, signer, claims):
        payload = claims.model_dump(mode="json") | {"iat": ISSUED_AT, "exp": ISSUED_AT + timedelta(days=1)}
        token = jwt.encode(payload, "shared-secret", algorithm="HS256")

        with pytest.raises(AuthenticationError):
            signer.verify(token)

    def test_token_from_other_key_is_rejected(self, signer, claims):
        other_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        other_pem = other_key.private_bytes(
            serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, serialization.NoEncryption()
        ).decode()
        payload = claims.model_dump(mode="json") | {"iat": ISSUED_AT, "exp": ISSUED_AT + timedelta(days=1)}
        token = jwt.encode(payload, other_pem, algorithm="RS256")

        with pytest.raises(AuthenticationError):
            signer.verify(token)

    def test_missing_expiry_is_rejected(self, signer, rsa_keys, claims):
        private_pem, _ = rsa_keys
        payload = claims.model_dump(mode="json") | {"iat": ISSUED_AT}
        token = jwt.encode(payload, private_pem, algorithm="RS256")

        with pytest.raises(AuthenticationError):
            signer.verify(token)

    def test_garbage_is_rejected(self, signer):
        with pytest.raises(AuthenticationError):
            signer.verify("not-a-token")
