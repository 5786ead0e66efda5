"""Shared pytest fixtures."""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from email.message import EmailMessage
from typing import Any

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

# Core must be imported before any service module
from otpgate.app import App
from otpgate.config import Config
from otpgate.core.core import Core
from otpgate.core.modules.otp.models import SecurityFingerprint

from fakes import FakeDatabase

CLIENT_IP = "203.0.113.7"

# Every module that binds `now` at import time
CLOCK_TARGETS = [
    "otpgate.core.db",
    "otpgate.core.modules.user.models",
    "otpgate.core.modules.user.service",
    "otpgate.core.modules.blacklist.service",
    "otpgate.core.modules.otp.service",
    "otpgate.core.modules.session.service",
]


class Clock:
    """Controllable replacement for otpgate.utils.now."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> datetime:
        self.current += timedelta(**delta)
        return self.current


class Outbox:
    """Captures outgoing mail instead of talking to SMTP."""

    def __init__(self) -> None:
        self.messages: list[EmailMessage] = []
        self.fail = False

    async def send(self, _config: Config, message: EmailMessage) -> tuple[bool, str | None]:
        if self.fail:
            return False, "relay refused"
        self.messages.append(message)
        return True, None

    def last_to(self, address: str) -> EmailMessage:
        return [m for m in self.messages if m["To"] == address][-1]

    def last_code(self, address: str) -> str:
        body = self.last_to(address).get_content()
        return body.split("Your one time login code is: ", 1)[1].split()[0]


@pytest.fixture(scope="session")
def rsa_keys() -> tuple[str, str]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, serialization.NoEncryption()
    ).decode()
    public_pem = key.public_key().public_bytes(
        serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode()
    return private_pem, public_pem


@pytest.fixture
def config(rsa_keys: tuple[str, str]) -> Config:
    private_pem, public_pem = rsa_keys
    return Config(
        _env_file=None,  # type: ignore[call-arg]
        database_url="mongodb://localhost:27017/otpgate_test",
        jwt_private_key=private_pem,
        jwt_public_key=public_pem,
        product_name="Acme",
    )


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> Clock:
    clock = Clock(datetime(2025, 3, 1, 12, 0, 0, tzinfo=UTC))
    for target in CLOCK_TARGETS:
        monkeypatch.setattr(f"{target}.now", clock)
    return clock


@pytest.fixture
def outbox(monkeypatch: pytest.MonkeyPatch) -> Outbox:
    outbox = Outbox()
    monkeypatch.setattr("otpgate.core.modules.mail.service.send_email", outbox.send)
    return outbox


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
async def core(config: Config, database: FakeDatabase, clock: Clock, outbox: Outbox) -> AsyncGenerator[Core]:
    core = Core(config, database=database)  # type: ignore[arg-type]
    async with core.lifespan():
        yield core


@pytest.fixture
def app(config: Config, core: Core) -> App:
    return App(config, core=core)


@pytest.fixture
def security() -> SecurityFingerprint:
    return SecurityFingerprint(ip=CLIENT_IP, platform="web", os="linux", device="laptop", location="Berlin")


@pytest.fixture
def login_flow(core: Core, outbox: Outbox, security: SecurityFingerprint) -> Any:
    """Run signup or login up to the emailed code, return (session_token, code)."""

    async def run(email: str, is_signup: bool = True, remember_me: bool = False, name: str = "Jane") -> tuple[str, str]:
        session_token = await core.services.otp.send_otp(email, is_signup, security, name=name, remember_me=remember_me)
        return session_token, outbox.last_code(email)

    return run
