from pydantic import field_validator
from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    cors_origins: list[str] = []
    trust_forwarded_for: bool = False  # Take the client IP from the first X-Forwarded-For hop (behind a proxy only)

    # RS256 key pair in PEM format, provisioned externally
    jwt_private_key: str
    jwt_public_key: str
    jwt_algorithm: str = "RS256"

    # OTP challenge windows
    otp_issue_cooldown_seconds: int = 60
    otp_resend_cooldown_seconds: int = 180
    otp_validity_seconds: int = 300

    # Per-IP lockout
    lockout_max_attempts: int = 5
    lockout_duration_seconds: int = 24 * 60 * 60

    # Session lifetime
    session_days: int = 1
    remember_me_session_days: int = 30

    # Outbound mail
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = False  # Implicit TLS (port 465)
    smtp_start_tls: bool = True
    smtp_timeout: float = 10.0
    mail_from: str = "no-reply@localhost"
    mail_from_name: str = "otpgate"
    mail_dry_run: bool = False  # Log messages instead of sending them (development only)

    product_name: str = "otpgate"
    welcome_notification_icon_url: str | None = None
    login_notification_image_url: str | None = None

    model_config = {
        "env_file": [".env"],
        "env_prefix": "OTPGATE_",
        "extra": "ignore",
    }

    @field_validator("jwt_private_key", "jwt_public_key")
    @classmethod
    def unescape_pem(cls, value: str) -> str:
        # Single-line env values carry newlines as literal "\n"
        return value.replace("\\n", "\n")

    @field_validator("jwt_algorithm")
    @classmethod
    def require_rs256(cls, value: str) -> str:
        if value != "RS256":
            raise ValueError("Only RS256 is supported")
        return value
