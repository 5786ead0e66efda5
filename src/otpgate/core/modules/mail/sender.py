"""SMTP message delivery."""

from email.message import EmailMessage

import aiosmtplib
import structlog

from otpgate.config import Config

logger = structlog.get_logger(__name__)


async def send_email(config: Config, message: EmailMessage) -> tuple[bool, str | None]:
    """Send a prepared message through the configured SMTP relay.

    Returns:
        Tuple of (success: bool, error_message: str | None)
        - (True, None) on success
        - (False, error_message) on failure
    """
    recipient = message["To"]
    if config.mail_dry_run:
        logger.info("mail_dry_run", to=recipient, subject=message["Subject"])
        return True, None

    if not config.smtp_host:
        logger.error("mail_not_configured", to=recipient)
        return False, "SMTP host is not configured"

    try:
        await aiosmtplib.send(
            message,
            hostname=config.smtp_host,
            port=config.smtp_port,
            username=config.smtp_username,
            password=config.smtp_password,
            use_tls=config.smtp_use_tls,
            start_tls=config.smtp_start_tls,
            timeout=config.smtp_timeout,
        )
    except aiosmtplib.SMTPException as e:
        error_msg = str(e)
        logger.exception("mail_send_failed", to=recipient, error=error_msg)
        return False, error_msg
    except OSError as e:
        error_msg = str(e)
        logger.exception("mail_connection_error", to=recipient, error=error_msg)
        return False, error_msg
    else:
        logger.debug("mail_sent", to=recipient)
        return True, None
