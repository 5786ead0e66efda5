from email.message import EmailMessage
from email.utils import formataddr

from otpgate.core.core import Service
from otpgate.core.modules.mail.rendering import render_mail
from otpgate.core.modules.mail.sender import send_email
from otpgate.core.modules.otp.models import SecurityFingerprint


class MailService(Service):
    """Notifier: renders and delivers auth emails.

    Delivery problems are reported through the boolean result, never raised;
    callers decide whether a failed send is fatal.
    """

    async def send_otp_code(self, to: str, name: str, code: str) -> bool:
        body = render_mail(
            "otp_code",
            {
                "name": name,
                "code": code,
                "product_name": self.config.product_name,
                "validity_minutes": self.config.otp_validity_seconds // 60,
            },
        )
        return await self.send(to, f"{self.config.product_name} - Your OTP for authentication", body)

    async def send_login_alert(self, to: str, name: str, security: SecurityFingerprint) -> bool:
        body = render_mail(
            "login_alert",
            {
                "name": name,
                "ip": security.ip,
                "device": security.device,
                "location": security.location,
                "product_name": self.config.product_name,
            },
        )
        return await self.send(to, f"{self.config.product_name} - New login detected from {security.ip}", body)

    async def send(self, to: str, subject: str, body: str) -> bool:
        message = EmailMessage()
        message["From"] = formataddr((self.config.mail_from_name, self.config.mail_from))
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        sent, _ = await send_email(self.config, message)
        return sent
