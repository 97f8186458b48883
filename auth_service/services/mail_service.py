"""
Outbound mail transports and the verification email template.
"""
import asyncio
import re
import smtplib
from email.message import EmailMessage
from email.utils import formataddr

import structlog

from ..core.config import Settings
from ..core.exceptions import DeliveryError
from ..interfaces.notification_interface import IMailSender, NotificationEmail

logger = structlog.get_logger()

VERIFICATION_SUBJECT = "Please Activate your Account"
LINK_TAIL = re.compile(r"(https?://\S*/)[^/\s]+")


def mask_email(email: str) -> str:
    """Keep the first character and the domain: ``a***@example.com``."""
    local, _, domain = email.partition("@")
    if not domain:
        return "***"
    return f"{local[:1]}***@{domain}"


def redact_links(body: str) -> str:
    """Replace the last path segment of every URL in ``body`` with a placeholder."""
    return LINK_TAIL.sub(r"\1<redacted>", body)


def build_verification_email(settings: Settings, recipient: str, token: str) -> NotificationEmail:
    link = f"{settings.verification_url_prefix}{token}"
    body = (
        f"Thank you for signing up to {settings.EMAILS_FROM_NAME}, "
        f"please click on the below url to activate your account : {link}"
    )
    return NotificationEmail(subject=VERIFICATION_SUBJECT, recipient=recipient, body=body)


class SmtpMailSender(IMailSender):
    """SMTP transport. The blocking smtplib session runs in a worker thread."""

    def __init__(self, settings: Settings):
        self.host = settings.SMTP_HOST
        self.port = settings.SMTP_PORT
        self.user = settings.SMTP_USER
        self.password = settings.SMTP_PASSWORD
        self.use_tls = settings.SMTP_TLS
        self.timeout = settings.SMTP_TIMEOUT_SECONDS
        self.from_address = formataddr((settings.EMAILS_FROM_NAME, settings.EMAILS_FROM_EMAIL))

    def _build_message(self, email: NotificationEmail) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.from_address
        message["To"] = email.recipient
        message["Subject"] = email.subject
        message.set_content(email.body)
        return message

    def _send_blocking(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.user:
                server.login(self.user, self.password)
            server.send_message(message)

    async def send(self, email: NotificationEmail) -> None:
        """
        Send ``email`` over SMTP.

        Raises:
            DeliveryError: On any SMTP or socket failure
        """
        message = self._build_message(email)
        try:
            await asyncio.to_thread(self._send_blocking, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                "SMTP delivery failed",
                recipient=mask_email(email.recipient),
                error=str(e),
            )
            raise DeliveryError(f"SMTP delivery failed: {e}") from e

        logger.info("Activation email sent", recipient=mask_email(email.recipient))


class LoggingMailSender(IMailSender):
    """Development transport: logs the message, with link tokens redacted, instead of sending it."""

    async def send(self, email: NotificationEmail) -> None:
        logger.info(
            "Email not sent (console backend)",
            recipient=mask_email(email.recipient),
            subject=email.subject,
            body=redact_links(email.body),
        )


def create_mail_sender(settings: Settings) -> IMailSender:
    if settings.MAIL_BACKEND == "console":
        return LoggingMailSender()
    return SmtpMailSender(settings)
