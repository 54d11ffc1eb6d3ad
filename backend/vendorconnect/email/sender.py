"""Async SMTP sender.

Uses aiosmtplib for non-blocking SMTP with STARTTLS. Unlike in-app
notifications, a failed send raises so the caller can leave the
notifications unsent for the next sweep.
"""

from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

import aiosmtplib
import structlog

from vendorconnect.config import Settings, get_settings
from vendorconnect.exceptions import EmailDeliveryError, EmailNotConfiguredError

logger = structlog.get_logger()


@dataclass
class OutgoingEmail:
    to_address: str
    to_name: str
    subject: str
    html_body: str
    text_body: str


def is_email_configured(settings: Settings | None = None) -> bool:
    """Check if SMTP credentials are set."""
    settings = settings or get_settings()
    return bool(settings.smtp_user and settings.smtp_password.get_secret_value())


def build_message(email: OutgoingEmail, settings: Settings | None = None) -> MIMEMultipart:
    """Plain text and HTML alternatives; clients render the last part they support."""
    settings = settings or get_settings()

    msg = MIMEMultipart("alternative")
    msg["Subject"] = email.subject
    msg["From"] = formataddr((settings.mail_from_name, settings.mail_from_address))
    msg["To"] = formataddr((email.to_name, email.to_address))
    msg.attach(MIMEText(email.text_body, "plain", "utf-8"))
    msg.attach(MIMEText(email.html_body, "html", "utf-8"))
    return msg


async def send_email(email: OutgoingEmail, settings: Settings | None = None) -> None:
    """Send one message.

    Raises:
        EmailNotConfiguredError: if SMTP credentials are missing.
        EmailDeliveryError: if the SMTP exchange fails.
    """
    settings = settings or get_settings()
    if not is_email_configured(settings):
        raise EmailNotConfiguredError()

    msg = build_message(email, settings)
    try:
        await aiosmtplib.send(
            msg,
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            start_tls=settings.smtp_start_tls,
            username=settings.smtp_user,
            password=settings.smtp_password.get_secret_value(),
        )
    except (aiosmtplib.SMTPException, OSError) as e:
        logger.warning("email_send_failed", to=email.to_address, error=str(e))
        raise EmailDeliveryError(email.to_address, str(e)) from e

    logger.info("email_sent", to=email.to_address, subject=email.subject)
