"""Mail dispatch over async SMTP.

A dumb transport: callers compose subject and bodies, this module only
delivers them. Transport failures surface as ``MailDeliveryError``.
"""

from __future__ import annotations

import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from functools import lru_cache

import aiosmtplib

from academyhub.core.config import Settings, get_settings
from academyhub.core.structured_logging import log_json

logger = logging.getLogger(__name__)


class MailDeliveryError(Exception):
    """Raised when the SMTP transport rejects or fails to deliver a message."""


class MailDispatcher:
    """Sends multipart (plain text + HTML) email through SMTP."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def build_message(self, to: str, subject: str, text: str, html: str | None = None) -> MIMEMultipart:
        """Build a ``multipart/alternative`` message.

        Args:
            to: Recipient address
            subject: Subject line
            text: Plain text body
            html: Optional HTML body

        Returns:
            MIME message ready to send
        """
        message = MIMEMultipart("alternative")
        message["From"] = f"{self.settings.smtp_from_name} <{self.settings.smtp_from}>"
        message["To"] = to
        message["Subject"] = subject

        message.attach(MIMEText(text, "plain", "utf-8"))
        if html:
            message.attach(MIMEText(html, "html", "utf-8"))

        return message

    async def send(self, to: str, subject: str, text: str, html: str | None = None) -> None:
        """Deliver a message.

        Raises:
            MailDeliveryError: If the SMTP server cannot be reached or
                refuses the message
        """
        message = self.build_message(to, subject, text, html)

        try:
            await aiosmtplib.send(
                message,
                hostname=self.settings.smtp_host,
                port=self.settings.smtp_port,
                username=self.settings.smtp_user or None,
                password=self.settings.smtp_password or None,
                start_tls=self.settings.smtp_use_tls,
                timeout=self.settings.smtp_timeout_seconds,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            log_json(
                logger,
                logging.ERROR,
                "mail_delivery_failed",
                recipient=to,
                subject=subject,
                error=str(e),
            )
            raise MailDeliveryError(f"Failed to send email to {to}") from e

        log_json(logger, logging.INFO, "mail_sent", recipient=to, subject=subject)


@lru_cache
def get_mailer() -> MailDispatcher:
    """FastAPI dependency returning the process-wide mail dispatcher."""
    return MailDispatcher(get_settings())
