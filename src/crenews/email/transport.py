"""
SMTP email transport.

smtplib is blocking, so each send runs in a worker thread. When SMTP
credentials are not configured the send is simulated: the message is
logged and reported as delivered, which keeps local runs and the
scheduler's bookkeeping working without a mail server.
"""

import asyncio
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import TypedDict

import structlog

from crenews.config import Settings, get_settings

logger = structlog.get_logger()


class EmailContent(TypedDict):
    subject: str
    html: str
    text: str


class EmailTransport:
    """Sends multipart (text + HTML) messages over SMTP with STARTTLS."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def build_message(self, to: str, content: EmailContent) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["Subject"] = content["subject"]
        message["From"] = self.settings.email_from
        message["To"] = to
        message.attach(MIMEText(content["text"], "plain", "utf-8"))
        message.attach(MIMEText(content["html"], "html", "utf-8"))
        return message

    def _send_blocking(self, message: MIMEMultipart) -> None:
        settings = self.settings
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password.get_secret_value())
            server.send_message(message)

    async def send(self, to: str, content: EmailContent) -> bool:
        """
        Send one email.

        Returns:
            True if the message was handed to the SMTP server (or simulated),
            False if delivery failed
        """
        log = logger.bind(to=to, subject=content["subject"])

        if not self.settings.smtp_configured:
            log.info("SMTP not configured, simulating send")
            return True

        message = self.build_message(to, content)

        try:
            await asyncio.to_thread(self._send_blocking, message)
        except (smtplib.SMTPException, OSError) as e:
            log.error("Email send failed", error=str(e), error_type=type(e).__name__)
            return False

        log.info("Email sent")
        return True
