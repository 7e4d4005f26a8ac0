"""Outgoing mail for password reset links.

Services depend on the ``Mailer`` protocol only. The application lifespan
builds the concrete mailer from settings and keeps it on ``app.state``:

- ``SmtpMailer``: delivers through an SMTP server with STARTTLS or SSL.
- ``LogMailer``: used when no SMTP host is configured. Logs the redacted
  recipient and subject and keeps messages in ``outbox``.
"""

import asyncio
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Protocol

from plotdesk.services.errors import MailDeliveryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MailMessage:
    to: str
    subject: str
    body: str


class Mailer(Protocol):
    async def send(self, message: MailMessage) -> None: ...


def redact_address(address: str) -> str:
    """Keep enough of an address to recognise it in logs."""
    if "@" not in address:
        return "redacted"
    local, domain = address.split("@", 1)
    return f"{local[:2]}***@{domain}"


class LogMailer:
    """Development mailer that never leaves the process."""

    def __init__(self) -> None:
        self.outbox: list[MailMessage] = []

    async def send(self, message: MailMessage) -> None:
        self.outbox.append(message)
        logger.info(
            f"Mail to {redact_address(message.to)} not sent (no SMTP host): {message.subject}"
        )


class SmtpMailer:
    def __init__(
        self,
        *,
        host: str,
        port: int,
        sender: str,
        user: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 30,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.user = user
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def _deliver(self, message: EmailMessage) -> None:
        context = ssl.create_default_context()
        if self.use_tls:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls(context=context)
                if self.user and self.password:
                    server.login(self.user, self.password)
                server.send_message(message)
        else:
            with smtplib.SMTP_SSL(
                self.host, self.port, context=context, timeout=self.timeout
            ) as server:
                if self.user and self.password:
                    server.login(self.user, self.password)
                server.send_message(message)

    async def send(self, message: MailMessage) -> None:
        email = EmailMessage()
        email["From"] = self.sender
        email["To"] = message.to
        email["Subject"] = message.subject
        email.set_content(message.body)

        # smtplib blocks; keep it off the event loop
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._deliver, email)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Mail to {redact_address(message.to)} failed: {type(e).__name__}")
            raise MailDeliveryError() from e
        logger.info(f"Mail sent to {redact_address(message.to)}: {message.subject}")
