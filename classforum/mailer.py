"""
Outgoing mail for login codes.
"""

from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class Mailer(Protocol):
    def send(self, to: str, subject: str, body: str) -> None:
        ...


class LogMailer:
    """Writes messages to the log instead of sending them."""

    def send(self, to: str, subject: str, body: str) -> None:
        logger.info("Mail to %s (%s): %s", to, subject, body)


@dataclass
class SmtpMailer:
    host: str
    port: int
    sender: str
    username: Optional[str] = None
    password: Optional[str] = None

    def send(self, to: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)
        with smtplib.SMTP(self.host, self.port, timeout=10) as smtp:
            smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(message)
        logger.info("Sent '%s' to %s", subject, to)
