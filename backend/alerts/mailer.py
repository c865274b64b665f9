"""
Email delivery port and adapters.
"""

from __future__ import annotations

import logging
import smtplib
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from .schema import EmailMessage, SendResult

logger = logging.getLogger(__name__)


class EmailPort(ABC):
    """
    Outbound email.

    Implementations report failures through SendResult; raising is tolerated
    and treated as a failure by the dispatcher. Retries belong here, not in
    the dispatcher.
    """

    @abstractmethod
    def send(self, message: EmailMessage) -> SendResult:
        pass


class SMTPEmailPort(EmailPort):
    """Plain SMTP delivery with STARTTLS."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: Optional[str] = None,
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username or "alerts@localhost"
        self.timeout = timeout

    def send(self, message: EmailMessage) -> SendResult:
        mime = MIMEMultipart("alternative")
        mime["Subject"] = message.subject
        mime["From"] = self.sender
        mime["To"] = message.to
        mime.attach(MIMEText(message.html, "html"))

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(mime)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("SMTP delivery to %s failed: %s", message.to, exc)
            return SendResult(success=False, error=str(exc))

        return SendResult(success=True)
