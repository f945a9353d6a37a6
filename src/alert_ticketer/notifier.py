"""
Email notification sink.

Sends the rendered alert notification to the configured distribution list
over SMTP. The blocking smtplib conversation runs in a worker thread so the
webhook server keeps serving other requests.
"""

import asyncio
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List, Optional, Protocol

import structlog

from .config import Config
from .exceptions import UpstreamError


logger = structlog.get_logger(__name__)


class NotificationSink(Protocol):
    """Anything able to deliver an HTML notification to a list of recipients."""

    async def send(self, to_recipients: List[str], from_address: str, subject: str, html_body: str) -> None: ...


class SmtpNotificationSink:
    """Send notifications via SMTP (STARTTLS on 587, implicit TLS on 465)."""

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        timeout: float = 30.0,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: Config) -> "SmtpNotificationSink":
        return cls(
            smtp_host=config.smtp_host,
            smtp_port=config.smtp_port,
            username=config.email_user,
            password=config.email_pass,
            use_tls=config.smtp_use_tls,
            timeout=config.http_timeout_seconds,
        )

    def _build_message(self, to_recipients: List[str], from_address: str, subject: str, html_body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = from_address
        msg["To"] = ", ".join(to_recipients)
        msg.attach(MIMEText(html_body, "html"))
        return msg

    def _deliver(self, to_recipients: List[str], msg: MIMEMultipart):
        if self.smtp_port == 465:
            context = ssl.create_default_context()
            with smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, context=context, timeout=self.timeout) as server:
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.sendmail(msg["From"], to_recipients, msg.as_string())
        else:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls(context=ssl.create_default_context())
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.sendmail(msg["From"], to_recipients, msg.as_string())

    async def send(self, to_recipients: List[str], from_address: str, subject: str, html_body: str) -> None:
        """
        Send one HTML email to all recipients.

        Raises:
            UpstreamError: No recipients configured or the SMTP exchange failed
        """
        recipients = [address for address in to_recipients if address]
        if not recipients:
            raise UpstreamError("email", "No recipient addresses configured")

        msg = self._build_message(recipients, from_address, subject, html_body)

        try:
            await asyncio.to_thread(self._deliver, recipients, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                "Email delivery failed",
                smtp_host=self.smtp_host,
                smtp_port=self.smtp_port,
                recipient_count=len(recipients),
                error=str(e),
                error_type=type(e).__name__
            )
            raise UpstreamError("email", str(e)) from e

        logger.info(
            "Email sent",
            subject=subject,
            recipient_count=len(recipients)
        )
