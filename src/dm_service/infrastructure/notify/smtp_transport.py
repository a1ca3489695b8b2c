from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage

from dm_service.application.exceptions import NotificationDeliveryError

logger = logging.getLogger(__name__)


class SmtpTransport:
    """Send plain-text e-mail over SMTP. ``smtplib`` blocks, so it runs in a worker thread."""

    def __init__(
        self,
        host: str,
        port: int,
        *,
        sender: str,
        user: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._sender = sender
        self._user = user
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout

    async def send(self, recipient_contact: str, subject: str, body: str) -> None:
        msg = EmailMessage()
        msg["From"] = self._sender
        msg["To"] = recipient_contact
        msg["Subject"] = subject
        msg.set_content(body)
        try:
            await asyncio.to_thread(self._send_blocking, msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationDeliveryError(f"SMTP delivery to {recipient_contact} failed: {exc}") from exc

    def _send_blocking(self, msg: EmailMessage) -> None:
        server = smtplib.SMTP(self._host, self._port, timeout=self._timeout)
        try:
            if self._use_tls:
                server.starttls()
            if self._user and self._password:
                server.login(self._user, self._password)
            server.send_message(msg)
        except BaseException:
            server.close()
            raise
        # Accepted by the server; a failing QUIT must not turn into a retry.
        try:
            server.quit()
        except (smtplib.SMTPException, OSError):
            logger.debug("SMTP QUIT failed after delivery to %s", msg["To"], exc_info=True)
            server.close()


class LoggingTransport:
    """Development transport: logs the notification instead of sending it."""

    async def send(self, recipient_contact: str, subject: str, body: str) -> None:
        logger.info("Notification to %s: %s\n%s", recipient_contact, subject, body)


def build_transport(settings) -> SmtpTransport | LoggingTransport:
    if not settings.SMTP_HOST:
        logger.warning("SMTP_HOST not set, notifications will only be logged")
        return LoggingTransport()
    return SmtpTransport(
        settings.SMTP_HOST,
        settings.SMTP_PORT,
        sender=settings.NOTIFY_FROM,
        user=settings.SMTP_USER,
        password=settings.SMTP_PASSWORD,
        use_tls=settings.SMTP_USE_TLS,
        timeout=settings.NOTIFY_TIMEOUT_SECONDS,
    )
