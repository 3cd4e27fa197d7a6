"""Membership expiration notices — compose and deliver member emails."""

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

logger = logging.getLogger(__name__)

TEMPLATES = {
    "expiring": {
        "subject": "Membership Expiration Notice",
        "body": (
            "Dear Member,\n\n"
            "This is to inform you that your gym membership is going to expire "
            "in {days_remaining} {day_word}.\n\n"
            "Please renew your membership to continue enjoying our services.\n\n"
            "If you have any questions, please contact our support team.\n\n"
            "Thank you for being a valued member!"
        ),
    },
    "expired": {
        "subject": "Your Membership Has Expired",
        "body": (
            "Dear Member,\n\n"
            "Your gym membership has expired and your account has been suspended.\n\n"
            "Please renew your membership to regain access to our services.\n\n"
            "If you have any questions, please contact our support team."
        ),
    },
}


class Notifier(Protocol):
    """Delivers expiration notices. Returns False on failure instead of raising."""

    async def send_expiration_notice(self, email: str, days_remaining: int | None) -> bool: ...


def render_expiration_notice(days_remaining: int | None) -> tuple[str, str]:
    """Return ``(subject, body)``; ``None`` days means the membership has expired."""
    if days_remaining is None:
        tmpl = TEMPLATES["expired"]
        return tmpl["subject"], tmpl["body"]
    tmpl = TEMPLATES["expiring"]
    body = tmpl["body"].format(
        days_remaining=days_remaining,
        day_word="day" if days_remaining == 1 else "days",
    )
    return tmpl["subject"], body


class LoggingNotifier:
    """Simulated delivery: the notice is rendered and logged, never sent."""

    async def send_expiration_notice(self, email: str, days_remaining: int | None) -> bool:
        subject, _ = render_expiration_notice(days_remaining)
        logger.info("Notice simulated to %s (days_remaining=%s): %s", email, days_remaining, subject)
        return True


class SmtpNotifier:
    """Sends notices over SMTP. The blocking send runs in a worker thread."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def _build_message(self, email: str, days_remaining: int | None) -> EmailMessage:
        subject, body = render_expiration_notice(days_remaining)
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = email
        message["Subject"] = subject
        message.set_content(body)
        return message

    def _send(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
            server.send_message(message)

    async def send_expiration_notice(self, email: str, days_remaining: int | None) -> bool:
        message = self._build_message(email, days_remaining)
        try:
            await asyncio.to_thread(self._send, message)
        except (smtplib.SMTPException, OSError):
            logger.exception("Failed to send expiration notice to %s", email)
            return False
        logger.info("Expiration notice sent to %s (days_remaining=%s)", email, days_remaining)
        return True


def build_notifier(settings) -> Notifier:
    """SMTP delivery when a host is configured, otherwise logged notices."""
    if not settings.smtp_host:
        logger.warning("SMTP_HOST not set, expiration notices will only be logged")
        return LoggingNotifier()
    return SmtpNotifier(
        host=settings.smtp_host,
        port=settings.smtp_port,
        sender=settings.mail_from,
        username=settings.smtp_username,
        password=settings.smtp_password,
        use_tls=settings.smtp_use_tls,
    )
