import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from marketplace.config import settings

logger = logging.getLogger(__name__)


class NotificationSender(Protocol):
    def send(self, recipient: str, subject: str, body: str) -> None: ...


class LogNotificationSender:
    """Writes notifications to the log instead of delivering them."""

    def send(self, recipient: str, subject: str, body: str) -> None:
        logger.info("Notification for %s: %s", recipient, subject)


class SmtpNotificationSender:
    def __init__(self, host: str, port: int, user: str = "", password: str = "", sender: str = ""):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender

    def send(self, recipient: str, subject: str, body: str) -> None:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = recipient
        msg["Subject"] = subject
        msg.set_content(body)
        with smtplib.SMTP(self.host, self.port, timeout=10) as smtp:
            if self.port != 25:
                smtp.starttls()
            if self.user:
                smtp.login(self.user, self.password)
            smtp.send_message(msg)


def build_sender() -> NotificationSender:
    if settings.smtp_host:
        return SmtpNotificationSender(
            settings.smtp_host,
            settings.smtp_port,
            settings.smtp_user,
            settings.smtp_password,
            settings.mail_from,
        )
    return LogNotificationSender()


def notify(sender: NotificationSender | None, recipient: str, subject: str, body: str) -> bool:
    """Deliver a notification. Delivery failures are logged and reported as False."""
    if sender is None:
        return False
    try:
        sender.send(recipient, subject, body)
    except Exception as exc:
        logger.error("Failed to send notification to %s: %s", recipient, exc)
        return False
    return True
