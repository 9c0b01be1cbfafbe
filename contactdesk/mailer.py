"""Outbound email delivery for notifications and alerts."""
from __future__ import annotations

import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional, Protocol

from .config import MailSettings

logger = logging.getLogger("contactdesk.mail")


class MailDeliveryError(RuntimeError):
    """Raised when a message could not be handed to the mail relay."""


@dataclass(frozen=True)
class MailReceipt:
    message_id: str
    provider: str


class Mailer(Protocol):
    """Minimal contract used by the request handlers."""

    def send(
        self,
        to: str,
        subject: str,
        html: str,
        *,
        text: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> MailReceipt:  # pragma: no cover - interface
        ...


def build_message(
    sender: str,
    to: str,
    subject: str,
    html: str,
    *,
    text: Optional[str] = None,
    reply_to: Optional[str] = None,
) -> EmailMessage:
    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = sender
    message["To"] = to
    message["Message-ID"] = make_msgid()
    if reply_to:
        message["Reply-To"] = reply_to
    message.set_content(text or " ")
    message.add_alternative(html, subtype="html")
    return message


class SMTPMailer:
    """Deliver messages through an SMTP relay, optionally upgrading with STARTTLS."""

    def __init__(self, settings: MailSettings) -> None:
        if not settings.host:
            raise ValueError("An SMTP host is required to build an SMTP mailer")
        self._settings = settings
        self._ssl_context = ssl.create_default_context()

    def send(
        self,
        to: str,
        subject: str,
        html: str,
        *,
        text: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> MailReceipt:
        settings = self._settings
        message = build_message(
            settings.from_address, to, subject, html, text=text, reply_to=reply_to
        )
        try:
            with smtplib.SMTP(settings.host, settings.port, timeout=settings.timeout) as client:
                if settings.starttls:
                    client.starttls(context=self._ssl_context)
                if settings.username and settings.password:
                    client.login(settings.username, settings.password)
                client.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailDeliveryError(f"Failed to deliver mail to {to}: {exc}") from exc

        return MailReceipt(message_id=str(message["Message-ID"]), provider="smtp")


class LoggingMailer:
    """Development mailer that logs messages instead of delivering them."""

    def __init__(self, from_address: str = "noreply@example.com") -> None:
        self._from_address = from_address

    def send(
        self,
        to: str,
        subject: str,
        html: str,
        *,
        text: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> MailReceipt:
        message = build_message(
            self._from_address, to, subject, html, text=text, reply_to=reply_to
        )
        logger.info(
            "Mail not delivered (no SMTP host configured): to=%s subject=%r reply_to=%s\n%s",
            to,
            subject,
            reply_to,
            text or html,
        )
        return MailReceipt(message_id=str(message["Message-ID"]), provider="log")


def build_mailer(settings: MailSettings) -> Mailer:
    """Return an SMTP mailer when a relay is configured, otherwise a logging one."""

    if settings.configured:
        return SMTPMailer(settings)
    logger.warning("No SMTP host configured; outgoing mail will only be logged.")
    return LoggingMailer(settings.from_address)


__all__ = [
    "LoggingMailer",
    "MailDeliveryError",
    "MailReceipt",
    "Mailer",
    "SMTPMailer",
    "build_mailer",
    "build_message",
]
