"""Public contact form: validation, storage and notification."""
from __future__ import annotations

import html
import logging
import sqlite3
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Dict, List, Mapping, Optional, Tuple

import anyio
from email_validator import EmailNotValidError, validate_email
from fastapi import status
from pydantic import BaseModel, Field, ValidationError, field_validator

from .database import Database
from .mailer import MailDeliveryError, Mailer
from .models import DEFAULT_TAGS, ContactStatus

logger = logging.getLogger("contactdesk.contact")

FORM_FIELDS: Tuple[str, ...] = ("name", "email", "message")

SUCCESS_MESSAGE = "Thank you for your message! We will get back to you soon."
FAILURE_MESSAGE = "An error occurred while processing your request."

_ERROR_MESSAGES: Dict[Tuple[str, str], str] = {
    ("name", "string_too_short"): "Name must be at least 2 characters",
    ("name", "string_too_long"): "Name must be less than 100 characters",
    ("email", "value_error"): "Please enter a valid email",
    ("email", "string_too_long"): "Email must be less than 100 characters",
    ("message", "string_too_short"): "Message must be at least 10 characters",
    ("message", "string_too_long"): "Message must be less than 5000 characters",
}


class ContactForm(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: str = Field(..., max_length=100)
    message: str = Field(..., min_length=10, max_length=5000)

    @field_validator("email")
    @classmethod
    def _check_email_syntax(cls, value: str) -> str:
        try:
            validate_email(value, check_deliverability=False)
        except EmailNotValidError as exc:
            raise ValueError("Please enter a valid email") from exc
        return value


def validate_contact_form(
    data: Mapping[str, str],
) -> Tuple[Optional[ContactForm], Dict[str, List[str]]]:
    """Validate raw form values.

    Returns the parsed form and an empty error map on success, or ``None`` and
    a map of field name to messages (every field present, possibly empty).
    """

    errors: Dict[str, List[str]] = {name: [] for name in FORM_FIELDS}
    try:
        form = ContactForm(**{name: data.get(name) or "" for name in FORM_FIELDS})
    except ValidationError as exc:
        for error in exc.errors():
            location = error.get("loc") or ("",)
            field_name = str(location[0])
            message = _ERROR_MESSAGES.get((field_name, error["type"]), error["msg"])
            errors.setdefault(field_name, []).append(message)
        return None, errors
    return form, {}


@dataclass(frozen=True)
class Notification:
    subject: str
    text: str
    html: str


def build_notification(form: ContactForm) -> Notification:
    text = "\n".join(
        [
            f"Name: {form.name}",
            f"Email: {form.email}",
            "",
            "Message:",
            form.message,
        ]
    )
    name = html.escape(form.name)
    email = html.escape(form.email)
    message = html.escape(form.message).replace("\n", "<br>")
    body = (
        "<h2>New Contact Form Submission</h2>\n"
        f"<p><strong>Name:</strong> {name}</p>\n"
        f'<p><strong>Email:</strong> <a href="mailto:{email}">{email}</a></p>\n'
        "<p><strong>Message:</strong></p>\n"
        f"<p>{message}</p>\n"
    )
    return Notification(subject="New Contact Form Submission", text=text, html=body)


class SubmissionOutcome(str, Enum):
    STORED = "stored"
    INVALID = "invalid"
    FAILED = "failed"


@dataclass
class SubmissionResult:
    outcome: SubmissionOutcome
    message: Optional[str] = None
    error: Optional[str] = None
    errors: Dict[str, List[str]] = field(default_factory=dict)
    data: Optional[Dict[str, str]] = None

    @property
    def success(self) -> bool:
        return self.outcome is SubmissionOutcome.STORED

    @property
    def status_code(self) -> int:
        if self.outcome is SubmissionOutcome.INVALID:
            return status.HTTP_400_BAD_REQUEST
        if self.outcome is SubmissionOutcome.FAILED:
            return status.HTTP_500_INTERNAL_SERVER_ERROR
        return status.HTTP_200_OK

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {"success": self.success}
        if self.message is not None:
            payload["message"] = self.message
        if self.error is not None:
            payload["error"] = self.error
        if self.outcome is SubmissionOutcome.INVALID:
            payload["errors"] = self.errors
        if self.data is not None:
            payload["data"] = self.data
        return payload


class ContactSubmissionHandler:
    """Validate and store a submission, then notify the site owner."""

    def __init__(self, database: Database, mailer: Mailer, *, notify_to: str) -> None:
        self._database = database
        self._mailer = mailer
        self._notify_to = notify_to

    async def submit(
        self,
        name: Optional[str],
        email: Optional[str],
        message: Optional[str],
    ) -> SubmissionResult:
        data = {"name": name or "", "email": email or "", "message": message or ""}

        form, errors = validate_contact_form(data)
        if form is None:
            return SubmissionResult(SubmissionOutcome.INVALID, errors=errors, data=data)

        try:
            contact = await anyio.to_thread.run_sync(
                partial(
                    self._database.create_contact,
                    form.name,
                    form.email,
                    form.message,
                    status=ContactStatus.NEW,
                    tags=DEFAULT_TAGS,
                )
            )
            notification = build_notification(form)
            await anyio.to_thread.run_sync(
                partial(
                    self._mailer.send,
                    self._notify_to,
                    notification.subject,
                    notification.html,
                    text=notification.text,
                    reply_to=form.email,
                )
            )
        except sqlite3.Error:
            logger.exception("Failed to store contact form submission")
            return SubmissionResult(SubmissionOutcome.FAILED, error=FAILURE_MESSAGE, data=data)
        except MailDeliveryError:
            logger.exception("Stored contact submission but the notification email failed")
            return SubmissionResult(SubmissionOutcome.FAILED, error=FAILURE_MESSAGE, data=data)

        logger.info("Stored contact submission %s", contact.id)
        return SubmissionResult(SubmissionOutcome.STORED, message=SUCCESS_MESSAGE)


__all__ = [
    "ContactForm",
    "ContactSubmissionHandler",
    "FAILURE_MESSAGE",
    "Notification",
    "SUCCESS_MESSAGE",
    "SubmissionOutcome",
    "SubmissionResult",
    "build_notification",
    "validate_contact_form",
]
