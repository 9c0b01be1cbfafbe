"""Domain models for contact form submissions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Tuple


class ContactStatus(str, Enum):
    """Lifecycle states a submission can be filed under."""

    NEW = "NEW"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    SPAM = "SPAM"

    @classmethod
    def parse(cls, value: object) -> "ContactStatus | None":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip())
        except ValueError:
            return None


DEFAULT_TAGS: Tuple[str, ...] = ("contact-form",)


@dataclass(frozen=True)
class Contact:
    """A submission stored by the public contact form."""

    id: str
    name: str
    email: str
    message: str
    status: ContactStatus
    created_at: datetime
    tags: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ContactSummary:
    """Projection of a contact used by the admin listing and the export."""

    id: str
    name: str
    email: str
    message: str
    status: ContactStatus
    created_at: datetime

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "message": self.message,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
        }


__all__ = ["Contact", "ContactStatus", "ContactSummary", "DEFAULT_TAGS"]
