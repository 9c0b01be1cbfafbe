"""Contact form and admin dashboard service."""

from __future__ import annotations

from typing import Any

from .database import ContactFilter, Database, resolve_database_path
from .models import Contact, ContactStatus, ContactSummary


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the web application."""

    from .web import create_app as _create_app

    return _create_app(*args, **kwargs)


def create_application(*args: Any, **kwargs: Any):
    """Factory function that builds the application from configuration."""

    from .application import create_application as _create_application

    return _create_application(*args, **kwargs)


__all__ = [
    "Contact",
    "ContactFilter",
    "ContactStatus",
    "ContactSummary",
    "Database",
    "resolve_database_path",
    "create_app",
    "create_application",
]
