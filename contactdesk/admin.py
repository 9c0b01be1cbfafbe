"""Admin dashboard handlers: listing, login and deletion of contacts."""
from __future__ import annotations

import asyncio
import logging
import sqlite3
from dataclasses import dataclass
from functools import partial
from typing import Dict, List, Literal, Mapping, Optional

import anyio
from fastapi import status

from .database import DEFAULT_SORT_FIELD, SORTABLE_FIELDS, ContactFilter, Database
from .models import ContactStatus, ContactSummary
from .security import safe_redirect_target, verify_admin_password
from .sessions import ADMIN_ROOT, AdminSession

logger = logging.getLogger("contactdesk.admin")

PAGE_SIZE = 10

LOGIN_ERROR = "Contraseña incorrecta"


def _parse_page(raw: Optional[str]) -> int:
    try:
        page = int(str(raw).strip()) if raw is not None else 1
    except ValueError:
        page = 1
    return max(1, page)


@dataclass(frozen=True)
class ListingParams:
    """Query-string state for the admin listing and the export."""

    page: int = 1
    sort: str = DEFAULT_SORT_FIELD
    order: Literal["asc", "desc"] = "desc"
    search: Optional[str] = None
    status: Optional[ContactStatus] = None

    @classmethod
    def from_query(cls, query: Mapping[str, str]) -> "ListingParams":
        sort = query.get("sort") or DEFAULT_SORT_FIELD
        if sort not in SORTABLE_FIELDS:
            sort = DEFAULT_SORT_FIELD
        search = (query.get("search") or "").strip() or None
        return cls(
            page=_parse_page(query.get("page")),
            sort=sort,
            order="asc" if query.get("order") == "asc" else "desc",
            search=search,
            status=ContactStatus.parse(query.get("status")),
        )

    def to_filter(self) -> ContactFilter:
        return ContactFilter(search=self.search, status=self.status)


@dataclass
class ListingPage:
    contacts: List[ContactSummary]
    total: int
    page: int
    per_page: int
    has_next: bool
    has_prev: bool
    sort: str
    order: str
    search: Optional[str] = None
    status: Optional[ContactStatus] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "contacts": [contact.to_dict() for contact in self.contacts],
            "total": self.total,
            "page": self.page,
            "perPage": self.per_page,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
            "search": self.search,
            "status": self.status.value if self.status else None,
            "sort": self.sort,
            "order": self.order,
        }


class AdminListingHandler:
    """Build one page of contacts from the listing parameters."""

    def __init__(self, database: Database, *, page_size: int = PAGE_SIZE) -> None:
        self._database = database
        self._page_size = page_size

    async def list_contacts(self, params: ListingParams) -> ListingPage:
        """Fetch the page and the total count concurrently.

        The two reads are independent; a concurrent write between them can
        make ``total``/``has_next`` transiently disagree with the page.
        Raises :class:`sqlite3.Error` when the database fails.
        """

        contact_filter = params.to_filter()
        skip = (params.page - 1) * self._page_size
        total, contacts = await asyncio.gather(
            anyio.to_thread.run_sync(self._database.count_contacts, contact_filter),
            anyio.to_thread.run_sync(
                partial(
                    self._database.find_contacts,
                    contact_filter,
                    sort=params.sort,
                    order=params.order,
                    skip=skip,
                    take=self._page_size,
                )
            ),
        )
        return ListingPage(
            contacts=contacts,
            total=total,
            page=params.page,
            per_page=self._page_size,
            has_next=skip + self._page_size < total,
            has_prev=params.page > 1,
            sort=params.sort,
            order=params.order,
            search=params.search,
            status=params.status,
        )


@dataclass(frozen=True)
class LoginResult:
    authenticated: bool
    redirect_to: Optional[str] = None
    error: Optional[str] = None


class LoginHandler:
    """Compare the submitted password with the configured admin secret."""

    def __init__(self, admin_password: str) -> None:
        self._admin_password = admin_password

    def login(self, password: Optional[str], redirect_to: Optional[str] = None) -> LoginResult:
        if verify_admin_password(password, self._admin_password):
            return LoginResult(
                authenticated=True,
                redirect_to=safe_redirect_target(redirect_to, ADMIN_ROOT),
            )
        return LoginResult(authenticated=False, error=LOGIN_ERROR)


@dataclass(frozen=True)
class DeleteResult:
    success: bool
    status_code: int = status.HTTP_200_OK
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {"success": self.success}
        if self.error is not None:
            payload["error"] = self.error
        return payload


class DeleteContactHandler:
    """Delete a contact by id on behalf of an authenticated admin."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def delete(self, session: AdminSession, contact_id: Optional[str]) -> DeleteResult:
        if not session.authenticated:
            return DeleteResult(
                success=False,
                status_code=status.HTTP_401_UNAUTHORIZED,
                error="Unauthorized",
            )

        cleaned = (contact_id or "").strip()
        if not cleaned:
            return DeleteResult(
                success=False,
                status_code=status.HTTP_400_BAD_REQUEST,
                error="Contact ID is required",
            )

        try:
            removed = await anyio.to_thread.run_sync(self._database.delete_contact, cleaned)
        except sqlite3.Error:
            logger.exception("Failed to delete contact %s", cleaned)
            return DeleteResult(
                success=False,
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                error="Internal server error",
            )

        if removed:
            logger.info("Deleted contact %s", cleaned)
        else:
            logger.info("Delete requested for unknown contact %s", cleaned)
        return DeleteResult(success=True)


__all__ = [
    "AdminListingHandler",
    "DeleteContactHandler",
    "DeleteResult",
    "LOGIN_ERROR",
    "ListingPage",
    "ListingParams",
    "LoginHandler",
    "LoginResult",
    "PAGE_SIZE",
]
