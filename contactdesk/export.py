"""CSV export of contact submissions."""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from typing import Dict, Iterable, Optional

import anyio
from fastapi import status

from .admin import ListingParams
from .database import DEFAULT_SORT_FIELD, Database
from .models import ContactSummary
from .sessions import resolve_session

logger = logging.getLogger("contactdesk.export")

CSV_HEADERS = ("Nombre", "Email", "Mensaje", "Estado", "Fecha de creación")
EXPORT_FILENAME = "contactos.csv"

_DOWNLOAD_HEADERS = {
    "Content-Disposition": f"attachment; filename={EXPORT_FILENAME}",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""

    utc = value.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def contacts_to_csv(contacts: Iterable[ContactSummary]) -> str:
    rows = [",".join(CSV_HEADERS)]
    for contact in contacts:
        rows.append(
            ",".join(
                [
                    _quote(contact.name),
                    contact.email,
                    _quote(contact.message),
                    contact.status.value,
                    format_timestamp(contact.created_at),
                ]
            )
        )
    return "\n".join(rows)


@dataclass(frozen=True)
class ExportResult:
    status_code: int
    body: str
    media_type: str = "text/plain"
    headers: Dict[str, str] = field(default_factory=dict)


class ExportHandler:
    """Serialise every contact matching the listing filters to CSV."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def export(self, cookie_value: Optional[str], params: ListingParams) -> ExportResult:
        if not resolve_session(cookie_value).authenticated:
            return ExportResult(status_code=status.HTTP_401_UNAUTHORIZED, body="Unauthorized")

        try:
            contacts = await anyio.to_thread.run_sync(
                partial(
                    self._database.find_contacts,
                    params.to_filter(),
                    sort=DEFAULT_SORT_FIELD,
                    order="desc",
                )
            )
        except sqlite3.Error:
            logger.exception("Error exporting contacts")
            return ExportResult(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                body="Error generating export",
            )

        return ExportResult(
            status_code=status.HTTP_200_OK,
            body=contacts_to_csv(contacts),
            media_type="text/csv",
            headers=dict(_DOWNLOAD_HEADERS),
        )


__all__ = [
    "CSV_HEADERS",
    "EXPORT_FILENAME",
    "ExportHandler",
    "ExportResult",
    "contacts_to_csv",
    "format_timestamp",
]
