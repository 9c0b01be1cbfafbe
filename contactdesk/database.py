"""SQLite-backed persistence for contact submissions."""
from __future__ import annotations

import json
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Literal, Optional, Sequence, Tuple

from .models import DEFAULT_TAGS, Contact, ContactStatus, ContactSummary

SortOrder = Literal["asc", "desc"]

# Public sort keys mapped to the columns they order by.
SORTABLE_FIELDS: Dict[str, str] = {
    "createdAt": "created_at",
    "name": "name",
    "email": "email",
    "status": "status",
}

DEFAULT_SORT_FIELD = "createdAt"

_SEARCH_COLUMNS = ("name", "email", "message")

# LIMIT and OFFSET are bound as signed 64-bit integers.
_SQLITE_MAX_INTEGER = 2**63 - 1

_DEMO_CONTACTS: Tuple[Tuple[str, str, str, Tuple[str, ...]], ...] = (
    ("Ada Lovelace", "ada@example.com", "Quiero más info", ("lead", "es")),
    ("Grace Hopper", "grace@example.com", "Agenden demo", ("demo",)),
    ("Alan Turing", "alan@example.com", "¿Precios?", ()),
)


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "contactdesk.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    # Fixed-width UTC timestamps keep lexical and chronological order aligned.
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _casefold(value: object) -> object:
    return value.casefold() if isinstance(value, str) else value


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass(frozen=True)
class ContactFilter:
    """Search and status criteria shared by the listing and the export.

    ``search`` matches a case-insensitive substring of the name, email or
    message. ``status`` is an exact match. Both combine with ``AND``.
    """

    search: Optional[str] = None
    status: Optional[ContactStatus] = None

    def to_sql(self) -> Tuple[str, List[object]]:
        clauses: List[str] = []
        params: List[object] = []
        if self.search:
            pattern = f"%{_escape_like(self.search.casefold())}%"
            clauses.append(
                "("
                + " OR ".join(f"casefold({column}) LIKE ? ESCAPE '\\'" for column in _SEARCH_COLUMNS)
                + ")"
            )
            params.extend([pattern] * len(_SEARCH_COLUMNS))
        if self.status is not None:
            clauses.append("status = ?")
            params.append(self.status.value)
        if not clauses:
            return "", params
        return " WHERE " + " AND ".join(clauses), params


class Database:
    """Simple wrapper around SQLite for persisting contact submissions."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.create_function("casefold", 1, _casefold, deterministic=True)
        return conn

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        statuses = ", ".join(f"'{status.value}'" for status in ContactStatus)
        with self._connect() as conn:
            conn.executescript(
                f"""
                CREATE TABLE IF NOT EXISTS contacts (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL,
                    message TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'NEW' CHECK (status IN ({statuses})),
                    tags TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_contacts_created_at ON contacts(created_at);
                CREATE INDEX IF NOT EXISTS idx_contacts_status ON contacts(status);
                """
            )

    def ping(self) -> None:
        """Run a trivial query, raising :class:`sqlite3.Error` when unavailable."""

        with self._connect() as conn:
            conn.execute("SELECT 1").fetchone()

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------
    def create_contact(
        self,
        name: str,
        email: str,
        message: str,
        *,
        status: ContactStatus = ContactStatus.NEW,
        tags: Iterable[str] = DEFAULT_TAGS,
        created_at: Optional[datetime] = None,
    ) -> Contact:
        """Insert a new submission and return the stored record."""

        contact = Contact(
            id=uuid.uuid4().hex,
            name=name,
            email=email,
            message=message,
            status=ContactStatus(status),
            created_at=created_at or _current_timestamp(),
            tags=tuple(tags),
        )
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO contacts (id, name, email, message, status, tags, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    contact.id,
                    contact.name,
                    contact.email,
                    contact.message,
                    contact.status.value,
                    json.dumps(list(contact.tags)),
                    _serialize_datetime(contact.created_at),
                ),
            )
        return contact

    def get_contact(self, contact_id: str) -> Optional[Contact]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM contacts WHERE id = ?", (contact_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_contact(row)

    def count_contacts(self, contact_filter: Optional[ContactFilter] = None) -> int:
        where, params = (contact_filter or ContactFilter()).to_sql()
        with self._connect() as conn:
            row = conn.execute(f"SELECT COUNT(*) FROM contacts{where}", params).fetchone()
        return int(row[0])

    def find_contacts(
        self,
        contact_filter: Optional[ContactFilter] = None,
        *,
        sort: str = DEFAULT_SORT_FIELD,
        order: SortOrder = "desc",
        skip: int = 0,
        take: Optional[int] = None,
    ) -> List[ContactSummary]:
        """Return matching contacts ordered by ``sort``/``order``.

        ``take`` of ``None`` returns every match after ``skip``.
        """

        column = SORTABLE_FIELDS.get(sort)
        if column is None:
            raise ValueError(f"Unsupported sort field '{sort}'")
        direction = "ASC" if order == "asc" else "DESC"

        where, params = (contact_filter or ContactFilter()).to_sql()
        query = (
            "SELECT id, name, email, message, status, created_at FROM contacts"
            f"{where} ORDER BY {column} {direction}, rowid {direction}"
        )
        if take is not None or skip:
            query += " LIMIT ? OFFSET ?"
            limit = -1 if take is None else min(max(take, 0), _SQLITE_MAX_INTEGER)
            params = [*params, limit, min(max(skip, 0), _SQLITE_MAX_INTEGER)]

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_summary(row) for row in rows]

    def delete_contact(self, contact_id: str) -> bool:
        """Delete a contact by id. Unknown ids are a no-op returning ``False``."""

        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM contacts WHERE id = ?", (contact_id,))
        return cursor.rowcount > 0

    def seed_demo_contacts(self) -> List[Contact]:
        """Insert the demo contacts that are not present yet (matched by email)."""

        created: List[Contact] = []
        with self._connect() as conn:
            existing = {
                row["email"] for row in conn.execute("SELECT email FROM contacts").fetchall()
            }
        for name, email, message, tags in _DEMO_CONTACTS:
            if email in existing:
                continue
            created.append(self.create_contact(name, email, message, tags=tags))
        return created

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _row_to_contact(row: sqlite3.Row) -> Contact:
        raw_tags = row["tags"]
        tags: Sequence[str] = json.loads(raw_tags) if raw_tags else []
        return Contact(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            message=row["message"],
            status=ContactStatus(row["status"]),
            created_at=_parse_datetime(row["created_at"]),
            tags=tuple(str(tag) for tag in tags),
        )

    @staticmethod
    def _row_to_summary(row: sqlite3.Row) -> ContactSummary:
        return ContactSummary(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            message=row["message"],
            status=ContactStatus(row["status"]),
            created_at=_parse_datetime(row["created_at"]),
        )


__all__ = [
    "ContactFilter",
    "Database",
    "DEFAULT_SORT_FIELD",
    "SORTABLE_FIELDS",
    "resolve_database_path",
]
