from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from contactdesk.config import Settings
from contactdesk.database import Database
from contactdesk.mailer import MailReceipt
from contactdesk.web import create_app


ADMIN_PASSWORD = "correct-horse-battery"


class RecordingMailer:
    """Mailer double that keeps every message in memory."""

    def __init__(self, error: Optional[Exception] = None) -> None:
        self.sent: List[Dict[str, Optional[str]]] = []
        self.error = error

    def send(self, to, subject, html, *, text=None, reply_to=None) -> MailReceipt:
        if self.error is not None:
            raise self.error
        self.sent.append(
            {"to": to, "subject": subject, "html": html, "text": text, "reply_to": reply_to}
        )
        return MailReceipt(message_id=f"<test-{len(self.sent)}@example.com>", provider="test")


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "contacts.sqlite3")
    db.initialize()
    return db


@pytest.fixture()
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_path=tmp_path / "contacts.sqlite3",
        admin_password=ADMIN_PASSWORD,
        notify_to="owner@example.com",
        alert_to="ops@example.com",
    )


@pytest.fixture()
def app(settings: Settings, database: Database, mailer: RecordingMailer):
    return create_app(settings=settings, database=database, mailer=mailer)


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def admin_client(client: TestClient) -> TestClient:
    response = client.post(
        "/admin/login",
        data={"password": ADMIN_PASSWORD},
        follow_redirects=False,
    )
    assert response.status_code == 303
    return client
