from __future__ import annotations

import sqlite3

import anyio

from contactdesk.database import Database
from contactdesk.health import SmtpCheckHandler
from contactdesk.mailer import MailDeliveryError

from conftest import RecordingMailer


def test_health_reports_ok(client) -> None:
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"
    assert response.headers["x-health-check"] == "true"
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["checks"]["database"]["status"] == "ok"
    assert "error" not in payload["checks"]["database"]


def test_health_alerts_when_database_is_down(
    client, database: Database, mailer: RecordingMailer, monkeypatch
) -> None:
    def broken_ping():
        raise sqlite3.OperationalError("unable to open database file")

    monkeypatch.setattr(database, "ping", broken_ping)

    response = client.get("/api/health")

    assert response.status_code == 503
    payload = response.json()
    assert payload["status"] == "error"
    assert payload["checks"]["database"]["error"] == "unable to open database file"

    assert len(mailer.sent) == 1
    alert = mailer.sent[0]
    assert alert["to"] == "ops@example.com"
    assert alert["subject"] == "Database Connection Error"
    assert "unable to open database file" in alert["html"]


def test_health_survives_alert_failure(client, database: Database, mailer: RecordingMailer, monkeypatch) -> None:
    def broken_ping():
        raise sqlite3.OperationalError("unable to open database file")

    monkeypatch.setattr(database, "ping", broken_ping)
    mailer.error = MailDeliveryError("relay unavailable")

    response = client.get("/api/health")

    assert response.status_code == 503
    assert response.json()["status"] == "error"


def test_test_email_is_sent(client, mailer: RecordingMailer) -> None:
    response = client.get("/api/test-email")

    assert response.status_code == 200
    assert response.json() == {"ok": True, "message": "Test email sent", "sentTo": "ops@example.com"}
    assert mailer.sent[0]["subject"] == "Test email - Bookly"


def test_test_email_reports_failure(client, mailer: RecordingMailer) -> None:
    mailer.error = MailDeliveryError("authentication failed")

    response = client.get("/api/test-email")

    assert response.status_code == 500
    assert response.json() == {"ok": False, "error": "authentication failed"}


def test_smtp_check_handler_sends_to_configured_recipient() -> None:
    mailer = RecordingMailer()
    handler = SmtpCheckHandler(mailer, to="ops@example.com", site_name="<Acme>")

    result = anyio.run(handler.send)

    assert result.ok is True
    assert result.status_code == 200
    assert mailer.sent[0]["to"] == "ops@example.com"
    assert mailer.sent[0]["subject"] == "Test email - <Acme>"
    assert "&lt;Acme&gt;" in mailer.sent[0]["html"]
