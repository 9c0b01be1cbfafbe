"""Operational endpoints: database health check and SMTP test message."""
from __future__ import annotations

import html
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import partial
from typing import Dict, Optional

import anyio
from fastapi import status

from .database import Database
from .mailer import MailDeliveryError, Mailer

logger = logging.getLogger("contactdesk.health")

HEALTH_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "X-Health-Check": "true",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class HealthReport:
    ok: bool
    timestamp: datetime
    database_error: Optional[str] = None

    @property
    def status_code(self) -> int:
        return status.HTTP_200_OK if self.ok else status.HTTP_503_SERVICE_UNAVAILABLE

    def to_dict(self) -> Dict[str, object]:
        state = "ok" if self.ok else "error"
        database: Dict[str, object] = {
            "status": state,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.database_error is not None:
            database["error"] = self.database_error
        return {
            "status": state,
            "timestamp": self.timestamp.isoformat(),
            "checks": {"database": database},
        }


class HealthHandler:
    """Ping the database and alert by email when it is unreachable."""

    def __init__(self, database: Database, mailer: Mailer, *, alert_to: str) -> None:
        self._database = database
        self._mailer = mailer
        self._alert_to = alert_to

    async def check(self) -> HealthReport:
        try:
            await anyio.to_thread.run_sync(self._database.ping)
        except sqlite3.Error as exc:
            logger.exception("Database health check failed")
            report = HealthReport(
                ok=False,
                timestamp=_utcnow(),
                database_error=str(exc) or "Unknown database error",
            )
            await self._send_alert(report)
            return report
        return HealthReport(ok=True, timestamp=_utcnow())

    async def _send_alert(self, report: HealthReport) -> None:
        body = (
            "<h1>Database Connection Error</h1>\n"
            f"<p><strong>Time:</strong> {report.timestamp.isoformat()}</p>\n"
            f"<p><strong>Error:</strong> {html.escape(report.database_error or '')}</p>\n"
            "<p>Please check the database server and connection settings.</p>\n"
        )
        try:
            await anyio.to_thread.run_sync(
                partial(self._mailer.send, self._alert_to, "Database Connection Error", body)
            )
        except MailDeliveryError:
            logger.exception("Failed to send database alert email")


@dataclass(frozen=True)
class SmtpCheckResult:
    ok: bool
    sent_to: str
    error: Optional[str] = None

    @property
    def status_code(self) -> int:
        return status.HTTP_200_OK if self.ok else status.HTTP_500_INTERNAL_SERVER_ERROR

    def to_dict(self) -> Dict[str, object]:
        if self.ok:
            return {"ok": True, "message": "Test email sent", "sentTo": self.sent_to}
        return {"ok": False, "error": self.error or "Unknown error"}


class SmtpCheckHandler:
    """Send a test message to confirm the SMTP settings."""

    def __init__(self, mailer: Mailer, *, to: str, site_name: str) -> None:
        self._mailer = mailer
        self._to = to
        self._site_name = site_name

    async def send(self) -> SmtpCheckResult:
        sent_at = _utcnow().strftime("%Y-%m-%d %H:%M:%S %Z")
        site = html.escape(self._site_name)
        body = (
            "<h1>Test email</h1>\n"
            f"<p>This is a test message from {site}.</p>\n"
            f"<p><strong>Sent at:</strong> {sent_at}</p>\n"
            "<p>If you are reading this, the SMTP configuration works.</p>\n"
        )
        try:
            await anyio.to_thread.run_sync(
                partial(self._mailer.send, self._to, f"Test email - {self._site_name}", body)
            )
        except MailDeliveryError as exc:
            logger.exception("Error sending test email")
            return SmtpCheckResult(ok=False, sent_to=self._to, error=str(exc))
        return SmtpCheckResult(ok=True, sent_to=self._to)


__all__ = [
    "HEALTH_HEADERS",
    "HealthHandler",
    "HealthReport",
    "SmtpCheckHandler",
    "SmtpCheckResult",
]
