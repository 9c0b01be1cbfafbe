"""HTTP surface for the contact form and the admin dashboard."""
from __future__ import annotations

import json
import logging
import os
import sqlite3
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Form, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from .admin import AdminListingHandler, DeleteContactHandler, ListingParams, LoginHandler
from .config import Settings, load_settings
from .contact_form import ContactSubmissionHandler
from .database import Database
from .export import ExportHandler
from .health import HEALTH_HEADERS, HealthHandler, SmtpCheckHandler
from .mailer import Mailer, build_mailer
from .models import ContactStatus
from .sessions import (
    LOGIN_PATH,
    LOGOUT_PATH,
    SESSION_COOKIE_NAME,
    SessionGuardMiddleware,
    clear_session_cookie,
    session_from_request,
    set_session_cookie,
)

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

logger = logging.getLogger("contactdesk.web")


def _trusted_proxy_hosts() -> list[str] | str:
    raw = os.getenv("CONTACTDESK_TRUSTED_PROXIES")
    if not raw:
        return "127.0.0.1"
    hosts = [item.strip() for item in raw.split(",") if item.strip()]
    return hosts or "127.0.0.1"


def _script_json(payload: object) -> str:
    return json.dumps(payload).replace("</", "<\\/")


def create_app(
    *,
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    mailer: Optional[Mailer] = None,
    initialize_database: bool = False,
) -> FastAPI:
    """Create the web application with its collaborators wired into the handlers."""

    if settings is None:
        settings = load_settings()

    if not settings.admin_password:
        raise RuntimeError(
            "CONTACTDESK_ADMIN_PASSWORD must be configured to use the admin dashboard"
        )

    if database is None:
        database = Database(settings.database_path)
        database.initialize()
    elif initialize_database:
        database.initialize()

    if mailer is None:
        mailer = build_mailer(settings.mail)

    contact_handler = ContactSubmissionHandler(database, mailer, notify_to=settings.notify_to)
    listing_handler = AdminListingHandler(database)
    login_handler = LoginHandler(settings.admin_password)
    delete_handler = DeleteContactHandler(database)
    export_handler = ExportHandler(database)
    health_handler = HealthHandler(database, mailer, alert_to=settings.alert_to)
    test_email_handler = SmtpCheckHandler(mailer, to=settings.alert_to, site_name=settings.site_name)

    app = FastAPI(
        title=f"{settings.site_name} Contact Desk",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.add_middleware(SessionGuardMiddleware)
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=_trusted_proxy_hosts())
    app.state.settings = settings
    app.state.database = database
    app.state.mailer = mailer

    templates = Jinja2Templates(directory=str(TEMPLATE_DIR))
    templates.env.globals["site_name"] = settings.site_name
    templates.env.globals["statuses"] = [item.value for item in ContactStatus]

    secure_cookies = settings.secure_cookies

    # ------------------------------------------------------------------
    # Public contact form
    # ------------------------------------------------------------------
    @app.get("/", response_class=HTMLResponse, name="contact_page")
    async def contact_page(request: Request):
        return templates.TemplateResponse(request, "contact.html", {})

    @app.post("/contact", name="submit_contact")
    async def submit_contact(
        name: str = Form(""),
        email: str = Form(""),
        message: str = Form(""),
    ):
        result = await contact_handler.submit(name, email, message)
        return JSONResponse(result.to_dict(), status_code=result.status_code)

    # ------------------------------------------------------------------
    # Admin authentication
    # ------------------------------------------------------------------
    @app.get(LOGIN_PATH, response_class=HTMLResponse, name="show_login")
    async def login_form(request: Request):
        return templates.TemplateResponse(
            request,
            "login.html",
            {"error": None, "redirect_to": request.query_params.get("redirectTo", "")},
        )

    @app.post(LOGIN_PATH, name="process_login")
    async def process_login(
        request: Request,
        password: str = Form(""),
        redirect_to: str = Form("", alias="redirectTo"),
    ):
        result = login_handler.login(password, redirect_to)
        if not result.authenticated:
            return templates.TemplateResponse(
                request,
                "login.html",
                {"error": result.error, "redirect_to": redirect_to},
            )

        response = RedirectResponse(result.redirect_to, status_code=status.HTTP_303_SEE_OTHER)
        set_session_cookie(response, secure=secure_cookies)
        return response

    @app.api_route(LOGOUT_PATH, methods=["GET", "POST"], name="logout")
    async def logout():
        response = RedirectResponse(LOGIN_PATH, status_code=status.HTTP_303_SEE_OTHER)
        clear_session_cookie(response, secure=secure_cookies)
        return response

    # ------------------------------------------------------------------
    # Admin dashboard
    # ------------------------------------------------------------------
    @app.get("/admin", response_class=HTMLResponse, name="admin_dashboard")
    async def admin_dashboard(request: Request):
        params = ListingParams.from_query(request.query_params)
        try:
            page = await listing_handler.list_contacts(params)
        except sqlite3.Error:
            logger.exception("Failed to load the contact listing")
            return PlainTextResponse(
                "Error loading contacts",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return templates.TemplateResponse(
            request,
            "admin.html",
            {"listing": page, "listing_json": _script_json(page.to_dict())},
        )

    @app.post("/admin/contacts/delete", name="delete_contact")
    async def delete_contact(request: Request, contact_id: str = Form("", alias="id")):
        result = await delete_handler.delete(session_from_request(request), contact_id)
        return JSONResponse(result.to_dict(), status_code=result.status_code)

    @app.get("/admin/contacts/export", name="export_contacts")
    async def export_contacts(request: Request):
        params = ListingParams.from_query(request.query_params)
        result = await export_handler.export(request.cookies.get(SESSION_COOKIE_NAME), params)
        return Response(
            content=result.body,
            status_code=result.status_code,
            media_type=result.media_type,
            headers=result.headers,
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    @app.get("/api/health", name="health")
    async def health():
        report = await health_handler.check()
        return JSONResponse(report.to_dict(), status_code=report.status_code, headers=HEALTH_HEADERS)

    @app.get("/api/test-email", name="test_email")
    async def test_email():
        result = await test_email_handler.send()
        return JSONResponse(result.to_dict(), status_code=result.status_code)

    return app


__all__ = ["create_app"]
