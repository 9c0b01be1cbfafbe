"""Cookie-flag sessions for the admin dashboard.

The admin session is not a server-side record. A single cookie whose value is
the literal ``authenticated`` marks the browser as logged in; expiry is left
to the cookie's own max-age.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from fastapi import Request, Response, status
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

SESSION_COOKIE_NAME = "admin_session"
SESSION_COOKIE_VALUE = "authenticated"
SESSION_MAX_AGE = 60 * 60 * 24 * 7

ADMIN_PREFIX = "/admin"
ADMIN_ROOT = "/admin"
LOGIN_PATH = "/admin/login"
LOGOUT_PATH = "/admin/logout"


@dataclass(frozen=True)
class AdminSession:
    authenticated: bool = False


ANONYMOUS = AdminSession(authenticated=False)


def resolve_session(cookie_value: Optional[str]) -> AdminSession:
    """Derive the session state from the raw cookie value."""

    if cookie_value == SESSION_COOKIE_VALUE:
        return AdminSession(authenticated=True)
    return ANONYMOUS


def is_admin_path(path: str) -> bool:
    return path == ADMIN_PREFIX or path.startswith(ADMIN_PREFIX + "/")


def login_url(return_to: Optional[str] = None) -> str:
    if not return_to:
        return LOGIN_PATH
    return f"{LOGIN_PATH}?redirectTo={quote(return_to, safe='')}"


def guard_redirect(path: str, query: str, session: AdminSession) -> Optional[str]:
    """Return where the request must be redirected, or ``None`` to let it through."""

    if not is_admin_path(path):
        return None
    if path == LOGOUT_PATH:
        return None
    if path == LOGIN_PATH:
        return ADMIN_ROOT if session.authenticated else None
    if session.authenticated:
        return None
    return_to = f"{path}?{query}" if query else path
    return login_url(return_to)


def session_from_request(request: Request) -> AdminSession:
    session = getattr(request.state, "session", None)
    if isinstance(session, AdminSession):
        return session
    return resolve_session(request.cookies.get(SESSION_COOKIE_NAME))


def set_session_cookie(response: Response, *, secure: bool) -> None:
    response.set_cookie(
        SESSION_COOKIE_NAME,
        SESSION_COOKIE_VALUE,
        max_age=SESSION_MAX_AGE,
        path=ADMIN_PREFIX,
        httponly=True,
        samesite="lax",
        secure=secure,
    )


def clear_session_cookie(response: Response, *, secure: bool) -> None:
    response.delete_cookie(
        SESSION_COOKIE_NAME,
        path=ADMIN_PREFIX,
        httponly=True,
        samesite="lax",
        secure=secure,
    )


class SessionGuardMiddleware(BaseHTTPMiddleware):
    """Attach the admin session to each request and protect the admin area."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        session = resolve_session(request.cookies.get(SESSION_COOKIE_NAME))
        request.state.session = session

        target = guard_redirect(request.url.path, request.url.query, session)
        if target is not None:
            return RedirectResponse(target, status_code=status.HTTP_303_SEE_OTHER)
        return await call_next(request)


__all__ = [
    "ADMIN_PREFIX",
    "ADMIN_ROOT",
    "AdminSession",
    "LOGIN_PATH",
    "LOGOUT_PATH",
    "SESSION_COOKIE_NAME",
    "SESSION_COOKIE_VALUE",
    "SESSION_MAX_AGE",
    "SessionGuardMiddleware",
    "clear_session_cookie",
    "guard_redirect",
    "login_url",
    "resolve_session",
    "session_from_request",
    "set_session_cookie",
]
