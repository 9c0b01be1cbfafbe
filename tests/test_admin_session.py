from __future__ import annotations

import sqlite3
from dataclasses import replace

import anyio
import pytest
from fastapi.testclient import TestClient

from contactdesk.admin import DeleteContactHandler, LoginHandler
from contactdesk.database import Database
from contactdesk.security import safe_redirect_target, verify_admin_password
from contactdesk.sessions import ANONYMOUS, AdminSession, guard_redirect, resolve_session
from contactdesk.web import create_app

from conftest import ADMIN_PASSWORD


def test_resolve_session_requires_exact_sentinel() -> None:
    assert resolve_session("authenticated").authenticated is True
    assert resolve_session("Authenticated") is ANONYMOUS
    assert resolve_session("") is ANONYMOUS
    assert resolve_session(None) is ANONYMOUS


@pytest.mark.parametrize(
    "path, query, authenticated, expected",
    [
        ("/", "", False, None),
        ("/contact", "", False, None),
        ("/administrator", "", False, None),
        ("/admin", "", True, None),
        ("/admin/contacts/export", "", True, None),
        ("/admin", "", False, "/admin/login?redirectTo=%2Fadmin"),
        (
            "/admin",
            "page=2&sort=name",
            False,
            "/admin/login?redirectTo=%2Fadmin%3Fpage%3D2%26sort%3Dname",
        ),
        ("/admin/login", "", False, None),
        ("/admin/login", "", True, "/admin"),
        ("/admin/logout", "", False, None),
        ("/admin/logout", "", True, None),
    ],
)
def test_guard_redirect(path, query, authenticated, expected) -> None:
    assert guard_redirect(path, query, AdminSession(authenticated=authenticated)) == expected


def test_password_check() -> None:
    assert verify_admin_password(ADMIN_PASSWORD, ADMIN_PASSWORD) is True
    assert verify_admin_password("wrong", ADMIN_PASSWORD) is False
    assert verify_admin_password(None, ADMIN_PASSWORD) is False
    assert verify_admin_password("", "") is False


@pytest.mark.parametrize(
    "candidate, expected",
    [
        ("/admin?page=2", "/admin?page=2"),
        (None, "/admin"),
        ("", "/admin"),
        ("https://evil.example/", "/admin"),
        ("//evil.example/", "/admin"),
        ("/\\evil.example", "/admin"),
        ("/admin/logout", "/admin"),
        ("/admin/logout?next=1", "/admin"),
    ],
)
def test_redirect_targets_stay_local(candidate, expected) -> None:
    assert safe_redirect_target(candidate) == expected


def test_login_handler() -> None:
    handler = LoginHandler(ADMIN_PASSWORD)

    success = handler.login(ADMIN_PASSWORD, "/admin?status=SPAM")
    assert success.authenticated is True
    assert success.redirect_to == "/admin?status=SPAM"

    failure = handler.login("nope")
    assert failure.authenticated is False
    assert failure.error == "Contraseña incorrecta"
    assert failure.redirect_to is None


def test_anonymous_dashboard_request_is_redirected(client: TestClient) -> None:
    response = client.get("/admin", params={"page": "2"}, follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "/admin/login?redirectTo=%2Fadmin%3Fpage%3D2"


def test_forged_cookie_value_is_rejected(client: TestClient) -> None:
    client.cookies.set("admin_session", "yes-please")

    response = client.get("/admin", follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"].startswith("/admin/login")


def test_wrong_password_renders_error_without_cookie(client: TestClient) -> None:
    response = client.post(
        "/admin/login",
        data={"password": "guess", "redirectTo": "/admin"},
        follow_redirects=False,
    )

    assert response.status_code == 200
    assert "Contraseña incorrecta" in response.text
    assert "set-cookie" not in response.headers
    assert "location" not in response.headers


def test_login_sets_cookie_and_honours_redirect(client: TestClient) -> None:
    response = client.post(
        "/admin/login",
        data={"password": ADMIN_PASSWORD, "redirectTo": "/admin?status=NEW"},
        follow_redirects=False,
    )

    assert response.status_code == 303
    assert response.headers["location"] == "/admin?status=NEW"
    cookie = response.headers["set-cookie"]
    assert "admin_session=authenticated" in cookie
    assert "HttpOnly" in cookie
    assert "Path=/admin" in cookie
    assert "Max-Age=604800" in cookie
    assert "Secure" not in cookie

    dashboard = client.get("/admin", follow_redirects=False)
    assert dashboard.status_code == 200


def test_login_page_redirects_authenticated_admin(admin_client: TestClient) -> None:
    response = admin_client.get("/admin/login", follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "/admin"


def test_login_page_carries_redirect_target(client: TestClient) -> None:
    response = client.get("/admin/login", params={"redirectTo": "/admin?page=3"})

    assert response.status_code == 200
    assert 'name="redirectTo"' in response.text
    assert "/admin?page=3" in response.text


def test_logout_clears_cookie(admin_client: TestClient) -> None:
    response = admin_client.post("/admin/logout", follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "/admin/login"
    assert "Max-Age=0" in response.headers["set-cookie"]

    after = admin_client.get("/admin", follow_redirects=False)
    assert after.status_code == 303


def test_anonymous_logout_is_not_guarded(client: TestClient) -> None:
    response = client.get("/admin/logout", follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "/admin/login"

    login = client.post(
        "/admin/login",
        data={"password": ADMIN_PASSWORD, "redirectTo": "/admin/logout"},
        follow_redirects=False,
    )
    assert login.headers["location"] == "/admin"


def test_production_cookie_is_secure(settings, database: Database, mailer) -> None:
    app = create_app(
        settings=replace(settings, environment="production"),
        database=database,
        mailer=mailer,
    )
    with TestClient(app) as client:
        response = client.post(
            "/admin/login",
            data={"password": ADMIN_PASSWORD},
            follow_redirects=False,
        )

    assert response.status_code == 303
    assert "Secure" in response.headers["set-cookie"]


def test_missing_admin_password_refuses_to_start(settings, database: Database, mailer) -> None:
    with pytest.raises(RuntimeError):
        create_app(
            settings=replace(settings, admin_password=""),
            database=database,
            mailer=mailer,
        )


def test_delete_handler_requires_session(database: Database) -> None:
    contact = database.create_contact("Ada Lovelace", "ada@example.com", "Keep this record")
    handler = DeleteContactHandler(database)

    result = anyio.run(handler.delete, ANONYMOUS, contact.id)

    assert result.status_code == 401
    assert result.to_dict() == {"success": False, "error": "Unauthorized"}
    assert database.get_contact(contact.id) is not None


def test_delete_endpoint(admin_client: TestClient, database: Database) -> None:
    keep = database.create_contact("Ada Lovelace", "ada@example.com", "Keep this record")
    drop = database.create_contact("Spam Bot", "bot@spam.example", "Buy followers now")

    response = admin_client.post("/admin/contacts/delete", data={"id": drop.id})
    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert database.count_contacts() == 1
    assert database.get_contact(keep.id) is not None

    missing = admin_client.post("/admin/contacts/delete", data={"id": "  "})
    assert missing.status_code == 400
    assert missing.json() == {"success": False, "error": "Contact ID is required"}


def test_delete_reports_database_failure(admin_client: TestClient, database: Database, monkeypatch) -> None:
    def broken_delete(contact_id):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(database, "delete_contact", broken_delete)

    response = admin_client.post("/admin/contacts/delete", data={"id": "abc"})
    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal server error"}
