"""Security helpers for the admin dashboard."""
from __future__ import annotations

import secrets
from typing import Optional

from .sessions import ADMIN_ROOT, LOGOUT_PATH


def verify_admin_password(provided: Optional[str], expected: Optional[str]) -> bool:
    """Exact string comparison against the configured secret, in constant time."""

    if not expected or provided is None:
        return False
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def safe_redirect_target(candidate: Optional[str], default: str = ADMIN_ROOT) -> str:
    """Accept only local absolute paths as post-login return targets."""

    if not candidate:
        return default
    target = candidate.strip()
    if not target.startswith("/") or target.startswith("//") or "\\" in target:
        return default
    if target.split("?", 1)[0].rstrip("/") == LOGOUT_PATH:
        return default
    return target


__all__ = ["safe_redirect_target", "verify_admin_password"]
