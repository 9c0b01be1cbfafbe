"""Application factory that builds the service from configuration."""
from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional

from fastapi import FastAPI

from .config import load_settings
from .database import Database, resolve_database_path
from .mailer import build_mailer
from .web import create_app

logger = logging.getLogger("contactdesk.application")


def create_application(
    *,
    config_path: Optional[str] = None,
    database_path: Optional[str] = None,
) -> FastAPI:
    """Create the ASGI application from the YAML file and environment."""

    settings = load_settings(Path(config_path).expanduser() if config_path else None)
    if database_path:
        settings = replace(settings, database_path=resolve_database_path(database_path))

    database = Database(settings.database_path)
    database.initialize()
    logger.info("Using contact database at %s", settings.database_path)

    mailer = build_mailer(settings.mail)
    return create_app(settings=settings, database=database, mailer=mailer)


__all__ = ["create_application"]
