"""Configuration management for the contact desk service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .database import resolve_database_path

_ENV_PREFIX = "CONTACTDESK_"


def _env_flag(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _optional_str(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class MailSettings:
    """Connection details for the outbound SMTP relay."""

    host: Optional[str] = None
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    from_address: str = "noreply@example.com"
    starttls: bool = True
    timeout: float = 10.0

    @property
    def configured(self) -> bool:
        return bool(self.host)

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "MailSettings":
        defaults = MailSettings()
        starttls = data.get("starttls")
        return MailSettings(
            host=_optional_str(data.get("host")),
            port=int(data.get("port", defaults.port)),
            username=_optional_str(data.get("username")),
            password=_optional_str(data.get("password")),
            from_address=_optional_str(data.get("from_address")) or defaults.from_address,
            starttls=defaults.starttls if starttls is None else _env_flag(str(starttls)),
            timeout=float(data.get("timeout", defaults.timeout)),
        )


@dataclass(frozen=True)
class Settings:
    """Top-level service configuration."""

    database_path: Path
    admin_password: Optional[str] = None
    environment: str = "development"
    site_name: str = "Bookly"
    notify_to: str = "admin@example.com"
    alert_to: str = "admin@example.com"
    mail: MailSettings = field(default_factory=MailSettings)

    @property
    def production(self) -> bool:
        return self.environment.strip().lower() == "production"

    @property
    def secure_cookies(self) -> bool:
        return self.production

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw dictionary data."""

        raw_db_path = _optional_str(data.get("database_path"))
        if raw_db_path is None:
            database_path = resolve_database_path(None)
        else:
            candidate = Path(raw_db_path).expanduser()
            if not candidate.is_absolute() and base_path is not None:
                candidate = base_path / candidate
            database_path = candidate.resolve(strict=False)

        mail_raw = data.get("mail") or {}
        if not isinstance(mail_raw, Mapping):
            raise ValueError("The 'mail' configuration section must be a mapping")

        defaults = Settings(database_path=database_path)
        return Settings(
            database_path=database_path,
            admin_password=_optional_str(data.get("admin_password")),
            environment=_optional_str(data.get("environment")) or defaults.environment,
            site_name=_optional_str(data.get("site_name")) or defaults.site_name,
            notify_to=_optional_str(data.get("notify_to")) or defaults.notify_to,
            alert_to=_optional_str(data.get("alert_to")) or defaults.alert_to,
            mail=MailSettings.from_dict(mail_raw),
        )


def _apply_environment(settings: Settings, environ: Mapping[str, str]) -> Settings:
    def get(name: str) -> Optional[str]:
        return _optional_str(environ.get(_ENV_PREFIX + name))

    overrides: Dict[str, object] = {}
    if get("DB_PATH"):
        overrides["database_path"] = resolve_database_path(get("DB_PATH"))
    for name, attr in (
        ("ADMIN_PASSWORD", "admin_password"),
        ("ENV", "environment"),
        ("SITE_NAME", "site_name"),
        ("NOTIFY_TO", "notify_to"),
        ("ALERT_TO", "alert_to"),
    ):
        value = get(name)
        if value is not None:
            overrides[attr] = value

    mail_overrides: Dict[str, object] = {}
    for name, attr in (
        ("SMTP_HOST", "host"),
        ("SMTP_USER", "username"),
        ("SMTP_PASSWORD", "password"),
        ("SMTP_FROM", "from_address"),
    ):
        value = get(name)
        if value is not None:
            mail_overrides[attr] = value
    if get("SMTP_PORT"):
        mail_overrides["port"] = int(get("SMTP_PORT"))  # type: ignore[arg-type]
    if get("SMTP_TIMEOUT"):
        mail_overrides["timeout"] = float(get("SMTP_TIMEOUT"))  # type: ignore[arg-type]
    if get("SMTP_STARTTLS") is not None:
        mail_overrides["starttls"] = _env_flag(get("SMTP_STARTTLS"))
    if mail_overrides:
        overrides["mail"] = replace(settings.mail, **mail_overrides)

    return replace(settings, **overrides) if overrides else settings


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the YAML configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "contactdesk.yaml").resolve(
            strict=False
        )
    return candidate


def load_settings(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from an optional YAML file, then apply environment overrides.

    A missing file is not an error; the defaults and the environment are used.
    """

    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get(_ENV_PREFIX + "CONFIG"))

    raw: Mapping[str, object] = {}
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, Mapping):
            raise ValueError("Configuration file must contain a mapping at the top level")
        raw = loaded

    settings = Settings.from_dict(raw, base_path=path.parent)
    return _apply_environment(settings, env)


__all__ = ["MailSettings", "Settings", "load_settings", "resolve_config_path"]
