"""Application configuration utilities for Soundwave."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import os
from pathlib import Path
from typing import Any

from app.logging import get_logger

logger = get_logger(__name__)

DEFAULT_DB_URL = "sqlite:///./soundwave.db"
DEFAULT_API_BASE_PATH = "/api/v1"
DEFAULT_SITE_URL = "http://localhost:3000/"
DEFAULT_PAYMENTS_API_BASE = "https://api.stripe.com/v1"
DEFAULT_PAYMENTS_API_VERSION = "2022-11-15"
DEFAULT_PAYMENTS_TIMEOUT_MS = 10_000
DEFAULT_WEBHOOK_TOLERANCE_SECONDS = 300
DEFAULT_SONGS_BUCKET = "songs"
DEFAULT_IMAGES_BUCKET = "images"

_RUNTIME_ENV_CACHE: dict[str, str] | None = None


def _load_env_file(path: Path) -> dict[str, str]:
    values: dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if key.startswith("export "):
            key = key[len("export ") :].strip()
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
            value = value[1:-1]
        if key:
            values[key] = value
    return values


def load_runtime_env(
    *,
    env_file: str | os.PathLike[str] | None = None,
    base_env: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Load runtime environment values applying .env before explicit environment."""

    env: dict[str, str] = {}
    source = dict(base_env or os.environ)

    path = Path(env_file) if env_file is not None else Path(".env")
    if path.exists() and path.is_file():
        env.update(_load_env_file(path))

    env.update({key: str(value) for key, value in source.items() if value is not None})
    return env


def get_runtime_env() -> Mapping[str, str]:
    """Return the cached runtime environment mapping."""

    global _RUNTIME_ENV_CACHE
    if _RUNTIME_ENV_CACHE is None:
        _RUNTIME_ENV_CACHE = load_runtime_env()
    return _RUNTIME_ENV_CACHE


def override_runtime_env(runtime_env: Mapping[str, str] | None) -> None:
    """Override the cached runtime environment (primarily for testing)."""

    global _RUNTIME_ENV_CACHE
    if runtime_env is None:
        _RUNTIME_ENV_CACHE = None
    else:
        _RUNTIME_ENV_CACHE = dict(runtime_env)


def get_env(name: str, default: str | None = None) -> str | None:
    """Return an environment variable honoring ENV > .env > defaults."""

    env = get_runtime_env()
    return env.get(name, default)


def _env_value(env: Mapping[str, Any], key: str) -> str | None:
    value = env.get(key)
    if value is None:
        return None
    return str(value)


def _first_present(env: Mapping[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = _env_value(env, key)
        if value is not None and value.strip():
            return value.strip()
    return None


def _as_int(value: str | None, *, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(slots=True)
class LoggingConfig:
    level: str
    file: str | None = None


@dataclass(slots=True)
class DatabaseConfig:
    url: str


@dataclass(slots=True)
class PaymentsConfig:
    secret_key: str | None
    webhook_secret: str | None
    api_base_url: str
    api_version: str
    timeout_ms: int
    webhook_tolerance_seconds: int
    app_name: str
    app_version: str


@dataclass(slots=True)
class StorageConfig:
    base_url: str | None
    songs_bucket: str
    images_bucket: str


@dataclass(slots=True)
class SiteConfig:
    url: str


@dataclass(slots=True)
class AppConfig:
    logging: LoggingConfig
    database: DatabaseConfig
    payments: PaymentsConfig
    storage: StorageConfig
    site: SiteConfig
    api_base_path: str


def resolve_site_url(env: Mapping[str, Any] | None = None) -> str:
    """Return the public site URL with an explicit scheme and a trailing slash."""

    env_map = env if env is not None else get_runtime_env()
    url = _first_present(env_map, "SITE_URL", "VERCEL_URL") or DEFAULT_SITE_URL
    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"
    if not url.endswith("/"):
        url = f"{url}/"
    return url


def resolve_webhook_secret(env: Mapping[str, Any] | None = None) -> str | None:
    """Return the live webhook secret when configured, otherwise the test secret."""

    env_map = env if env is not None else get_runtime_env()
    return _first_present(env_map, "STRIPE_WEBHOOK_SECRET_LIVE", "STRIPE_WEBHOOK_SECRET")


def _normalise_base_path(raw: str | None) -> str:
    candidate = (raw or "").strip()
    if not candidate:
        return DEFAULT_API_BASE_PATH
    if candidate == "/":
        return ""
    return "/" + candidate.strip("/")


def load_config(runtime_env: Mapping[str, Any] | None = None) -> AppConfig:
    """Load application configuration from the runtime environment."""

    env = runtime_env if runtime_env is not None else get_runtime_env()

    payments = PaymentsConfig(
        secret_key=_first_present(env, "STRIPE_SECRET_KEY_LIVE", "STRIPE_SECRET_KEY"),
        webhook_secret=resolve_webhook_secret(env),
        api_base_url=(
            _env_value(env, "STRIPE_API_BASE") or DEFAULT_PAYMENTS_API_BASE
        ).rstrip("/"),
        api_version=_env_value(env, "STRIPE_API_VERSION") or DEFAULT_PAYMENTS_API_VERSION,
        timeout_ms=max(
            100,
            _as_int(_env_value(env, "STRIPE_TIMEOUT_MS"), default=DEFAULT_PAYMENTS_TIMEOUT_MS),
        ),
        webhook_tolerance_seconds=max(
            0,
            _as_int(
                _env_value(env, "STRIPE_WEBHOOK_TOLERANCE_SEC"),
                default=DEFAULT_WEBHOOK_TOLERANCE_SECONDS,
            ),
        ),
        app_name=_env_value(env, "APP_NAME") or "Soundwave",
        app_version=_env_value(env, "APP_VERSION") or "0.1.0",
    )

    storage_base = _first_present(env, "STORAGE_URL", "SUPABASE_URL")
    storage = StorageConfig(
        base_url=storage_base.rstrip("/") if storage_base else None,
        songs_bucket=_env_value(env, "STORAGE_SONGS_BUCKET") or DEFAULT_SONGS_BUCKET,
        images_bucket=_env_value(env, "STORAGE_IMAGES_BUCKET") or DEFAULT_IMAGES_BUCKET,
    )

    config = AppConfig(
        logging=LoggingConfig(
            level=(_env_value(env, "LOG_LEVEL") or "INFO").upper(),
            file=_first_present(env, "LOG_FILE"),
        ),
        database=DatabaseConfig(url=_env_value(env, "DATABASE_URL") or DEFAULT_DB_URL),
        payments=payments,
        storage=storage,
        site=SiteConfig(url=resolve_site_url(env)),
        api_base_path=_normalise_base_path(_env_value(env, "API_BASE_PATH")),
    )

    if not payments.secret_key:
        logger.info(
            "Payments secret key not configured",
            extra={"event": "config.payments.secret_missing"},
        )
    return config


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "LoggingConfig",
    "PaymentsConfig",
    "SiteConfig",
    "StorageConfig",
    "get_env",
    "get_runtime_env",
    "load_config",
    "load_runtime_env",
    "override_runtime_env",
    "resolve_site_url",
    "resolve_webhook_secret",
]
