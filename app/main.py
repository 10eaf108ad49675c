"""Entry point for the Soundwave FastAPI application."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI

from app.api import router_registry
from app.config import AppConfig, load_config
from app.db import init_db
from app.dependencies import get_app_config
from app.logging import configure_logging, get_logger
from app.logging_events import log_event
from app.middleware import install_middleware

logger = get_logger(__name__)
_APP_START_TIME = datetime.now(UTC)
_LIVE_HEALTH_PATH = "/live"
_APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    config = get_app_config()
    configure_logging(config.logging.level, config.logging.file)
    init_db()
    app.state.config_snapshot = config
    log_event(
        logger,
        "app.startup",
        component="app",
        status="ok",
        api_base_path=config.api_base_path or "/",
        payments_configured=bool(config.payments.secret_key),
        webhooks_configured=bool(config.payments.webhook_secret),
    )
    try:
        yield
    finally:
        logger.info("Soundwave application stopped", extra={"event": "app.shutdown"})


def create_app(config: AppConfig | None = None) -> FastAPI:
    """Build the application with routers mounted below the API base path."""

    snapshot = config or load_config()
    base_path = snapshot.api_base_path

    app = FastAPI(
        title="Soundwave API",
        version=_APP_VERSION,
        lifespan=lifespan,
        docs_url=router_registry.compose_prefix(base_path, "/docs"),
        redoc_url=router_registry.compose_prefix(base_path, "/redoc"),
        openapi_url=router_registry.compose_prefix(base_path, "/openapi.json"),
    )
    app.state.api_base_path = base_path
    app.state.start_time = _APP_START_TIME

    install_middleware(app)
    router_registry.register_all(app, base_path=base_path)

    async def live_probe() -> dict[str, str]:
        """Expose a top-level liveness probe independent of other routers."""

        return {"status": "ok", "version": app.version}

    app.add_api_route(
        _LIVE_HEALTH_PATH,
        live_probe,
        methods=["GET"],
        include_in_schema=False,
        tags=["System"],
    )
    return app


app = create_app()
