"""FastAPI dependency providers."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.billing.store import BillingStore
from app.billing.webhooks import WebhookService
from app.config import AppConfig, load_config
from app.core.payments_client import PaymentsClient
from app.db import run_session
from app.errors import AuthenticationRequiredError
from app.logging import get_logger
from app.models import User, UserSession
from app.services.catalog_service import CatalogService
from app.services.checkout_service import CheckoutService
from app.services.storage import StorageService

logger = get_logger(__name__)

_BEARER_PREFIX = "bearer "


@dataclass(slots=True, frozen=True)
class CurrentUser:
    """Identity resolved from the access token presented with a request."""

    id: str
    email: str | None


@lru_cache
def get_app_config() -> AppConfig:
    return load_config()


@lru_cache
def get_payments_client() -> PaymentsClient:
    return PaymentsClient(get_app_config().payments)


def get_billing_store(
    payments: PaymentsClient = Depends(get_payments_client),
) -> BillingStore:
    return BillingStore(payments)


def get_webhook_service(store: BillingStore = Depends(get_billing_store)) -> WebhookService:
    return WebhookService(
        store,
        tolerance_seconds=get_app_config().payments.webhook_tolerance_seconds,
    )


def get_checkout_service(
    payments: PaymentsClient = Depends(get_payments_client),
    store: BillingStore = Depends(get_billing_store),
) -> CheckoutService:
    return CheckoutService(payments, store, site_url=get_app_config().site.url)


@lru_cache
def get_catalog_service() -> CatalogService:
    return CatalogService()


@lru_cache
def get_storage_service() -> StorageService:
    return StorageService(get_app_config().storage)


def _extract_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "").strip()
    if header.lower().startswith(_BEARER_PREFIX):
        token = header[len(_BEARER_PREFIX) :].strip()
        return token or None
    return None


async def get_current_user(request: Request) -> CurrentUser | None:
    """Resolve the signed-in user, or ``None`` for anonymous requests."""

    token = _extract_token(request)
    if token is None:
        return None

    def _lookup(session: Session) -> CurrentUser | None:
        record = session.get(UserSession, token)
        if record is None:
            return None
        user = session.get(User, record.user_id)
        if user is None:
            return None
        return CurrentUser(id=user.id, email=user.email)

    user = await run_session(_lookup)
    if user is None:
        logger.info(
            "Unknown access token presented",
            extra={"event": "auth.token_unknown", "path": request.url.path},
        )
    return user


async def require_user(user: CurrentUser | None = Depends(get_current_user)) -> CurrentUser:
    if user is None:
        raise AuthenticationRequiredError()
    return user


__all__ = [
    "CurrentUser",
    "get_app_config",
    "get_billing_store",
    "get_catalog_service",
    "get_checkout_service",
    "get_current_user",
    "get_payments_client",
    "get_storage_service",
    "get_webhook_service",
    "require_user",
]
