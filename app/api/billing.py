"""Billing API: provider webhooks, hosted checkout and the customer portal."""

from __future__ import annotations

from time import perf_counter
from typing import Any

from fastapi import APIRouter, Depends, Request, status

from app.billing.signature import SIGNATURE_HEADER
from app.billing.webhooks import WebhookService
from app.dependencies import (
    CurrentUser,
    get_app_config,
    get_checkout_service,
    get_current_user,
    get_webhook_service,
    require_user,
)
from app.errors import AppError, InternalServerError
from app.logging import get_logger
from app.logging_events import log_event
from app.schemas.billing import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    PortalLinkResponse,
    WebhookReceipt,
)
from app.services.checkout_service import CheckoutService, CheckoutUser

router = APIRouter(tags=["Billing"])
_logger = get_logger(__name__)

_INTERNAL_ERROR_MESSAGE = "Internal Error"


def _emit_api_event(
    request: Request,
    *,
    status_code: int,
    status: str,
    duration_ms: float,
    error: str | None = None,
    meta: dict[str, Any] | None = None,
) -> None:
    payload: dict[str, Any] = {
        "component": "api.billing",
        "status": status,
        "method": request.method,
        "path": request.url.path,
        "status_code": status_code,
        "duration_ms": round(duration_ms, 3),
        "entity_id": getattr(request.state, "request_id", None),
    }
    if error:
        payload["error"] = error
    if meta:
        payload["meta"] = meta
    log_event(_logger, "api.request", **payload)


def _checkout_user(user: CurrentUser | None) -> CheckoutUser | None:
    if user is None:
        return None
    return CheckoutUser(id=user.id, email=user.email)


@router.post("/webhooks", response_model=WebhookReceipt)
async def receive_webhook(
    request: Request,
    service: WebhookService = Depends(get_webhook_service),
) -> WebhookReceipt:
    started = perf_counter()
    raw_body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)
    secret = get_app_config().payments.webhook_secret
    try:
        outcome = await service.handle_event(raw_body, signature, secret)
    except AppError as exc:
        _emit_api_event(
            request,
            status_code=exc.http_status,
            status="error",
            duration_ms=(perf_counter() - started) * 1000,
            error=exc.code,
        )
        raise

    _emit_api_event(
        request,
        status_code=status.HTTP_200_OK,
        status="ok",
        duration_ms=(perf_counter() - started) * 1000,
        meta={"event_type": outcome.event_type, "handled": outcome.handled},
    )
    return WebhookReceipt(received=True)


@router.post(
    "/create-checkout-session",
    response_model=CheckoutSessionResponse,
    response_model_by_alias=True,
)
async def create_checkout_session(
    payload: CheckoutSessionRequest,
    request: Request,
    user: CurrentUser | None = Depends(get_current_user),
    service: CheckoutService = Depends(get_checkout_service),
) -> CheckoutSessionResponse:
    started = perf_counter()
    try:
        session_id = await service.create_checkout_session(
            price_id=payload.price.id,
            quantity=payload.quantity,
            metadata=payload.metadata,
            user=_checkout_user(user),
        )
    except Exception as exc:
        _logger.exception(
            "Checkout session creation failed",
            extra={"event": "billing.checkout.failed", "price_id": payload.price.id},
        )
        _emit_api_event(
            request,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            status="error",
            duration_ms=(perf_counter() - started) * 1000,
            error="checkout_failed",
            meta={"price_id": payload.price.id},
        )
        raise InternalServerError(_INTERNAL_ERROR_MESSAGE) from exc

    _emit_api_event(
        request,
        status_code=status.HTTP_200_OK,
        status="ok",
        duration_ms=(perf_counter() - started) * 1000,
        meta={"price_id": payload.price.id, "anonymous": user is None},
    )
    return CheckoutSessionResponse(session_id=session_id)


@router.post("/create-portal-link", response_model=PortalLinkResponse)
async def create_portal_link(
    request: Request,
    user: CurrentUser = Depends(require_user),
    service: CheckoutService = Depends(get_checkout_service),
) -> PortalLinkResponse:
    started = perf_counter()
    try:
        url = await service.create_portal_link(CheckoutUser(id=user.id, email=user.email))
    except Exception as exc:
        _logger.exception(
            "Billing portal link creation failed",
            extra={"event": "billing.portal.failed", "user_id": user.id},
        )
        _emit_api_event(
            request,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            status="error",
            duration_ms=(perf_counter() - started) * 1000,
            error="portal_failed",
        )
        raise InternalServerError(_INTERNAL_ERROR_MESSAGE) from exc

    _emit_api_event(
        request,
        status_code=status.HTTP_200_OK,
        status="ok",
        duration_ms=(perf_counter() - started) * 1000,
    )
    return PortalLinkResponse(url=url)


__all__ = ["router"]
