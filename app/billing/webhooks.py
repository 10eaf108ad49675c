"""Validation and dispatch of payments-provider webhook notifications."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import time
from typing import assert_never

from pydantic import ValidationError

from app.billing.events import (
    BillingAction,
    BillingEvent,
    UpsertPlan,
    UpsertPrice,
    UpsertSubscription,
    reduce_event,
)
from app.billing.signature import (
    DEFAULT_TOLERANCE_SECONDS,
    SignatureVerificationError,
    verify_signature,
)
from app.billing.store import BillingStore
from app.errors import ValidationAppError
from app.logging import get_logger
from app.logging_events import log_event

logger = get_logger(__name__)

HANDLER_FAILED_MESSAGE = "Webhook handler failed. View logs."


class WebhookRejectedError(ValidationAppError):
    """Notification refused before or during dispatch; answered with HTTP 400."""


@dataclass(slots=True, frozen=True)
class WebhookOutcome:
    event_type: str
    handled: bool


class WebhookService:
    """Authenticate a notification, reduce it to an action and apply it."""

    def __init__(
        self,
        store: BillingStore,
        *,
        tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._tolerance = tolerance_seconds
        self._clock = clock

    def construct_event(
        self, raw_body: bytes, signature_header: str | None, webhook_secret: str | None
    ) -> BillingEvent:
        if not signature_header or not webhook_secret:
            logger.warning(
                "Webhook rejected without signature material",
                extra={
                    "event": "billing.webhook.unsigned",
                    "has_signature": bool(signature_header),
                    "has_secret": bool(webhook_secret),
                },
            )
            raise WebhookRejectedError("Webhook Error: Missing signature or webhook secret")

        try:
            verify_signature(
                raw_body,
                signature_header,
                webhook_secret,
                tolerance=self._tolerance,
                clock=self._clock,
            )
            return BillingEvent.model_validate_json(raw_body)
        except (SignatureVerificationError, ValidationError) as exc:
            message = str(exc) if isinstance(exc, SignatureVerificationError) else "Invalid payload"
            logger.warning(
                "Webhook verification failed: %s",
                message,
                extra={"event": "billing.webhook.invalid"},
            )
            raise WebhookRejectedError(f"Webhook Error: {message}") from exc

    async def apply(self, action: BillingAction) -> None:
        match action:
            case UpsertPlan(product=product):
                await self._store.upsert_plan_record(product)
            case UpsertPrice(price=price):
                await self._store.upsert_price_record(price)
            case UpsertSubscription(subscription_id=sub_id, customer_id=cust_id, create=create):
                await self._store.manage_subscription_status_change(sub_id, cust_id, create)
            case _:
                assert_never(action)

    async def handle_event(
        self,
        raw_body: bytes,
        signature_header: str | None,
        webhook_secret: str | None,
    ) -> WebhookOutcome:
        event = self.construct_event(raw_body, signature_header, webhook_secret)

        try:
            action = reduce_event(event)
            if action is not None:
                await self.apply(action)
        except Exception as exc:
            logger.exception(
                "Webhook handler failed for %s",
                event.type,
                extra={"event": "billing.webhook.failed", "event_id": event.id},
            )
            raise WebhookRejectedError(f"Webhook Error: {HANDLER_FAILED_MESSAGE}") from exc

        log_event(
            logger,
            "billing.webhook.received",
            event_type=event.type,
            event_id=event.id,
            handled=action is not None,
        )
        return WebhookOutcome(event_type=event.type, handled=action is not None)


__all__ = [
    "HANDLER_FAILED_MESSAGE",
    "WebhookOutcome",
    "WebhookRejectedError",
    "WebhookService",
]
