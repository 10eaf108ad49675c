"""Subscription lifecycle: webhook verification, event reduction and persistence."""

from app.billing.events import BillingEvent, BillingEventType, reduce_event
from app.billing.store import BillingStore
from app.billing.webhooks import WebhookOutcome, WebhookRejectedError, WebhookService

__all__ = [
    "BillingEvent",
    "BillingEventType",
    "BillingStore",
    "WebhookOutcome",
    "WebhookRejectedError",
    "WebhookService",
    "reduce_event",
]
