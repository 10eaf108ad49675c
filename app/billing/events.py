"""Billing event types and the reducer mapping them to persistence actions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, assert_never

from pydantic import BaseModel, ConfigDict, Field


class BillingEventType(str, Enum):
    """Provider notifications the application acts upon."""

    PLAN_CREATED = "product.created"
    PLAN_UPDATED = "product.updated"
    PRICE_CREATED = "price.created"
    PRICE_UPDATED = "price.updated"
    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"

    @classmethod
    def lookup(cls, raw: str) -> BillingEventType | None:
        try:
            return cls(raw)
        except ValueError:
            return None


class BillingEventData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    object: dict[str, Any] = Field(default_factory=dict)


class BillingEvent(BaseModel):
    """Inbound notification; ``data.object`` is interpreted according to ``type``."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    type: str
    data: BillingEventData = Field(default_factory=BillingEventData)

    @property
    def payload(self) -> dict[str, Any]:
        return self.data.object


class MalformedEventError(ValueError):
    """Raised when a relevant event lacks the fields its handler needs."""


@dataclass(slots=True, frozen=True)
class UpsertPlan:
    product: dict[str, Any]


@dataclass(slots=True, frozen=True)
class UpsertPrice:
    price: dict[str, Any]


@dataclass(slots=True, frozen=True)
class UpsertSubscription:
    subscription_id: str
    customer_id: str
    create: bool


BillingAction = UpsertPlan | UpsertPrice | UpsertSubscription


def _require_str(payload: dict[str, Any], key: str, *, event_type: str) -> str:
    value = payload.get(key)
    if isinstance(value, dict):
        value = value.get("id")
    if not isinstance(value, str) or not value:
        raise MalformedEventError(f"{event_type} event is missing '{key}'")
    return value


def reduce_event(event: BillingEvent) -> BillingAction | None:
    """Return the persistence action for ``event``; ``None`` means ignore it."""

    event_type = BillingEventType.lookup(event.type)
    if event_type is None:
        return None

    payload = event.payload
    match event_type:
        case BillingEventType.PLAN_CREATED | BillingEventType.PLAN_UPDATED:
            return UpsertPlan(product=payload)
        case BillingEventType.PRICE_CREATED | BillingEventType.PRICE_UPDATED:
            return UpsertPrice(price=payload)
        case BillingEventType.SUBSCRIPTION_CREATED:
            return UpsertSubscription(
                subscription_id=_require_str(payload, "id", event_type=event.type),
                customer_id=_require_str(payload, "customer", event_type=event.type),
                create=True,
            )
        case BillingEventType.SUBSCRIPTION_UPDATED | BillingEventType.SUBSCRIPTION_DELETED:
            return UpsertSubscription(
                subscription_id=_require_str(payload, "id", event_type=event.type),
                customer_id=_require_str(payload, "customer", event_type=event.type),
                create=False,
            )
        case BillingEventType.CHECKOUT_SESSION_COMPLETED:
            if payload.get("mode") != "subscription":
                return None
            return UpsertSubscription(
                subscription_id=_require_str(payload, "subscription", event_type=event.type),
                customer_id=_require_str(payload, "customer", event_type=event.type),
                create=True,
            )
        case _:
            assert_never(event_type)


__all__ = [
    "BillingAction",
    "BillingEvent",
    "BillingEventType",
    "MalformedEventError",
    "UpsertPlan",
    "UpsertPrice",
    "UpsertSubscription",
    "reduce_event",
]
