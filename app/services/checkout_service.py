"""Checkout and billing-portal session creation."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from app.billing.store import BillingStore
from app.core.payments_client import PaymentsClient
from app.logging import get_logger
from app.logging_events import log_event

logger = get_logger(__name__)


@dataclass(slots=True, frozen=True)
class CheckoutUser:
    id: str
    email: str | None


def site_link(site_url: str, path: str = "") -> str:
    """Join ``path`` onto the site URL without doubling slashes."""

    return site_url.rstrip("/") + "/" + path.lstrip("/")


class CheckoutService:
    def __init__(self, payments: PaymentsClient, store: BillingStore, *, site_url: str) -> None:
        self._payments = payments
        self._store = store
        self._site_url = site_url

    async def _resolve_customer(self, user: CheckoutUser | None) -> str:
        if user is None:
            # No user to link, so the cross-reference is not stored.
            created = await self._payments.create_customer()
            return str(created["id"])
        return await self._store.create_or_retrieve_customer(user_id=user.id, email=user.email)

    async def create_checkout_session(
        self,
        *,
        price_id: str,
        quantity: int = 1,
        metadata: Mapping[str, Any] | None = None,
        user: CheckoutUser | None = None,
    ) -> str:
        customer = await self._resolve_customer(user)
        session = await self._payments.create_checkout_session(
            payment_method_types=["card"],
            billing_address_collection="required",
            customer=customer,
            line_items=[{"price": price_id, "quantity": quantity}],
            mode="subscription",
            allow_promotion_codes=True,
            subscription_data={"trial_from_plan": True, "metadata": dict(metadata or {})},
            success_url=site_link(self._site_url, "account"),
            cancel_url=site_link(self._site_url),
        )
        session_id = str(session["id"])
        log_event(
            logger,
            "billing.checkout.created",
            entity_id=session_id,
            price_id=price_id,
            anonymous=user is None,
        )
        return session_id

    async def create_portal_link(self, user: CheckoutUser) -> str:
        customer = await self._store.create_or_retrieve_customer(user_id=user.id, email=user.email)
        if not customer:
            raise LookupError("Could not get customer")
        session = await self._payments.create_billing_portal_session(
            customer=customer,
            return_url=site_link(self._site_url, "account"),
        )
        return str(session["url"])


__all__ = ["CheckoutService", "CheckoutUser", "site_link"]
