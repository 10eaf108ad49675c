"""Persistence of plans, prices, customers and subscriptions from provider payloads."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.payments_client import PaymentsClient
from app.db import SessionFactory, run_session, session_scope
from app.logging import get_logger
from app.logging_events import log_event
from app.models import Customer, Price, Product, Subscription, SubscriptionStatus, User

logger = get_logger(__name__)

# Metadata key written on provider customers to point back at the user.
CUSTOMER_USER_METADATA_KEY = "user_id"


class CustomerLookupError(LookupError):
    """Raised when a provider customer has no matching user."""


def to_datetime(epoch_seconds: Any) -> datetime | None:
    if epoch_seconds is None:
        return None
    return datetime.fromtimestamp(int(epoch_seconds), UTC)


def _reference_id(value: Any) -> str | None:
    if isinstance(value, Mapping):
        value = value.get("id")
    return value if isinstance(value, str) and value else None


def product_row(product: Mapping[str, Any]) -> dict[str, Any]:
    images = product.get("images") or []
    return {
        "id": product["id"],
        "active": bool(product.get("active", False)),
        "name": product.get("name"),
        "description": product.get("description"),
        "image": images[0] if images else None,
        "metadata_json": dict(product.get("metadata") or {}),
    }


def price_row(price: Mapping[str, Any]) -> dict[str, Any]:
    recurring = price.get("recurring") or {}
    return {
        "id": price["id"],
        "product_id": _reference_id(price.get("product")),
        "active": bool(price.get("active", False)),
        "currency": price.get("currency"),
        "description": price.get("nickname"),
        "type": price.get("type"),
        "unit_amount": price.get("unit_amount"),
        "interval": recurring.get("interval"),
        "interval_count": recurring.get("interval_count"),
        "trial_period_days": recurring.get("trial_period_days"),
        "metadata_json": dict(price.get("metadata") or {}),
    }


def subscription_row(subscription: Mapping[str, Any], *, user_id: str) -> dict[str, Any]:
    items = (subscription.get("items") or {}).get("data") or []
    first_item: Mapping[str, Any] = items[0] if items else {}
    now = datetime.now(UTC)

    def _period(key: str) -> datetime | None:
        return to_datetime(subscription.get(key, first_item.get(key)))

    return {
        "id": subscription["id"],
        "user_id": user_id,
        "metadata_json": dict(subscription.get("metadata") or {}),
        "status": SubscriptionStatus(subscription.get("status")).value,
        "price_id": _reference_id(first_item.get("price")),
        "quantity": subscription.get("quantity", first_item.get("quantity")),
        "cancel_at_period_end": subscription.get("cancel_at_period_end"),
        "cancel_at": to_datetime(subscription.get("cancel_at")),
        "canceled_at": to_datetime(subscription.get("canceled_at")),
        "current_period_start": _period("current_period_start"),
        "current_period_end": _period("current_period_end"),
        "created": to_datetime(subscription.get("created")) or now,
        "ended_at": to_datetime(subscription.get("ended_at")),
        "trial_start": to_datetime(subscription.get("trial_start")),
        "trial_end": to_datetime(subscription.get("trial_end")),
    }


class BillingStore:
    """Idempotent upserts keyed by provider-issued identifiers."""

    def __init__(
        self,
        payments: PaymentsClient,
        *,
        session_factory: SessionFactory = session_scope,
    ) -> None:
        self._payments = payments
        self._session_factory = session_factory

    async def _run(self, func: Any) -> Any:
        return await run_session(func, factory=self._session_factory)

    async def upsert_plan_record(self, product: Mapping[str, Any]) -> None:
        row = product_row(product)
        await self._run(lambda session: session.merge(Product(**row)))
        log_event(logger, "billing.plan.upserted", entity_id=row["id"], active=row["active"])

    async def upsert_price_record(self, price: Mapping[str, Any]) -> None:
        row = price_row(price)
        await self._run(lambda session: session.merge(Price(**row)))
        log_event(
            logger,
            "billing.price.upserted",
            entity_id=row["id"],
            product_id=row["product_id"],
        )

    async def find_customer(self, user_id: str) -> str | None:
        def _lookup(session: Session) -> str | None:
            record = session.get(Customer, user_id)
            return record.stripe_customer_id if record is not None else None

        return await self._run(_lookup)

    async def create_or_retrieve_customer(self, *, user_id: str, email: str | None) -> str:
        """Return the provider customer for ``user_id``, creating it on first use."""

        existing = await self.find_customer(user_id)
        if existing:
            return existing

        created = await self._payments.create_customer(
            email=email or None,
            metadata={CUSTOMER_USER_METADATA_KEY: user_id},
        )
        customer_id = str(created["id"])

        def _persist(session: Session) -> str:
            session.add(Customer(id=user_id, stripe_customer_id=customer_id))
            session.flush()
            return customer_id

        try:
            stored = await self._run(_persist)
        except IntegrityError:
            # A concurrent request stored a mapping first; that one wins.
            winner = await self.find_customer(user_id)
            if winner is None:
                raise
            logger.warning(
                "Discarding duplicate provider customer",
                extra={
                    "event": "billing.customer.duplicate",
                    "user_id": user_id,
                    "customer_id": customer_id,
                },
            )
            return winner

        log_event(logger, "billing.customer.created", entity_id=user_id, customer_id=stored)
        return stored

    async def copy_billing_details_to_customer(
        self, user_id: str, payment_method: Mapping[str, Any]
    ) -> None:
        customer = _reference_id(payment_method.get("customer"))
        details = payment_method.get("billing_details") or {}
        name = details.get("name")
        phone = details.get("phone")
        address = details.get("address")
        if not customer or not name or not phone or not address:
            return

        await self._payments.update_customer(customer, name=name, phone=phone, address=address)

        method_type = payment_method.get("type")
        method_details = dict(payment_method.get(method_type) or {}) if method_type else {}

        def _update(session: Session) -> bool:
            user = session.get(User, user_id)
            if user is None:
                return False
            user.billing_address = dict(address)
            user.payment_method = method_details
            return True

        if not await self._run(_update):
            logger.warning(
                "Billing details target user not found",
                extra={"event": "billing.user_missing", "user_id": user_id},
            )

    async def manage_subscription_status_change(
        self, subscription_id: str, customer_id: str, create: bool = False
    ) -> None:
        """Refresh the stored subscription from the provider's current view of it."""

        def _lookup_user(session: Session) -> str | None:
            return session.execute(
                select(Customer.id).where(Customer.stripe_customer_id == customer_id)
            ).scalar_one_or_none()

        user_id = await self._run(_lookup_user)
        if user_id is None:
            raise CustomerLookupError(f"No user is linked to customer {customer_id}")

        subscription = await self._payments.retrieve_subscription(
            subscription_id, expand=["default_payment_method"]
        )
        row = subscription_row(subscription, user_id=user_id)
        await self._run(lambda session: session.merge(Subscription(**row)))

        log_event(
            logger,
            "billing.subscription.upserted",
            entity_id=row["id"],
            user_id=user_id,
            status=row["status"],
            create=create,
        )

        payment_method = subscription.get("default_payment_method")
        if create and isinstance(payment_method, Mapping):
            await self.copy_billing_details_to_customer(user_id, payment_method)


__all__ = [
    "BillingStore",
    "CustomerLookupError",
    "price_row",
    "product_row",
    "subscription_row",
    "to_datetime",
]
