from __future__ import annotations

import json
from typing import Any

from sqlalchemy import func, select

from app.billing.signature import sign_payload
from app.db import session_scope
from app.models import Customer, Price, Product, Subscription
from tests.helpers import api_path, create_user, subscription_payload

SECRET = "whsec_test_soundwave"


def _body(event_type: str, payload: dict[str, Any]) -> bytes:
    return json.dumps(
        {"id": "evt_1", "object": "event", "type": event_type, "data": {"object": payload}}
    ).encode("utf-8")


def _post(client, body: bytes, *, signature: str | None = None, sign: bool = True):
    headers = {"Content-Type": "application/json"}
    if signature is None and sign:
        signature = sign_payload(body, SECRET)
    if signature is not None:
        headers["Stripe-Signature"] = signature
    return client.post(api_path("/webhooks"), content=body, headers=headers)


def _row_counts() -> tuple[int, int, int, int]:
    with session_scope() as session:
        return tuple(  # type: ignore[return-value]
            session.scalar(select(func.count()).select_from(model))
            for model in (Product, Price, Subscription, Customer)
        )


def test_unsigned_webhook_is_rejected_without_writes(client) -> None:
    body = _body("product.created", {"id": "prod_1", "active": True})

    response = _post(client, body, sign=False)

    assert response.status_code == 400
    payload = response.json()
    assert payload["ok"] is False
    assert payload["error"]["code"] == "VALIDATION_ERROR"
    assert "Missing signature" in payload["error"]["message"]
    assert _row_counts() == (0, 0, 0, 0)


def test_forged_signature_is_rejected_without_writes(client) -> None:
    body = _body("product.created", {"id": "prod_1", "active": True})

    response = _post(client, body, signature=sign_payload(body, "whsec_forged"))

    assert response.status_code == 400
    assert response.json()["error"]["message"].startswith("Webhook Error: No signatures found")
    assert _row_counts() == (0, 0, 0, 0)


def test_missing_webhook_secret_rejects_every_notification(client, monkeypatch) -> None:
    from app.config import override_runtime_env
    from app.dependencies import get_app_config

    monkeypatch.delenv("STRIPE_WEBHOOK_SECRET")
    override_runtime_env(None)
    get_app_config.cache_clear()
    body = _body("product.created", {"id": "prod_1"})

    response = _post(client, body)

    assert response.status_code == 400
    assert _row_counts() == (0, 0, 0, 0)


def test_ignored_event_type_is_acknowledged_without_writes(client, payments_provider) -> None:
    body = _body("invoice.paid", {"id": "in_1", "customer": "cus_1"})

    response = _post(client, body)

    assert response.status_code == 200
    assert response.json() == {"received": True}
    assert _row_counts() == (0, 0, 0, 0)
    assert payments_provider.requests == []


def test_plan_and_price_events_are_stored(client) -> None:
    plan = _post(client, _body("product.created", {"id": "prod_1", "active": True, "name": "Pro"}))
    price = _post(
        client,
        _body(
            "price.created",
            {
                "id": "price_1",
                "product": "prod_1",
                "active": True,
                "unit_amount": 999,
                "currency": "usd",
                "type": "recurring",
                "recurring": {"interval": "month", "interval_count": 1},
            },
        ),
    )

    assert plan.status_code == 200
    assert price.status_code == 200
    with session_scope() as session:
        assert session.get(Product, "prod_1").name == "Pro"
        assert session.get(Price, "price_1").interval == "month"


def test_subscription_deleted_marks_record_canceled(client, payments_provider) -> None:
    user_id = create_user()
    with session_scope() as session:
        session.add(Customer(id=user_id, stripe_customer_id="cus_1"))
    payments_provider.subscriptions["sub_1"] = subscription_payload(status="active")
    updated = _post(
        client, _body("customer.subscription.updated", {"id": "sub_1", "customer": "cus_1"})
    )
    assert updated.status_code == 200

    payments_provider.subscriptions["sub_1"]["status"] = "canceled"
    response = _post(
        client, _body("customer.subscription.deleted", {"id": "sub_1", "customer": "cus_1"})
    )

    assert response.status_code == 200
    with session_scope() as session:
        assert session.get(Subscription, "sub_1").status == "canceled"
    assert payments_provider.calls("POST", "/v1/customers/cus_1") == []


def test_completed_checkout_performs_one_upsert_with_create_flag(
    client, payments_provider
) -> None:
    user_id = create_user()
    with session_scope() as session:
        session.add(Customer(id=user_id, stripe_customer_id="cus_1"))
    payments_provider.subscriptions["sub_1"] = subscription_payload(
        payment_method={
            "customer": "cus_1",
            "type": "card",
            "card": {"last4": "4242"},
            "billing_details": {"name": "Ada", "phone": "+1555", "address": {"city": "Oslo"}},
        }
    )

    response = _post(
        client,
        _body(
            "checkout.session.completed",
            {"id": "cs_1", "mode": "subscription", "subscription": "sub_1", "customer": "cus_1"},
        ),
    )

    assert response.status_code == 200
    assert len(payments_provider.calls("GET", "/v1/subscriptions/sub_1")) == 1
    assert len(payments_provider.calls("POST", "/v1/customers/cus_1")) == 1
    assert _row_counts()[2] == 1


def test_handler_failure_is_reported_as_generic_client_error(client, payments_provider) -> None:
    payments_provider.subscriptions["sub_1"] = subscription_payload(customer="cus_orphan")

    response = _post(
        client,
        _body("customer.subscription.created", {"id": "sub_1", "customer": "cus_orphan"}),
    )

    assert response.status_code == 400
    assert response.json()["error"]["message"] == (
        "Webhook Error: Webhook handler failed. View logs."
    )
    assert _row_counts()[2] == 0


def test_malformed_json_is_rejected(client) -> None:
    body = b"not-json"

    response = _post(client, body)

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Webhook Error: Invalid payload"


def test_non_ascii_signature_header_is_rejected_without_writes(client) -> None:
    body = _body("product.created", {"id": "prod_1", "active": True})

    response = client.post(
        api_path("/webhooks"),
        content=body,
        headers=[
            (b"Content-Type", b"application/json"),
            (b"Stripe-Signature", b"t=1,v1=\xe9"),
        ],
    )

    assert response.status_code == 400
    assert response.json()["error"]["message"].startswith("Webhook Error: No signatures found")
    assert _row_counts() == (0, 0, 0, 0)
