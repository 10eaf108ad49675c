"""Shared test utilities: API paths, seeded users and a fake payments provider."""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import parse_qsl

import httpx

from app.config import load_config
from app.core.payments_client import PaymentsClient
from app.db import session_scope
from app.dependencies import get_app_config
from app.models import User, UserSession


def api_path(path: str = "") -> str:
    """Return an absolute API path honouring the configured base prefix."""

    base_path = get_app_config().api_base_path or ""
    normalized_path = path.strip()
    if normalized_path and not normalized_path.startswith("/"):
        normalized_path = f"/{normalized_path}"
    return f"{base_path.rstrip('/')}{normalized_path}" or "/"


def create_user(
    *, email: str | None = "listener@example.com", token: str | None = "token-1"
) -> str:
    with session_scope() as session:
        user = User(email=email)
        session.add(user)
        session.flush()
        if token is not None:
            session.add(UserSession(token=token, user_id=user.id))
        return user.id


def auth_headers(token: str = "token-1") -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def form_fields(request: httpx.Request) -> dict[str, str]:
    return dict(parse_qsl(request.content.decode("utf-8"), keep_blank_values=True))


class FakePaymentsProvider:
    """In-memory stand-in for the provider REST API served via ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.subscriptions: dict[str, dict[str, Any]] = {}
        self.failing_paths: set[str] = set()
        self._customer_seq = 0

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == method and request.url.path == path
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path in self.failing_paths:
            return httpx.Response(500, json={"error": {"message": "provider exploded"}})

        if request.method == "POST" and path == "/v1/customers":
            self._customer_seq += 1
            return httpx.Response(200, json={"id": f"cus_{self._customer_seq}"})
        if request.method == "POST" and path.startswith("/v1/customers/"):
            return httpx.Response(200, json={"id": path.rsplit("/", 1)[-1]})
        if request.method == "GET" and path.startswith("/v1/subscriptions/"):
            subscription_id = path.rsplit("/", 1)[-1]
            subscription = self.subscriptions.get(subscription_id)
            if subscription is None:
                return httpx.Response(404, json={"error": {"message": "No such subscription"}})
            return httpx.Response(200, content=json.dumps(subscription).encode("utf-8"))
        if request.method == "POST" and path == "/v1/checkout/sessions":
            return httpx.Response(200, json={"id": "cs_test_1", "object": "checkout.session"})
        if request.method == "POST" and path == "/v1/billing_portal/sessions":
            return httpx.Response(
                200, json={"id": "bps_1", "url": "https://billing.example/session/bps_1"}
            )
        return httpx.Response(404, json={"error": {"message": f"Unknown route {path}"}})

    def client(self) -> PaymentsClient:
        transport = httpx.MockTransport(self.handler)
        return PaymentsClient(
            load_config().payments,
            client_factory=lambda: httpx.AsyncClient(transport=transport),
        )


def subscription_payload(
    subscription_id: str = "sub_1",
    *,
    customer: str = "cus_1",
    status: str = "active",
    price: str = "price_1",
    payment_method: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "id": subscription_id,
        "object": "subscription",
        "customer": customer,
        "status": status,
        "metadata": {},
        "quantity": 1,
        "cancel_at_period_end": False,
        "created": 1_700_000_000,
        "current_period_start": 1_700_000_000,
        "current_period_end": 1_702_592_000,
        "cancel_at": None,
        "canceled_at": None,
        "ended_at": None,
        "trial_start": None,
        "trial_end": None,
        "items": {"data": [{"price": {"id": price}, "quantity": 1}]},
        "default_payment_method": payment_method,
    }
