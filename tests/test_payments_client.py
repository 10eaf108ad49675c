from __future__ import annotations

import httpx
import pytest

from app.config import load_config
from app.core.payments_client import PaymentsClient, PaymentsClientError, encode_form


def _client(handler, **overrides) -> PaymentsClient:
    config = load_config()
    for key, value in overrides.items():
        setattr(config.payments, key, value)
    transport = httpx.MockTransport(handler)
    return PaymentsClient(
        config.payments, client_factory=lambda: httpx.AsyncClient(transport=transport)
    )


def test_encode_form_uses_bracket_notation() -> None:
    encoded = encode_form(
        {
            "mode": "subscription",
            "allow_promotion_codes": True,
            "line_items": [{"price": "price_1", "quantity": 1}],
            "subscription_data": {"metadata": {"plan": "pro"}},
            "skipped": None,
        }
    )

    assert encoded == [
        ("mode", "subscription"),
        ("allow_promotion_codes", "true"),
        ("line_items[0][price]", "price_1"),
        ("line_items[0][quantity]", "1"),
        ("subscription_data[metadata][plan]", "pro"),
    ]


@pytest.mark.asyncio
async def test_requests_carry_credentials_and_api_version() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "cus_1"})

    client = _client(handler)

    result = await client.create_customer(email="a@example.com", metadata={"user_id": "u1"})

    assert result == {"id": "cus_1"}
    request = seen[0]
    assert request.url.path == "/v1/customers"
    assert request.headers["Authorization"] == "Bearer sk_test_soundwave"
    assert request.headers["Stripe-Version"] == "2022-11-15"
    assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"


@pytest.mark.asyncio
async def test_provider_error_message_is_surfaced() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(402, json={"error": {"message": "Your card was declined."}})

    client = _client(handler)

    with pytest.raises(PaymentsClientError) as excinfo:
        await client.create_checkout_session(mode="subscription")

    assert excinfo.value.status_code == 402
    assert "Your card was declined." in str(excinfo.value)


@pytest.mark.asyncio
async def test_timeouts_are_reported_as_client_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    client = _client(handler)

    with pytest.raises(PaymentsClientError) as excinfo:
        await client.retrieve_subscription("sub_1")

    assert excinfo.value.status_code == 408


@pytest.mark.asyncio
async def test_missing_secret_key_fails_before_any_request() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    client = _client(handler, secret_key=None)

    with pytest.raises(PaymentsClientError):
        await client.create_billing_portal_session(customer="cus_1", return_url="https://x/")

    assert calls == []


@pytest.mark.asyncio
async def test_non_json_success_body_is_rejected() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>")

    client = _client(handler)

    with pytest.raises(PaymentsClientError, match="invalid JSON"):
        await client.update_customer("cus_1", name="Ada")
