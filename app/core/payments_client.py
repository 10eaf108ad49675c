"""Async client for the payments provider REST API (Stripe wire format)."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence
import json
from typing import Any
from urllib.parse import urlencode

import httpx

from app.config import PaymentsConfig
from app.logging import get_logger

logger = get_logger(__name__)

_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class PaymentsClientError(RuntimeError):
    """Raised when the payments provider returns an error or cannot be reached."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        payload: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


def _encode_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _flatten(prefix: str, value: Any) -> Iterator[tuple[str, str]]:
    if value is None:
        return
    if isinstance(value, Mapping):
        for key, nested in value.items():
            yield from _flatten(f"{prefix}[{key}]" if prefix else str(key), nested)
        return
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        for index, nested in enumerate(value):
            yield from _flatten(f"{prefix}[{index}]", nested)
        return
    yield prefix, _encode_scalar(value)


def encode_form(params: Mapping[str, Any]) -> list[tuple[str, str]]:
    """Encode nested parameters using the provider's bracket notation.

    ``{"line_items": [{"price": "p_1"}]}`` becomes ``line_items[0][price]=p_1``.
    """

    return list(_flatten("", params))


class PaymentsClient:
    """Thin wrapper over the provider endpoints used by the billing flows."""

    def __init__(
        self,
        config: PaymentsConfig,
        *,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
    ) -> None:
        self._config = config
        self._client_factory = client_factory or self._default_client_factory

    def _default_client_factory(self) -> httpx.AsyncClient:
        timeout_seconds = max(0.1, self._config.timeout_ms / 1000.0)
        return httpx.AsyncClient(timeout=timeout_seconds, follow_redirects=False)

    def _build_headers(self) -> dict[str, str]:
        if not self._config.secret_key:
            raise PaymentsClientError("Payments secret key is not configured")
        return {
            "Authorization": f"Bearer {self._config.secret_key}",
            "Stripe-Version": self._config.api_version,
            "User-Agent": f"{self._config.app_name}/{self._config.app_version}",
        }

    def _build_url(self, path: str) -> str:
        return f"{self._config.api_base_url}/{path.lstrip('/')}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        headers = self._build_headers()
        url = self._build_url(path)
        encoded = encode_form(params or {})
        try:
            async with self._client_factory() as client:
                if method == "GET":
                    response = await client.get(url, params=encoded, headers=headers)
                else:
                    response = await client.request(
                        method,
                        url,
                        content=urlencode(encoded).encode("utf-8"),
                        headers={**headers, "Content-Type": _FORM_CONTENT_TYPE},
                    )
        except httpx.TimeoutException as exc:
            raise PaymentsClientError("Payments provider request timed out", status_code=408) from exc
        except httpx.RequestError as exc:
            raise PaymentsClientError(f"Payments provider unreachable: {exc}") from exc

        try:
            payload = response.json() if response.content else {}
        except json.JSONDecodeError:
            payload = None

        if response.status_code >= 400:
            message = f"payments provider error {response.status_code}"
            if isinstance(payload, Mapping):
                error = payload.get("error")
                if isinstance(error, Mapping) and error.get("message"):
                    message = f"{message}: {error['message']}"
            logger.error(
                "Payments request failed",
                extra={
                    "event": "payments.request_failed",
                    "method": method,
                    "path": path,
                    "status_code": response.status_code,
                },
            )
            raise PaymentsClientError(message, status_code=response.status_code, payload=payload)

        if not isinstance(payload, dict):
            raise PaymentsClientError(
                "Payments provider returned invalid JSON", status_code=response.status_code
            )
        return payload

    async def create_customer(
        self, *, email: str | None = None, metadata: Mapping[str, str] | None = None
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"metadata": dict(metadata or {})}
        if email:
            params["email"] = email
        return await self._request("POST", "customers", params=params)

    async def update_customer(self, customer_id: str, **fields: Any) -> dict[str, Any]:
        return await self._request("POST", f"customers/{customer_id}", params=fields)

    async def retrieve_subscription(
        self, subscription_id: str, *, expand: Sequence[str] = ()
    ) -> dict[str, Any]:
        params = {"expand": list(expand)} if expand else None
        return await self._request("GET", f"subscriptions/{subscription_id}", params=params)

    async def create_checkout_session(self, **params: Any) -> dict[str, Any]:
        return await self._request("POST", "checkout/sessions", params=params)

    async def create_billing_portal_session(
        self, *, customer: str, return_url: str
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            "billing_portal/sessions",
            params={"customer": customer, "return_url": return_url},
        )


__all__ = ["PaymentsClient", "PaymentsClientError", "encode_form"]
