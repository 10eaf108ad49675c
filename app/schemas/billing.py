"""Pydantic schemas for the billing endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PriceReference(BaseModel):
    id: str = Field(..., description="Provider identifier of the price to subscribe to")

    @field_validator("id")
    @classmethod
    def _validate_id(cls, value: str) -> str:
        candidate = (value or "").strip()
        if not candidate:
            raise ValueError("price id must not be empty")
        return candidate


class CheckoutSessionRequest(BaseModel):
    price: PriceReference
    quantity: int = Field(1, ge=1, description="Number of seats")
    metadata: dict[str, str] = Field(default_factory=dict)


class CheckoutSessionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId")


class PortalLinkResponse(BaseModel):
    url: str


class WebhookReceipt(BaseModel):
    received: bool = True


class PriceResponse(BaseModel):
    id: str
    product_id: str | None = None
    active: bool
    description: str | None = None
    unit_amount: int | None = None
    currency: str | None = None
    type: str | None = None
    interval: str | None = None
    interval_count: int | None = None
    trial_period_days: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)


class ProductResponse(BaseModel):
    id: str
    active: bool
    name: str | None = None
    description: str | None = None
    image: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    prices: list[PriceResponse] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class ProductListResponse(BaseModel):
    items: list[ProductResponse]


class SubscriptionResponse(BaseModel):
    id: str
    status: str | None = None
    quantity: int | None = None
    cancel_at_period_end: bool | None = None
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    trial_end: datetime | None = None
    price: PriceResponse | None = None
    product: ProductResponse | None = None

    model_config = ConfigDict(from_attributes=True)


class CurrentSubscriptionResponse(BaseModel):
    subscription: SubscriptionResponse | None = None
