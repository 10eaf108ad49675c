"""Database models for Soundwave."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from app.db import Base


def _utcnow() -> datetime:
    """Return a timezone-aware UTC timestamp for ORM defaults."""

    return datetime.now(UTC)


def _new_id() -> str:
    return uuid4().hex


class User(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, default=_new_id)
    email = Column(String(320), nullable=True)
    full_name = Column(String(255), nullable=True)
    avatar_url = Column(String(2048), nullable=True)
    billing_address = Column(JSON, nullable=True)
    payment_method = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class UserSession(Base):
    """Access token issued by the identity provider for a signed-in user."""

    __tablename__ = "user_sessions"

    token = Column(String(255), primary_key=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class Song(Base):
    __tablename__ = "songs"

    id = Column(String(64), primary_key=True, default=_new_id)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=True, index=True)
    title = Column(String(512), nullable=False)
    author = Column(String(512), nullable=False)
    song_path = Column(String(2048), nullable=False)
    image_path = Column(String(2048), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)


class LikedSong(Base):
    __tablename__ = "liked_songs"
    __table_args__ = (UniqueConstraint("user_id", "song_id", name="uq_liked_songs_user_song"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    song_id = Column(String(64), ForeignKey("songs.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class Customer(Base):
    """Cross-reference between a user and their payments-provider customer."""

    __tablename__ = "customers"

    id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    stripe_customer_id = Column(String(255), nullable=False, unique=True)


class Product(Base):
    __tablename__ = "products"

    id = Column(String(255), primary_key=True)
    active = Column(Boolean, nullable=False, default=False)
    name = Column(String(512), nullable=True)
    description = Column(Text, nullable=True)
    image = Column(String(2048), nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)


class Price(Base):
    __tablename__ = "prices"

    id = Column(String(255), primary_key=True)
    product_id = Column(String(255), ForeignKey("products.id"), nullable=True, index=True)
    active = Column(Boolean, nullable=False, default=False)
    description = Column(Text, nullable=True)
    unit_amount = Column(BigInteger, nullable=True)
    currency = Column(String(3), nullable=True)
    type = Column(String(32), nullable=True)
    interval = Column(String(16), nullable=True)
    interval_count = Column(Integer, nullable=True)
    trial_period_days = Column(Integer, nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)


class SubscriptionStatus(str, Enum):
    """Lifecycle states reported by the payments provider."""

    TRIALING = "trialing"
    ACTIVE = "active"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    PAST_DUE = "past_due"
    UNPAID = "unpaid"
    PAUSED = "paused"


class Subscription(Base):
    __tablename__ = "subscriptions"
    __table_args__ = (Index("ix_subscriptions_user_status", "user_id", "status"),)

    id = Column(String(255), primary_key=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(32), nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)
    price_id = Column(String(255), ForeignKey("prices.id"), nullable=True)
    quantity = Column(Integer, nullable=True)
    cancel_at_period_end = Column(Boolean, nullable=True)
    created = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    cancel_at = Column(DateTime(timezone=True), nullable=True)
    canceled_at = Column(DateTime(timezone=True), nullable=True)
    trial_start = Column(DateTime(timezone=True), nullable=True)
    trial_end = Column(DateTime(timezone=True), nullable=True)
