"""Database-backed song catalog, likes and plan listings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db import SessionFactory, session_scope
from app.errors import NotFoundError, ValidationAppError
from app.logging import get_logger
from app.logging_events import log_event
from app.models import LikedSong, Price, Product, Song, Subscription, SubscriptionStatus

_ACTIVE_STATUSES = (SubscriptionStatus.TRIALING.value, SubscriptionStatus.ACTIVE.value)


@dataclass(slots=True)
class SongEntry:
    id: str
    user_id: str | None
    title: str
    author: str
    song_path: str
    image_path: str | None
    created_at: datetime


@dataclass(slots=True)
class PriceEntry:
    id: str
    product_id: str | None
    active: bool
    description: str | None
    unit_amount: int | None
    currency: str | None
    type: str | None
    interval: str | None
    interval_count: int | None
    trial_period_days: int | None
    metadata: dict[str, Any]


@dataclass(slots=True)
class ProductEntry:
    id: str
    active: bool
    name: str | None
    description: str | None
    image: str | None
    metadata: dict[str, Any]
    prices: list[PriceEntry] = field(default_factory=list)


@dataclass(slots=True)
class SubscriptionEntry:
    id: str
    status: str | None
    quantity: int | None
    cancel_at_period_end: bool | None
    current_period_start: datetime | None
    current_period_end: datetime | None
    trial_end: datetime | None
    price: PriceEntry | None
    product: ProductEntry | None


def _song(record: Song) -> SongEntry:
    return SongEntry(
        id=record.id,
        user_id=record.user_id,
        title=record.title,
        author=record.author,
        song_path=record.song_path,
        image_path=record.image_path,
        created_at=record.created_at,
    )


def _price(record: Price) -> PriceEntry:
    return PriceEntry(
        id=record.id,
        product_id=record.product_id,
        active=bool(record.active),
        description=record.description,
        unit_amount=record.unit_amount,
        currency=record.currency,
        type=record.type,
        interval=record.interval,
        interval_count=record.interval_count,
        trial_period_days=record.trial_period_days,
        metadata=dict(record.metadata_json or {}),
    )


def _product(record: Product, prices: list[PriceEntry] | None = None) -> ProductEntry:
    return ProductEntry(
        id=record.id,
        active=bool(record.active),
        name=record.name,
        description=record.description,
        image=record.image,
        metadata=dict(record.metadata_json or {}),
        prices=prices or [],
    )


def _display_index(product: ProductEntry) -> tuple[int, float, str]:
    raw = product.metadata.get("index")
    try:
        return (0, float(raw), product.id)
    except (TypeError, ValueError):
        return (1, 0.0, product.id)


@dataclass(slots=True)
class CatalogService:
    """Read and write songs, likes and the plans on sale."""

    session_factory: SessionFactory = field(default=session_scope, repr=False)
    _logger: Any = field(default_factory=lambda: get_logger(__name__), init=False, repr=False)

    def _songs(self, session: Session, statement: Any) -> list[SongEntry]:
        records = session.execute(statement.order_by(Song.created_at.desc())).scalars().all()
        return [_song(record) for record in records]

    def list_songs(self) -> list[SongEntry]:
        with self.session_factory() as session:
            return self._songs(session, select(Song))

    def search_songs(self, title: str | None) -> list[SongEntry]:
        needle = (title or "").strip()
        if not needle:
            return self.list_songs()
        pattern = f"%{needle.lower()}%"
        with self.session_factory() as session:
            return self._songs(session, select(Song).where(func.lower(Song.title).like(pattern)))

    def list_user_songs(self, user_id: str) -> list[SongEntry]:
        with self.session_factory() as session:
            return self._songs(session, select(Song).where(Song.user_id == user_id))

    def get_song(self, song_id: str) -> SongEntry:
        with self.session_factory() as session:
            record = session.get(Song, song_id)
            if record is None:
                raise NotFoundError("Song not found.")
            return _song(record)

    def create_song(
        self,
        *,
        user_id: str,
        title: str,
        author: str,
        song_path: str,
        image_path: str | None = None,
    ) -> SongEntry:
        if not title.strip() or not author.strip() or not song_path.strip():
            raise ValidationAppError("Missing fields")
        with self.session_factory() as session:
            record = Song(
                user_id=user_id,
                title=title.strip(),
                author=author.strip(),
                song_path=song_path.strip(),
                image_path=(image_path or "").strip() or None,
            )
            session.add(record)
            session.flush()
            entry = _song(record)

        log_event(
            self._logger,
            "service.call",
            component="service.catalog",
            operation="create_song",
            status="ok",
            entity_id=entry.id,
        )
        return entry

    def list_liked_songs(self, user_id: str) -> list[SongEntry]:
        with self.session_factory() as session:
            records = (
                session.execute(
                    select(Song)
                    .join(LikedSong, LikedSong.song_id == Song.id)
                    .where(LikedSong.user_id == user_id)
                    .order_by(LikedSong.created_at.desc(), LikedSong.id.desc())
                )
                .scalars()
                .all()
            )
            return [_song(record) for record in records]

    def is_liked(self, *, user_id: str, song_id: str) -> bool:
        with self.session_factory() as session:
            found = session.execute(
                select(LikedSong.id).where(
                    LikedSong.user_id == user_id, LikedSong.song_id == song_id
                )
            ).first()
            return found is not None

    def like_song(self, *, user_id: str, song_id: str) -> None:
        with self.session_factory() as session:
            if session.get(Song, song_id) is None:
                raise NotFoundError("Song not found.")

        try:
            with self.session_factory() as session:
                session.add(LikedSong(user_id=user_id, song_id=song_id))
        except IntegrityError:
            # uq_liked_songs_user_song already holds this pair.
            self._logger.debug(
                "Song already liked",
                extra={"event": "catalog.like.exists", "song_id": song_id},
            )

        log_event(
            self._logger,
            "service.call",
            component="service.catalog",
            operation="like",
            status="ok",
            entity_id=song_id,
        )

    def unlike_song(self, *, user_id: str, song_id: str) -> None:
        with self.session_factory() as session:
            session.execute(
                delete(LikedSong).where(LikedSong.user_id == user_id, LikedSong.song_id == song_id)
            )

    def list_active_products_with_prices(self) -> list[ProductEntry]:
        with self.session_factory() as session:
            products = (
                session.execute(select(Product).where(Product.active.is_(True))).scalars().all()
            )
            prices = session.execute(
                select(Price)
                .where(Price.active.is_(True))
                .order_by(Price.unit_amount.asc(), Price.id.asc())
            ).scalars().all()
            by_product: dict[str, list[PriceEntry]] = {}
            for price in prices:
                if price.product_id:
                    by_product.setdefault(price.product_id, []).append(_price(price))
            entries = [_product(record, by_product.get(record.id)) for record in products]
        return sorted(entries, key=_display_index)

    def get_active_subscription(self, user_id: str) -> SubscriptionEntry | None:
        with self.session_factory() as session:
            record = (
                session.execute(
                    select(Subscription)
                    .where(
                        Subscription.user_id == user_id,
                        Subscription.status.in_(_ACTIVE_STATUSES),
                    )
                    .order_by(Subscription.created.desc())
                    .limit(1)
                )
                .scalars()
                .first()
            )
            if record is None:
                return None
            price = session.get(Price, record.price_id) if record.price_id else None
            product = (
                session.get(Product, price.product_id)
                if price is not None and price.product_id
                else None
            )
            return SubscriptionEntry(
                id=record.id,
                status=record.status,
                quantity=record.quantity,
                cancel_at_period_end=record.cancel_at_period_end,
                current_period_start=record.current_period_start,
                current_period_end=record.current_period_end,
                trial_end=record.trial_end,
                price=_price(price) if price is not None else None,
                product=_product(product) if product is not None else None,
            )


__all__ = [
    "CatalogService",
    "PriceEntry",
    "ProductEntry",
    "SongEntry",
    "SubscriptionEntry",
]
