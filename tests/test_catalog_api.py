from __future__ import annotations

from datetime import UTC, datetime, timedelta

from app.db import session_scope
from app.models import LikedSong, Price, Product, Song, Subscription
from tests.helpers import api_path, auth_headers, create_user


def _seed_song(title: str, *, user_id: str | None = None, minutes_ago: int = 0) -> str:
    with session_scope() as session:
        song = Song(
            user_id=user_id,
            title=title,
            author="The Band",
            song_path=f"song-{title}.mp3",
            image_path=f"image-{title}.png",
            created_at=datetime.now(UTC) - timedelta(minutes=minutes_ago),
        )
        session.add(song)
        session.flush()
        return song.id


def test_songs_are_listed_newest_first_with_public_urls(client) -> None:
    _seed_song("Older", minutes_ago=10)
    _seed_song("Newer")

    response = client.get(api_path("/songs"))

    assert response.status_code == 200
    items = response.json()["items"]
    assert [item["title"] for item in items] == ["Newer", "Older"]
    assert items[0]["song_url"] == "/storage/songs/song-Newer.mp3"
    assert items[0]["image_url"] == "/storage/images/image-Newer.png"


def test_song_search_is_case_insensitive(client) -> None:
    _seed_song("Midnight City")
    _seed_song("Daylight")

    response = client.get(api_path("/songs"), params={"title": "CITY"})

    assert [item["title"] for item in response.json()["items"]] == ["Midnight City"]


def test_unknown_song_returns_not_found(client) -> None:
    response = client.get(api_path("/songs/missing"))

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_upload_requires_user_and_lists_under_me(client) -> None:
    body = {"title": "Demo", "author": "Me", "song_path": "demo.mp3"}

    anonymous = client.post(api_path("/songs"), json=body)
    assert anonymous.status_code == 401

    user_id = create_user()
    created = client.post(api_path("/songs"), json=body, headers=auth_headers())
    assert created.status_code == 201
    assert created.json()["user_id"] == user_id
    assert created.json()["image_url"] is None

    mine = client.get(api_path("/me/songs"), headers=auth_headers())
    assert [item["title"] for item in mine.json()["items"]] == ["Demo"]


def test_upload_rejects_blank_fields(client) -> None:
    create_user()

    response = client.post(
        api_path("/songs"),
        json={"title": " ", "author": "Me", "song_path": "demo.mp3"},
        headers=auth_headers(),
    )

    assert response.status_code == 422
    fields = response.json()["error"]["meta"]["fields"]
    assert fields[0]["name"] == "title"


def test_like_lifecycle(client) -> None:
    create_user()
    song_id = _seed_song("Loved")
    like_path = api_path(f"/songs/{song_id}/like")

    assert client.get(like_path, headers=auth_headers()).json() == {
        "song_id": song_id,
        "liked": False,
    }
    assert client.put(like_path, headers=auth_headers()).status_code == 200
    assert client.put(like_path, headers=auth_headers()).status_code == 200
    assert client.get(like_path, headers=auth_headers()).json()["liked"] is True
    with session_scope() as session:
        assert session.query(LikedSong).count() == 1

    liked = client.get(api_path("/me/liked-songs"), headers=auth_headers())
    assert [item["id"] for item in liked.json()["items"]] == [song_id]

    assert client.delete(like_path, headers=auth_headers()).status_code == 204
    assert client.get(like_path, headers=auth_headers()).json()["liked"] is False


def test_liking_unknown_song_returns_not_found(client) -> None:
    create_user()

    response = client.put(api_path("/songs/missing/like"), headers=auth_headers())

    assert response.status_code == 404


def test_products_list_active_plans_with_sorted_prices(client) -> None:
    with session_scope() as session:
        session.add_all(
            [
                Product(id="prod_b", active=True, name="Family", metadata_json={"index": "2"}),
                Product(id="prod_a", active=True, name="Solo", metadata_json={"index": "1"}),
                Product(id="prod_old", active=False, name="Legacy"),
                Price(id="price_a_year", product_id="prod_a", active=True, unit_amount=9900),
                Price(id="price_a_month", product_id="prod_a", active=True, unit_amount=999),
                Price(id="price_a_dead", product_id="prod_a", active=False, unit_amount=1),
            ]
        )

    response = client.get(api_path("/products"))

    assert response.status_code == 200
    items = response.json()["items"]
    assert [item["id"] for item in items] == ["prod_a", "prod_b"]
    assert [price["id"] for price in items[0]["prices"]] == ["price_a_month", "price_a_year"]
    assert items[1]["prices"] == []


def test_current_subscription_reports_active_plan(client) -> None:
    user_id = create_user()
    now = datetime.now(UTC)
    with session_scope() as session:
        session.add(Product(id="prod_a", active=True, name="Solo"))
        session.add(Price(id="price_a", product_id="prod_a", active=True, unit_amount=999))
        session.add(
            Subscription(
                id="sub_old",
                user_id=user_id,
                status="canceled",
                price_id="price_a",
                created=now - timedelta(days=60),
                current_period_start=now - timedelta(days=60),
                current_period_end=now - timedelta(days=30),
            )
        )
        session.add(
            Subscription(
                id="sub_live",
                user_id=user_id,
                status="trialing",
                price_id="price_a",
                created=now,
                current_period_start=now,
                current_period_end=now + timedelta(days=30),
            )
        )

    response = client.get(api_path("/me/subscription"), headers=auth_headers())

    assert response.status_code == 200
    subscription = response.json()["subscription"]
    assert subscription["id"] == "sub_live"
    assert subscription["price"]["id"] == "price_a"
    assert subscription["product"]["name"] == "Solo"


def test_current_subscription_is_null_without_active_plan(client) -> None:
    create_user()

    response = client.get(api_path("/me/subscription"), headers=auth_headers())

    assert response.json() == {"subscription": None}


def test_repeated_like_relies_on_unique_pair() -> None:
    from app.services.catalog_service import CatalogService

    user_id = create_user()
    song_id = _seed_song("Twice")
    service = CatalogService()

    service.like_song(user_id=user_id, song_id=song_id)
    service.like_song(user_id=user_id, song_id=song_id)

    assert service.is_liked(user_id=user_id, song_id=song_id) is True
    with session_scope() as session:
        assert session.query(LikedSong).count() == 1
