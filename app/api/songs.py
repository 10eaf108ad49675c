"""Song catalog API: browsing, uploads, likes and the plans on sale."""

from __future__ import annotations

from dataclasses import asdict
from time import perf_counter
from typing import Any, Callable, TypeVar

from fastapi import APIRouter, Depends, Query, Request, Response, status

from app.dependencies import (
    CurrentUser,
    get_catalog_service,
    get_storage_service,
    require_user,
)
from app.errors import AppError, InternalServerError
from app.logging import get_logger
from app.logging_events import log_event
from app.schemas.billing import (
    CurrentSubscriptionResponse,
    ProductListResponse,
    ProductResponse,
    SubscriptionResponse,
)
from app.schemas.songs import (
    LikeStatusResponse,
    SongCreate,
    SongListResponse,
    SongResponse,
)
from app.services.catalog_service import CatalogService, SongEntry
from app.services.storage import StorageService

router = APIRouter(tags=["Songs"])
_logger = get_logger(__name__)

T = TypeVar("T")


def _emit_api_event(
    request: Request,
    *,
    status_code: int,
    status: str,
    duration_ms: float,
    error: str | None = None,
    meta: dict[str, Any] | None = None,
) -> None:
    payload: dict[str, Any] = {
        "component": "api.songs",
        "status": status,
        "method": request.method,
        "path": request.url.path,
        "status_code": status_code,
        "duration_ms": round(duration_ms, 3),
        "entity_id": getattr(request.state, "request_id", None),
    }
    if error:
        payload["error"] = error
    if meta:
        payload["meta"] = meta
    log_event(_logger, "api.request", **payload)


def _observe(
    request: Request,
    call: Callable[[], T],
    *,
    failure_message: str,
    success_status: int = status.HTTP_200_OK,
    meta: dict[str, Any] | None = None,
) -> T:
    started = perf_counter()
    try:
        result = call()
    except AppError as exc:
        _emit_api_event(
            request,
            status_code=exc.http_status,
            status="error",
            duration_ms=(perf_counter() - started) * 1000,
            error=exc.code,
            meta=meta,
        )
        raise
    except Exception as exc:
        _emit_api_event(
            request,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            status="error",
            duration_ms=(perf_counter() - started) * 1000,
            error="unexpected_error",
            meta=meta,
        )
        raise InternalServerError(failure_message) from exc

    _emit_api_event(
        request,
        status_code=success_status,
        status="ok",
        duration_ms=(perf_counter() - started) * 1000,
        meta=meta,
    )
    return result


def _to_response(entry: SongEntry, storage: StorageService) -> SongResponse:
    return SongResponse(
        **asdict(entry),
        song_url=storage.song_url(entry.song_path),
        image_url=storage.image_url(entry.image_path),
    )


def _to_list(entries: list[SongEntry], storage: StorageService) -> SongListResponse:
    return SongListResponse(items=[_to_response(entry, storage) for entry in entries])


@router.get("/songs", response_model=SongListResponse)
def list_songs(
    request: Request,
    title: str | None = Query(default=None, description="Case-insensitive title filter"),
    service: CatalogService = Depends(get_catalog_service),
    storage: StorageService = Depends(get_storage_service),
) -> SongListResponse:
    entries = _observe(
        request,
        lambda: service.search_songs(title),
        failure_message="Failed to load songs.",
        meta={"title": title} if title else None,
    )
    return _to_list(entries, storage)


@router.post("/songs", response_model=SongResponse, status_code=status.HTTP_201_CREATED)
def create_song(
    payload: SongCreate,
    request: Request,
    user: CurrentUser = Depends(require_user),
    service: CatalogService = Depends(get_catalog_service),
    storage: StorageService = Depends(get_storage_service),
) -> SongResponse:
    entry = _observe(
        request,
        lambda: service.create_song(
            user_id=user.id,
            title=payload.title,
            author=payload.author,
            song_path=payload.song_path,
            image_path=payload.image_path,
        ),
        failure_message="Failed to create song.",
        success_status=status.HTTP_201_CREATED,
    )
    return _to_response(entry, storage)


@router.get("/songs/{song_id}", response_model=SongResponse)
def get_song(
    song_id: str,
    request: Request,
    service: CatalogService = Depends(get_catalog_service),
    storage: StorageService = Depends(get_storage_service),
) -> SongResponse:
    entry = _observe(
        request,
        lambda: service.get_song(song_id),
        failure_message="Failed to load song.",
        meta={"song_id": song_id},
    )
    return _to_response(entry, storage)


@router.get("/songs/{song_id}/like", response_model=LikeStatusResponse)
def get_like_status(
    song_id: str,
    request: Request,
    user: CurrentUser = Depends(require_user),
    service: CatalogService = Depends(get_catalog_service),
) -> LikeStatusResponse:
    liked = _observe(
        request,
        lambda: service.is_liked(user_id=user.id, song_id=song_id),
        failure_message="Failed to load like status.",
        meta={"song_id": song_id},
    )
    return LikeStatusResponse(song_id=song_id, liked=liked)


@router.put("/songs/{song_id}/like", response_model=LikeStatusResponse)
def like_song(
    song_id: str,
    request: Request,
    user: CurrentUser = Depends(require_user),
    service: CatalogService = Depends(get_catalog_service),
) -> LikeStatusResponse:
    _observe(
        request,
        lambda: service.like_song(user_id=user.id, song_id=song_id),
        failure_message="Failed to like song.",
        meta={"song_id": song_id},
    )
    return LikeStatusResponse(song_id=song_id, liked=True)


@router.delete("/songs/{song_id}/like", status_code=status.HTTP_204_NO_CONTENT)
def unlike_song(
    song_id: str,
    request: Request,
    user: CurrentUser = Depends(require_user),
    service: CatalogService = Depends(get_catalog_service),
) -> Response:
    _observe(
        request,
        lambda: service.unlike_song(user_id=user.id, song_id=song_id),
        failure_message="Failed to remove like.",
        success_status=status.HTTP_204_NO_CONTENT,
        meta={"song_id": song_id},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me/songs", response_model=SongListResponse)
def list_my_songs(
    request: Request,
    user: CurrentUser = Depends(require_user),
    service: CatalogService = Depends(get_catalog_service),
    storage: StorageService = Depends(get_storage_service),
) -> SongListResponse:
    entries = _observe(
        request,
        lambda: service.list_user_songs(user.id),
        failure_message="Failed to load songs.",
    )
    return _to_list(entries, storage)


@router.get("/me/liked-songs", response_model=SongListResponse)
def list_liked_songs(
    request: Request,
    user: CurrentUser = Depends(require_user),
    service: CatalogService = Depends(get_catalog_service),
    storage: StorageService = Depends(get_storage_service),
) -> SongListResponse:
    entries = _observe(
        request,
        lambda: service.list_liked_songs(user.id),
        failure_message="Failed to load liked songs.",
    )
    return _to_list(entries, storage)


@router.get("/me/subscription", response_model=CurrentSubscriptionResponse)
def get_my_subscription(
    request: Request,
    user: CurrentUser = Depends(require_user),
    service: CatalogService = Depends(get_catalog_service),
) -> CurrentSubscriptionResponse:
    entry = _observe(
        request,
        lambda: service.get_active_subscription(user.id),
        failure_message="Failed to load subscription.",
    )
    if entry is None:
        return CurrentSubscriptionResponse(subscription=None)
    return CurrentSubscriptionResponse(subscription=SubscriptionResponse.model_validate(entry))


@router.get("/products", response_model=ProductListResponse)
def list_products(
    request: Request,
    service: CatalogService = Depends(get_catalog_service),
) -> ProductListResponse:
    entries = _observe(
        request,
        service.list_active_products_with_prices,
        failure_message="Failed to load products.",
    )
    return ProductListResponse(items=[ProductResponse.model_validate(entry) for entry in entries])


__all__ = ["router"]
