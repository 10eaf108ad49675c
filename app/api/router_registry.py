"""Central registry for the Soundwave API routers."""

from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter

from fastapi import APIRouter, FastAPI

from app.logging import get_logger

__all__ = [
    "RouterConfig",
    "compose_prefix",
    "iter_registered_routers",
    "register_all",
]


@dataclass(frozen=True)
class RouterConfig:
    """How a router is exposed below the API base path."""

    key: str
    router: APIRouter
    prefix: str = ""


_logger = get_logger(__name__)


def compose_prefix(base: str, *parts: str) -> str:
    """Join path components into a normalised FastAPI router prefix."""

    segments: list[str] = []
    saw_root = False
    for raw_part in (base, *parts):
        if raw_part is None:
            continue
        candidate = raw_part.strip()
        if not candidate:
            continue
        if candidate == "/":
            saw_root = True
            continue
        segments.extend(part for part in candidate.split("/") if part)
    if segments:
        return "/" + "/".join(segments)
    if saw_root:
        return "/"
    return ""


def iter_registered_routers() -> tuple[RouterConfig, ...]:
    from app.api import billing, songs

    return (
        RouterConfig(key="billing", router=billing.router),
        RouterConfig(key="songs", router=songs.router),
    )


def register_all(app: FastAPI, *, base_path: str) -> APIRouter:
    """Include every registered router on ``app`` below ``base_path``."""

    aggregator = APIRouter()
    start = perf_counter()
    entries = iter_registered_routers()
    for entry in entries:
        aggregator.include_router(entry.router, prefix=entry.prefix)
    app.include_router(aggregator, prefix=compose_prefix("", base_path))
    _logger.info(
        "Mounted %d routers",
        len(entries),
        extra={
            "event": "router_registry.mounted",
            "count": len(entries),
            "prefixes": [compose_prefix(base_path, entry.prefix) or "/" for entry in entries],
            "duration_ms": round((perf_counter() - start) * 1_000, 3),
        },
    )
    return aggregator
