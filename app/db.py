"""Database configuration and helper utilities."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
import logging
from pathlib import Path
from typing import TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import URL, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from app.config import load_config


class Base(DeclarativeBase):
    pass


_engine: Engine | None = None
SessionLocal: sessionmaker[Session] | None = None

_logger = logging.getLogger(__name__)

T = TypeVar("T")

SessionCallable = Callable[[Session], T]
SessionFactory = Callable[[], AbstractContextManager[Session]]


def _synchronous_url(url: URL) -> URL:
    driver = url.drivername.lower()
    if driver in {"sqlite", "sqlite+aiosqlite"}:
        return url.set(drivername="sqlite+pysqlite")
    if driver == "postgresql+asyncpg":
        return url.set(drivername="postgresql+psycopg")
    return url


def _prepare_database_file(url: URL) -> bool:
    database = url.database
    if not url.drivername.startswith("sqlite") or not database or database == ":memory:":
        return False
    path = Path(database)
    if not path.is_absolute():
        path = (Path.cwd() / path).resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    return not path.exists()


def _build_engine(url: URL) -> Engine:
    connect_args: dict[str, object] = {}
    if url.drivername.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(url, future=True, connect_args=connect_args)


def _dispose_engine() -> None:
    global _engine, SessionLocal

    if _engine is not None:
        _engine.dispose()

    _engine = None
    SessionLocal = None


def _ensure_engine() -> None:
    global _engine, SessionLocal

    url = _synchronous_url(make_url(load_config().database.url))
    target_url = url.render_as_string(hide_password=False)
    if _engine is not None and _engine.url.render_as_string(hide_password=False) == target_url:
        return

    _dispose_engine()

    created = _prepare_database_file(url)
    _engine = _build_engine(url)
    SessionLocal = sessionmaker(
        bind=_engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )

    from app import models  # noqa: F401

    Base.metadata.create_all(bind=_engine, checkfirst=True)
    if created:
        _logger.info("Database bootstrap completed", extra={"event": "database.bootstrap"})


def get_session() -> Session:
    if SessionLocal is None:
        _ensure_engine()
    if SessionLocal is None:
        raise RuntimeError("Database session factory is not initialized.")
    return SessionLocal()


@contextmanager
def session_scope() -> Iterator[Session]:
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Create the engine and any missing tables for the configured database."""

    _ensure_engine()


def reset_engine_for_tests() -> None:
    """Reset the cached engine/session so tests get a clean database handle."""

    _dispose_engine()


def _call_with_session(func: SessionCallable[T], *, factory: SessionFactory | None = None) -> T:
    context = factory() if factory is not None else session_scope()
    with context as session:
        return func(session)


async def run_session(func: SessionCallable[T], *, factory: SessionFactory | None = None) -> T:
    """Execute ``func`` with a database session in a worker thread."""

    return await asyncio.to_thread(_call_with_session, func, factory=factory)


__all__ = [
    "Base",
    "SessionFactory",
    "get_session",
    "init_db",
    "reset_engine_for_tests",
    "run_session",
    "session_scope",
]
