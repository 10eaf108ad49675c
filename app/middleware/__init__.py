"""Application middleware registration helpers."""

from __future__ import annotations

from fastapi import FastAPI

from .errors import setup_exception_handlers
from .logging import APILoggingMiddleware
from .request_id import RequestIDMiddleware

REQUEST_ID_HEADER = "X-Request-ID"


def install_middleware(app: FastAPI) -> None:
    """Install the middleware stack and exception handlers on ``app``."""

    app.add_middleware(APILoggingMiddleware)
    app.add_middleware(RequestIDMiddleware, header_name=REQUEST_ID_HEADER)

    setup_exception_handlers(app)


__all__ = ["install_middleware"]
