"""Middleware that tags every request with a correlation identifier."""

from __future__ import annotations

from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

_MAX_INCOMING_LENGTH = 128


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Reuse the caller's request id when sane, otherwise mint one."""

    def __init__(self, app: ASGIApp, *, header_name: str = "X-Request-ID") -> None:
        super().__init__(app)
        self._header_name = header_name

    def _resolve(self, request: Request) -> str:
        incoming = request.headers.get(self._header_name, "").strip()
        if incoming and len(incoming) <= _MAX_INCOMING_LENGTH and incoming.isprintable():
            return incoming
        return uuid4().hex

    async def dispatch(  # type: ignore[override]
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = self._resolve(request)
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers.setdefault(self._header_name, request_id)
        return response


__all__ = ["RequestIDMiddleware"]
