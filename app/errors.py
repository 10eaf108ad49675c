"""Unified error handling utilities for the Soundwave API."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
import logging
from typing import Any
from uuid import uuid4

from fastapi import status
from fastapi.responses import JSONResponse

from app.config import get_env
from app.logging import get_logger
from app.logging_events import log_event


class ErrorCode(str, Enum):
    """Application level error codes exposed via the public API."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    NOT_FOUND = "NOT_FOUND"
    DEPENDENCY_ERROR = "DEPENDENCY_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


_logger = get_logger(__name__)


def _debug_details_enabled() -> bool:
    raw = get_env("ERRORS_DEBUG_DETAILS")
    if raw is None:
        return False
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class AppError(Exception):
    """Base exception for Soundwave specific API errors."""

    __slots__ = ("message", "code", "http_status", "meta", "headers")

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        meta: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.http_status = http_status
        self.meta = meta
        self.headers = headers

    def as_response(self, *, request_path: str, method: str) -> JSONResponse:
        """Serialise the exception into the canonical error envelope."""

        return to_response(
            message=self.message,
            code=self.code,
            status_code=self.http_status,
            request_path=request_path,
            method=method,
            meta=self.meta,
            headers=self.headers,
        )


class ValidationAppError(AppError):
    """Error raised when a client submitted invalid input."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        meta: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            http_status=status_code,
            meta=meta,
        )


class AuthenticationRequiredError(AppError):
    """Error raised when no signed-in user accompanies the request."""

    def __init__(
        self,
        message: str = "Authentication credentials are required.",
        *,
        status_code: int = status.HTTP_401_UNAUTHORIZED,
        meta: Mapping[str, Any] | None = None,
    ) -> None:
        headers = None
        if status_code == status.HTTP_401_UNAUTHORIZED:
            headers = {"WWW-Authenticate": "Bearer"}
        super().__init__(
            message=message,
            code=ErrorCode.AUTH_REQUIRED,
            http_status=status_code,
            meta=meta,
            headers=headers,
        )


class NotFoundError(AppError):
    """Error raised when a resource could not be located."""

    def __init__(self, message: str = "Resource not found.") -> None:
        super().__init__(
            message=message,
            code=ErrorCode.NOT_FOUND,
            http_status=status.HTTP_404_NOT_FOUND,
        )


class InternalServerError(AppError):
    """Error raised when the application encountered an unexpected failure."""

    def __init__(self, message: str = "An unexpected error occurred.") -> None:
        super().__init__(
            message=message,
            code=ErrorCode.INTERNAL_ERROR,
            http_status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


DEPENDENCY_STATUSES = frozenset({424, 502, 503, 504})


def _log_level_for_status(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code in DEPENDENCY_STATUSES:
        return logging.WARNING
    return logging.INFO


def error_envelope(
    code: ErrorCode, message: str, meta: Mapping[str, Any] | None = None
) -> dict[str, Any]:
    """Body shared by every failed request: ``{"ok": false, "error": {...}}``."""

    error: dict[str, Any] = {"code": code.value, "message": message}
    if meta:
        error["meta"] = dict(meta)
    return {"ok": False, "error": error}


def to_response(
    *,
    message: str,
    code: ErrorCode,
    status_code: int,
    request_path: str,
    method: str,
    meta: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    """Create an error response with the standard envelope and a debug id."""

    debug_id = uuid4().hex
    details = dict(meta or {})
    if _debug_details_enabled():
        details.setdefault("debug_id", debug_id)

    response = JSONResponse(
        status_code=status_code,
        content=error_envelope(code, message, details),
    )
    response.headers["X-Debug-Id"] = debug_id
    for name, value in (headers or {}).items():
        response.headers[name] = value

    log_event(
        _logger,
        "api.error",
        level=_log_level_for_status(status_code),
        code=code.value,
        status_code=status_code,
        path=request_path,
        method=method,
        debug_id=debug_id,
    )
    return response


__all__ = [
    "AppError",
    "AuthenticationRequiredError",
    "ErrorCode",
    "InternalServerError",
    "NotFoundError",
    "ValidationAppError",
    "error_envelope",
    "to_response",
]
