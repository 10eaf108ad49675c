"""Global exception handling for the public API."""

from __future__ import annotations

from typing import Any, Mapping

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.errors import (
    DEPENDENCY_STATUSES,
    AppError,
    ErrorCode,
    InternalServerError,
    to_response,
)
from app.logging import get_logger

_logger = get_logger(__name__)


def _format_validation_field(raw_loc: list[Any]) -> str:
    location: list[str] = [str(part) for part in raw_loc]
    if location and location[0] in {"body", "query", "path", "header", "cookie"}:
        location = location[1:]
    return ".".join(location) if location else ""


def _extract_detail_message(detail: Any, default: str) -> str:
    if isinstance(detail, str) and detail.strip():
        return detail
    if isinstance(detail, Mapping):
        for key in ("message", "detail", "error"):
            candidate = detail.get(key)
            if isinstance(candidate, str) and candidate.strip():
                return candidate
    return default


def _extract_detail_meta(detail: Any) -> Mapping[str, Any] | None:
    if isinstance(detail, Mapping):
        candidate = detail.get("meta")
        if isinstance(candidate, Mapping):
            return candidate
        extras = {k: v for k, v in detail.items() if k not in {"message", "detail", "error"}}
        if extras:
            return extras
    return None


def _classify(status_code: int) -> tuple[ErrorCode, str]:
    if status_code == status.HTTP_401_UNAUTHORIZED:
        return ErrorCode.AUTH_REQUIRED, "Authentication required."
    if status_code == status.HTTP_404_NOT_FOUND:
        return ErrorCode.NOT_FOUND, "Resource not found."
    if status_code in DEPENDENCY_STATUSES:
        return ErrorCode.DEPENDENCY_ERROR, "Upstream service is unavailable."
    if status_code >= 500:
        return ErrorCode.INTERNAL_ERROR, "An unexpected error occurred."
    if status_code >= 400:
        return ErrorCode.VALIDATION_ERROR, "Request could not be completed."
    return ErrorCode.INTERNAL_ERROR, "Request could not be completed."


async def _render_http_exception(
    request: Request,
    *,
    status_code: int,
    detail: Any,
    headers: Mapping[str, str] | None,
) -> JSONResponse:
    effective_status = status_code or status.HTTP_500_INTERNAL_SERVER_ERROR
    code, default_message = _classify(effective_status)
    header_map = dict(headers or {})
    return to_response(
        message=_extract_detail_message(detail, default_message),
        code=code,
        status_code=effective_status,
        request_path=request.url.path,
        method=request.method,
        meta=_extract_detail_meta(detail),
        headers=header_map or None,
    )


async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields: list[dict[str, str]] = []
    for error in exc.errors():
        raw_loc = error.get("loc", [])
        if isinstance(raw_loc, (list, tuple)):
            components = list(raw_loc)
        else:
            components = [raw_loc]
        location = _format_validation_field(components)
        message = error.get("msg", "Invalid input.")
        fields.append({"name": location or "?", "message": message})
    meta = {"fields": fields} if fields else None
    return to_response(
        message="Request validation failed.",
        code=ErrorCode.VALIDATION_ERROR,
        status_code=422,
        request_path=request.url.path,
        method=request.method,
        meta=meta,
    )


async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return await _render_http_exception(
        request,
        status_code=exc.status_code,
        detail=exc.detail,
        headers=exc.headers,
    )


async def _handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    return exc.as_response(request_path=request.url.path, method=request.method)


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    _logger.exception("Unhandled application error", exc_info=exc)
    error = InternalServerError()
    return error.as_response(request_path=request.url.path, method=request.method)


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the canonical exception handlers for the API."""

    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(HTTPException, _handle_http_exception)
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)
    app.add_exception_handler(AppError, _handle_app_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)


__all__ = ["setup_exception_handlers"]
