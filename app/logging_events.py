"""Structured logging helpers shared by routes and services."""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import Any

_JSON_PRIMITIVES = (str, int, float, bool, type(None))


def _check_flat(name: str, value: Any) -> None:
    if not isinstance(value, _JSON_PRIMITIVES):
        raise TypeError(f"Field '{name}' must be a flat JSON-compatible value")


def _check_nested(value: Any, *, path: str) -> None:
    if isinstance(value, _JSON_PRIMITIVES):
        return
    if isinstance(value, Mapping):
        for key, nested in value.items():
            if not isinstance(key, str):
                raise TypeError(f"Keys in '{path}' must be strings")
            _check_nested(nested, path=f"{path}.{key}")
        return
    if isinstance(value, (list, tuple)):
        for index, nested in enumerate(value):
            _check_nested(nested, path=f"{path}[{index}]")
        return
    raise TypeError(f"Unsupported value in '{path}': {type(value).__name__}")


def log_event(
    logger: logging.Logger,
    event: str,
    /,
    *,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """Emit a structured log record whose ``extra`` carries ``event`` and flat fields.

    A single ``meta`` mapping may hold nested JSON-compatible data.
    """

    if not isinstance(event, str) or not event.strip():
        raise ValueError("event must be a non-empty string")

    extra: dict[str, Any] = {"event": event}
    meta = fields.pop("meta", None)
    for name, value in fields.items():
        _check_flat(name, value)
        extra[name] = value
    if meta is not None:
        if not isinstance(meta, Mapping):
            raise TypeError("meta must be a mapping if provided")
        _check_nested(meta, path="meta")
        extra["meta"] = dict(meta)

    logger.log(level, event, extra=extra)

