"""Verification of signed webhook notifications."""

from __future__ import annotations

from collections.abc import Callable
import hashlib
import hmac
import time

SIGNATURE_HEADER = "Stripe-Signature"
SIGNATURE_SCHEME = "v1"
DEFAULT_TOLERANCE_SECONDS = 300


class SignatureVerificationError(ValueError):
    """Raised when a notification cannot be authenticated."""


def compute_signature(payload: bytes, secret: str, timestamp: int) -> str:
    signed = str(timestamp).encode("utf-8") + b"." + payload
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


def _parse_header(header: str) -> tuple[int, list[str]]:
    timestamp: int | None = None
    signatures: list[str] = []
    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                timestamp = None
        elif key == SIGNATURE_SCHEME:
            signatures.append(value)
    if timestamp is None or not signatures:
        raise SignatureVerificationError(
            "Unable to extract timestamp and signatures from header"
        )
    return timestamp, signatures


def verify_signature(
    payload: bytes,
    header: str,
    secret: str,
    *,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
    clock: Callable[[], float] = time.time,
) -> None:
    """Authenticate ``payload`` against a ``t=<unix>,v1=<hex>`` signature header."""

    timestamp, signatures = _parse_header(header)
    expected = compute_signature(payload, secret, timestamp).encode("ascii")
    # Header values may carry arbitrary latin-1 text, so compare as bytes.
    if not any(
        hmac.compare_digest(expected, candidate.encode("utf-8", "surrogateescape"))
        for candidate in signatures
    ):
        raise SignatureVerificationError(
            "No signatures found matching the expected signature for payload"
        )
    if tolerance > 0 and timestamp < clock() - tolerance:
        raise SignatureVerificationError("Timestamp outside the tolerance zone")


def sign_payload(payload: bytes, secret: str, *, timestamp: int | None = None) -> str:
    """Build a signature header for ``payload``; used by local tooling and tests."""

    issued_at = int(time.time()) if timestamp is None else timestamp
    return f"t={issued_at},{SIGNATURE_SCHEME}={compute_signature(payload, secret, issued_at)}"


__all__ = [
    "SIGNATURE_HEADER",
    "SignatureVerificationError",
    "compute_signature",
    "sign_payload",
    "verify_signature",
]
