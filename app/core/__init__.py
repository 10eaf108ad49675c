"""Soundwave upstream clients."""

from .payments_client import PaymentsClient, PaymentsClientError

__all__ = ["PaymentsClient", "PaymentsClientError"]
