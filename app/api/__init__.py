"""HTTP routers of the public API."""

from . import billing, router_registry, songs

__all__ = ["billing", "router_registry", "songs"]
