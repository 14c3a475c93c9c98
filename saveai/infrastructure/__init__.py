"""HTTP infrastructure: app factory, auth gate, endpoints and bootstrap helpers."""

from .app import create_app

__all__ = ["create_app"]
