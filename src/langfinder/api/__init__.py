"""HTTP API."""

from .app import create_app, future_sink

__all__ = ["create_app", "future_sink"]
