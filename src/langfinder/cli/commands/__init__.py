"""CLI command modules."""

from . import search, serve

__all__ = [
    "search",
    "serve",
]
