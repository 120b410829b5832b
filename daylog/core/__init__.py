"""Core storage components."""

from daylog.core import store

__all__ = ["store"]
