"""HTTP service exposing the line store."""

from daylog.server.app import ServerConfig, create_app

__all__ = ["ServerConfig", "create_app"]
