"""HTTP server for Herald."""

from herald.server.app import create_app

__all__ = [
    "create_app",
]
