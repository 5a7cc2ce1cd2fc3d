"""CLI command modules."""

from herald.cli.commands import database, messages, serve

__all__ = [
    "database",
    "messages",
    "serve",
]
