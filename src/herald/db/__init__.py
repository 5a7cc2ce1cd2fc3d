"""Database layer."""

from herald.db.engine import Database
from herald.db.models import Base, ScheduledMessageRow, SlackCredential, utc_now

__all__ = [
    # Engine
    "Database",
    # Models
    "Base",
    "ScheduledMessageRow",
    "SlackCredential",
    "utc_now",
]
