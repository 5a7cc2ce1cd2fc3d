"""Scheduling types.

Public types:
- MessageStatus: Lifecycle states of a scheduled message
- ScheduledMessage: Snapshot of a scheduled message row
- CycleResult: Outcome of one delivery cycle
"""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from herald.db import ScheduledMessageRow


class MessageStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class ScheduledMessage:
    """A scheduled message as read from storage."""

    id: int
    team_id: str
    channel_id: str
    channel_name: str
    message: str
    scheduled_time: datetime
    status: MessageStatus = MessageStatus.PENDING
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: ScheduledMessageRow) -> "ScheduledMessage":
        return cls(
            id=row.id,
            team_id=row.team_id,
            channel_id=row.channel_id,
            channel_name=row.channel_name,
            message=row.message,
            scheduled_time=row.scheduled_time,
            status=MessageStatus(row.status),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses (epoch milliseconds, like the Slack UI expects)."""
        return {
            "id": self.id,
            "team_id": self.team_id,
            "channel_id": self.channel_id,
            "channel_name": self.channel_name,
            "message": self.message,
            "scheduled_time": int(self.scheduled_time.timestamp() * 1000),
            "status": self.status.value,
            "created_at": int(self.created_at.timestamp() * 1000) if self.created_at else None,
        }


@dataclass
class CycleResult:
    """Outcome of one delivery cycle.

    ``skipped`` is set when the cycle did not run because another was in
    flight. ``lost_claims`` counts due rows another worker claimed first.
    """

    due: int = 0
    sent: int = 0
    failed: int = 0
    lost_claims: int = 0
    skipped: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "due": self.due,
            "sent": self.sent,
            "failed": self.failed,
            "lost_claims": self.lost_claims,
            "skipped": self.skipped,
        }
