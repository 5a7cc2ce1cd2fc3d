"""Control surface for scheduling: the operations the HTTP layer and CLI call."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from herald.auth.store import CredentialStore
from herald.db import utc_now
from herald.scheduling.scheduler import DeliveryScheduler
from herald.scheduling.store import ScheduledMessageStore
from herald.scheduling.types import CycleResult, ScheduledMessage
from herald.slack.transport import MessageTransport, PostedMessage
from herald.slack.validation import validate_schedule_request, validate_team_id

logger = logging.getLogger(__name__)


@dataclass
class StatusReport:
    connected_teams: int
    message_stats: dict[str, int] = field(default_factory=dict)
    scheduler_running: bool = False
    scheduler_processing: bool = False
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "healthy",
            "database": {
                "connectedTeams": self.connected_teams,
                "messageStats": [
                    {"status": status, "count": count}
                    for status, count in sorted(self.message_stats.items())
                ],
            },
            "scheduler": {
                "running": self.scheduler_running,
                "processing": self.scheduler_processing,
            },
            "timestamp": self.timestamp.isoformat(),
        }


class SchedulingService:
    """Schedule, inspect, cancel and trigger message delivery."""

    def __init__(
        self,
        store: ScheduledMessageStore,
        scheduler: DeliveryScheduler,
        transport: MessageTransport,
        credentials: CredentialStore,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._clock = clock
        self._scheduler = scheduler
        self._transport = transport
        self._credentials = credentials

    @property
    def scheduler(self) -> DeliveryScheduler:
        return self._scheduler

    async def schedule(
        self,
        team_id: str | None,
        channel_id: str | None,
        channel_name: str | None,
        message: str | None,
        scheduled_time: str | int | float | datetime | None,
    ) -> int:
        """Validate and persist a future send.

        Raises:
            ValidationError: Nothing is persisted.
        """
        request = validate_schedule_request(
            team_id,
            channel_id,
            channel_name,
            message,
            scheduled_time,
            now=self._clock(),
        )
        return await self._store.add(request)

    async def list_pending(self, team_id: str) -> list[ScheduledMessage]:
        return await self._store.list_pending(validate_team_id(team_id))

    async def list_messages(self, team_id: str) -> list[ScheduledMessage]:
        return await self._store.list_messages(validate_team_id(team_id))

    async def cancel(self, message_id: int, team_id: str) -> bool:
        """Cancel a pending message. False if it is not pending or not the team's."""
        return await self._store.cancel(message_id, team_id)

    async def delete(self, message_id: int, team_id: str) -> bool:
        """Remove a pending message outright."""
        return await self._store.delete_pending(message_id, team_id)

    async def trigger_now(self) -> CycleResult:
        logger.info("delivery_cycle_triggered")
        return await self._scheduler.run_cycle()

    async def send_now(self, team_id: str, channel_id: str, message: str) -> PostedMessage:
        return await self._transport.deliver(team_id, channel_id, message)

    async def status(self) -> StatusReport:
        return StatusReport(
            connected_teams=await self._credentials.count(),
            message_stats=await self._store.stats(),
            scheduler_running=self._scheduler.is_running,
            scheduler_processing=self._scheduler.is_processing,
            timestamp=self._clock(),
        )
