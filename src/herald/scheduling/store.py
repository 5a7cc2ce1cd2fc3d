"""Durable storage for scheduled messages.

All status changes are single conditional UPDATEs. A claim only succeeds
for a row that is still ``pending``, so two workers sharing the database
can never both process the same message.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy import delete, func, select, update

from herald.db import Database, ScheduledMessageRow, utc_now
from herald.retry import STORAGE_POLICY, RetryPolicy, with_retry
from herald.scheduling.types import MessageStatus, ScheduledMessage
from herald.slack.validation import ScheduleRequest

logger = logging.getLogger(__name__)


class ScheduledMessageStore:
    """CRUD and status transitions for scheduled messages."""

    def __init__(
        self,
        database: Database,
        policy: RetryPolicy = STORAGE_POLICY,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._db = database
        self._policy = policy
        self._clock = clock

    async def add(self, request: ScheduleRequest) -> int:
        """Persist a validated request as a pending message and return its id."""
        async with self._db.session() as session:
            row = ScheduledMessageRow(
                team_id=request.team_id,
                channel_id=request.channel_id,
                channel_name=request.channel_name,
                message=request.message,
                scheduled_time=request.scheduled_time,
                status=MessageStatus.PENDING.value,
            )
            session.add(row)
            await session.flush()
            message_id = row.id

        logger.info(
            "message_scheduled",
            extra={
                "message.id": message_id,
                "slack.team_id": request.team_id,
                "slack.channel_id": request.channel_id,
                "message.scheduled_time": request.scheduled_time.isoformat(),
            },
        )
        return message_id

    async def get(self, message_id: int) -> ScheduledMessage | None:
        async with self._db.session() as session:
            row = await session.get(ScheduledMessageRow, message_id)
            return ScheduledMessage.from_row(row) if row else None

    async def list_pending(self, team_id: str) -> list[ScheduledMessage]:
        """Pending messages for a workspace, soonest first."""
        stmt = (
            select(ScheduledMessageRow)
            .where(
                ScheduledMessageRow.team_id == team_id,
                ScheduledMessageRow.status == MessageStatus.PENDING.value,
            )
            .order_by(ScheduledMessageRow.scheduled_time.asc(), ScheduledMessageRow.id.asc())
        )
        return await self._fetch(stmt)

    async def list_messages(self, team_id: str) -> list[ScheduledMessage]:
        """All messages for a workspace in any status, newest first."""
        stmt = (
            select(ScheduledMessageRow)
            .where(ScheduledMessageRow.team_id == team_id)
            .order_by(ScheduledMessageRow.scheduled_time.desc(), ScheduledMessageRow.id.desc())
        )
        return await self._fetch(stmt)

    async def list_due(self, now: datetime | None = None) -> list[ScheduledMessage]:
        """Pending messages whose time has come, oldest first."""
        now = now or self._clock()
        stmt = (
            select(ScheduledMessageRow)
            .where(
                ScheduledMessageRow.status == MessageStatus.PENDING.value,
                ScheduledMessageRow.scheduled_time <= now,
            )
            .order_by(ScheduledMessageRow.scheduled_time.asc(), ScheduledMessageRow.id.asc())
        )
        return await with_retry(
            lambda: self._fetch(stmt), self._policy, operation_name="list_due"
        )

    async def _fetch(self, stmt) -> list[ScheduledMessage]:
        async with self._db.session() as session:
            result = await session.execute(stmt)
            return [ScheduledMessage.from_row(row) for row in result.scalars()]

    async def _transition(
        self,
        message_id: int,
        from_status: MessageStatus,
        to_status: MessageStatus,
        team_id: str | None = None,
    ) -> bool:
        conditions = [
            ScheduledMessageRow.id == message_id,
            ScheduledMessageRow.status == from_status.value,
        ]
        if team_id is not None:
            conditions.append(ScheduledMessageRow.team_id == team_id)
        stmt = (
            update(ScheduledMessageRow)
            .where(*conditions)
            .values(status=to_status.value, updated_at=self._clock())
        )
        async with self._db.session() as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def claim(self, message_id: int) -> bool:
        """Move a message from pending to processing.

        Returns False when the row is no longer pending (claimed elsewhere,
        cancelled or deleted); the caller must then leave it alone.
        """
        return await with_retry(
            lambda: self._transition(
                message_id, MessageStatus.PENDING, MessageStatus.PROCESSING
            ),
            self._policy,
            operation_name="claim_message",
        )

    async def finalize(self, message_id: int, status: MessageStatus) -> bool:
        """Record the outcome of a claimed message."""
        if status not in (MessageStatus.SENT, MessageStatus.FAILED):
            raise ValueError(f"Cannot finalize message as {status}")
        updated = await with_retry(
            lambda: self._transition(message_id, MessageStatus.PROCESSING, status),
            self._policy,
            operation_name="finalize_message",
        )
        if not updated:
            logger.warning(
                "message_finalize_skipped",
                extra={"message.id": message_id, "message.status": status.value},
            )
        return updated

    async def cancel(self, message_id: int, team_id: str) -> bool:
        """Cancel a pending message owned by ``team_id``."""
        cancelled = await self._transition(
            message_id, MessageStatus.PENDING, MessageStatus.CANCELLED, team_id=team_id
        )
        if cancelled:
            logger.info(
                "message_cancelled",
                extra={"message.id": message_id, "slack.team_id": team_id},
            )
        return cancelled

    async def delete_pending(self, message_id: int, team_id: str) -> bool:
        """Remove a pending message owned by ``team_id`` outright."""
        stmt = delete(ScheduledMessageRow).where(
            ScheduledMessageRow.id == message_id,
            ScheduledMessageRow.team_id == team_id,
            ScheduledMessageRow.status == MessageStatus.PENDING.value,
        )
        async with self._db.session() as session:
            result = await session.execute(stmt)
            deleted = result.rowcount > 0
        if deleted:
            logger.info(
                "message_deleted",
                extra={"message.id": message_id, "slack.team_id": team_id},
            )
        return deleted

    async def count_pending(self) -> int:
        async with self._db.session() as session:
            result = await session.execute(
                select(func.count())
                .select_from(ScheduledMessageRow)
                .where(ScheduledMessageRow.status == MessageStatus.PENDING.value)
            )
            return int(result.scalar_one())

    async def stats(self) -> dict[str, int]:
        """Message counts keyed by status."""
        async with self._db.session() as session:
            result = await session.execute(
                select(ScheduledMessageRow.status, func.count()).group_by(
                    ScheduledMessageRow.status
                )
            )
            return {status: int(count) for status, count in result.all()}
