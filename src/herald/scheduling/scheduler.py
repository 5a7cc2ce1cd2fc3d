"""Delivery scheduler: a periodic timer that sends due messages.

The scheduler owns the timer and the single-flight guard. Claiming and
status bookkeeping are delegated to ScheduledMessageStore; sending is
delegated to MessageTransport.
"""

import asyncio
import logging

from herald.scheduling.store import ScheduledMessageStore
from herald.scheduling.types import CycleResult, MessageStatus, ScheduledMessage
from herald.slack.transport import MessageTransport

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60.0
DEFAULT_MESSAGE_DELAY_SECONDS = 0.1


class DeliveryScheduler:
    """Periodically delivers due scheduled messages.

    Example:
        scheduler = DeliveryScheduler(store, transport)
        await scheduler.start()
        ...
        result = await scheduler.run_cycle()  # manual trigger
        await scheduler.stop()
    """

    def __init__(
        self,
        store: ScheduledMessageStore,
        transport: MessageTransport,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        message_delay: float = DEFAULT_MESSAGE_DELAY_SECONDS,
    ):
        self._store = store
        self._transport = transport
        self._interval = interval
        self._message_delay = message_delay
        self._running = False
        self._processing = False
        self._task: asyncio.Task | None = None
        self._cycles: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_processing(self) -> bool:
        return self._processing

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        await self._reconcile()
        logger.info(
            "delivery_scheduler_started",
            extra={"scheduler.interval_s": self._interval},
        )
        self._task = asyncio.create_task(self._timer_loop())

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        # Let in-flight cycles finalize their rows
        if self._cycles:
            await asyncio.gather(*list(self._cycles), return_exceptions=True)
        logger.info("delivery_scheduler_stopped")

    async def _reconcile(self) -> None:
        """Report pending work on startup without processing it."""
        try:
            pending = await self._store.count_pending()
        except Exception as e:
            logger.error("pending_count_failed", extra={"error.message": str(e)})
            return
        logger.info("pending_messages_loaded", extra={"scheduler.pending": pending})

    async def _timer_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._interval)
            if self._processing:
                logger.info("delivery_cycle_skipped")
                continue
            # A slow cycle must not hold up the timer
            task = asyncio.create_task(self.run_cycle())
            self._cycles.add(task)
            task.add_done_callback(self._cycles.discard)

    async def run_cycle(self) -> CycleResult:
        """Deliver every due message once.

        Skipped (not queued) when another cycle is in flight. Never raises
        except for cancellation.
        """
        if self._processing:
            logger.info("delivery_cycle_skipped")
            return CycleResult(skipped=True)

        self._processing = True
        result = CycleResult()
        try:
            await self._process_due(result)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                "delivery_cycle_error",
                extra={"error.message": str(e), "error.type": type(e).__name__},
            )
        finally:
            self._processing = False

        if result.due:
            logger.info(
                "delivery_cycle_complete",
                extra={
                    "cycle.due": result.due,
                    "cycle.sent": result.sent,
                    "cycle.failed": result.failed,
                    "cycle.lost_claims": result.lost_claims,
                },
            )
        return result

    async def _process_due(self, result: CycleResult) -> None:
        due = await self._store.list_due()
        result.due = len(due)
        if not due:
            return
        logger.debug("delivery_cycle_started", extra={"cycle.due": len(due)})

        for index, message in enumerate(due):
            try:
                await self._process_one(message, result)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # Storage failure around this row; the rest still get their turn
                logger.error(
                    "scheduled_message_error",
                    extra={"message.id": message.id, "error.message": str(e)},
                )
            if index + 1 < len(due) and self._message_delay > 0:
                await asyncio.sleep(self._message_delay)

    async def _process_one(self, message: ScheduledMessage, result: CycleResult) -> None:
        if not await self._store.claim(message.id):
            result.lost_claims += 1
            logger.debug("message_claim_lost", extra={"message.id": message.id})
            return

        logger.info(
            "scheduled_message_processing",
            extra={
                "message.id": message.id,
                "slack.team_id": message.team_id,
                "slack.channel_id": message.channel_id,
            },
        )
        try:
            await self._transport.deliver(
                message.team_id, message.channel_id, message.message
            )
        except Exception as e:
            logger.error(
                "scheduled_message_failed",
                extra={
                    "message.id": message.id,
                    "error.message": str(e),
                    "error.type": type(e).__name__,
                },
            )
            await self._store.finalize(message.id, MessageStatus.FAILED)
            result.failed += 1
            return

        await self._store.finalize(message.id, MessageStatus.SENT)
        result.sent += 1
