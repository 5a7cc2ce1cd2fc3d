"""Scheduled message delivery.

Public API:
- ScheduledMessageStore: Durable storage with atomic claims
- DeliveryScheduler: Timer that delivers due messages
- SchedulingService: Schedule / list / cancel / trigger operations

Types:
- MessageStatus, ScheduledMessage, CycleResult, StatusReport
"""

from herald.scheduling.scheduler import DeliveryScheduler
from herald.scheduling.service import SchedulingService, StatusReport
from herald.scheduling.store import ScheduledMessageStore
from herald.scheduling.types import CycleResult, MessageStatus, ScheduledMessage

__all__ = [
    "CycleResult",
    "DeliveryScheduler",
    "MessageStatus",
    "ScheduledMessage",
    "ScheduledMessageStore",
    "SchedulingService",
    "StatusReport",
]
