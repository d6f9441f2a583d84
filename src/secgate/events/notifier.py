"""Scan lifecycle notifications.

Delivery (websocket, webhook, chat) lives outside secgate; it plugs in by
implementing :class:`ScanNotifier`. :class:`LoggingNotifier` is the default.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from secgate.services.id_generator import generate_id

logger = logging.getLogger(__name__)

SCAN_COMPLETED = "scan.completed"
SCAN_FAILED = "scan.failed"
SCHEDULE_FAILED = "schedule.failed"


class ScanEvent(BaseModel):
    model_config = ConfigDict(extra="forbid")

    event_type: str
    event_id: str = Field(default_factory=lambda: generate_id("evt_"))
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    payload: dict = Field(default_factory=dict)


def build_event(event_type: str, payload: dict) -> ScanEvent:
    return ScanEvent(event_type=event_type, payload=payload)


class ScanNotifier(ABC):
    @abstractmethod
    async def notify(self, event: ScanEvent) -> None:
        """Deliver one event. Implementations must not raise for delivery failures."""
        ...


class LoggingNotifier(ScanNotifier):
    async def notify(self, event: ScanEvent) -> None:
        logger.info("Event %s (%s): %s", event.event_type, event.event_id, event.payload)
