"""Real-time health events for live dashboards (best effort)."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import structlog

from .models import MonitoringRecord


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class HealthEvent:
    target_id: str
    health_status: str
    last_check: Optional[str]
    response_time: float
    uptime_percentage: float
    consecutive_failures: int

    @classmethod
    def from_record(cls, record: MonitoringRecord) -> "HealthEvent":
        return cls(
            target_id=record.target_id,
            health_status=record.health_status.value,
            last_check=record.last_check.isoformat() if record.last_check else None,
            response_time=float(record.response_time.current),
            uptime_percentage=float(record.uptime_percentage),
            consecutive_failures=int(record.consecutive_failures),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "health_update",
            "target_id": self.target_id,
            "health_status": self.health_status,
            "last_check": self.last_check,
            "response_time": self.response_time,
            "uptime_percentage": self.uptime_percentage,
            "consecutive_failures": self.consecutive_failures,
        }


class EventPublisher(ABC):
    """Fire-and-forget sink; delivery is not part of the correctness path."""

    @abstractmethod
    def publish(self, target_id: str, event: HealthEvent) -> None:
        """Broadcast ``event`` for ``target_id`` without blocking."""


class BroadcastPublisher(EventPublisher):
    """Fans events out to subscriber queues; slow subscribers lose events."""

    def __init__(self, queue_size: int = 100):
        self.queue_size = max(1, int(queue_size))
        self._subscribers: set[asyncio.Queue] = set()
        self.dropped = 0

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.add(queue)
        logger.info("Event subscriber added", subscribers=len(self._subscribers))
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)
        logger.info("Event subscriber removed", subscribers=len(self._subscribers))

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, target_id: str, event: HealthEvent) -> None:
        payload = event.to_dict()
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(payload)
            except asyncio.QueueFull:
                self.dropped += 1
                logger.debug("Dropped health event for slow subscriber", target_id=target_id)


def safe_publish(publisher: Optional[EventPublisher], record: MonitoringRecord) -> None:
    """Publish a record's state; publisher errors are logged and swallowed."""
    if publisher is None:
        return
    try:
        publisher.publish(record.target_id, HealthEvent.from_record(record))
    except Exception as e:
        logger.warning("Failed to publish health event", target_id=record.target_id, error=str(e))
