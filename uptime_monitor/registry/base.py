"""Application registry interface consumed by the monitoring engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..models import MonitoringRecord


Updater = Callable[[MonitoringRecord], MonitoringRecord]


def is_schedulable(record: MonitoringRecord) -> bool:
    return record.monitoring_enabled and record.is_active and record.deployment_status == "deployed"


def is_due(record: MonitoringRecord, now: datetime) -> bool:
    """Enabled, active, deployed and not checked within its own interval."""
    if not is_schedulable(record):
        return False
    if record.last_check is None:
        return True
    return record.last_check <= now - timedelta(seconds=record.policy.check_interval_seconds)


class ApplicationRegistry(ABC):
    """Durable store of monitored targets."""

    @abstractmethod
    async def list_due(self, now: datetime) -> list[MonitoringRecord]:
        """Targets that need a check at ``now``."""

    @abstractmethod
    async def list_all(self) -> list[MonitoringRecord]:
        """Every known target, including disabled ones."""

    @abstractmethod
    async def get(self, target_id: str) -> Optional[MonitoringRecord]:
        """Read one target record, None when unknown."""

    @abstractmethod
    async def apply_update(self, target_id: str, updater: Updater) -> MonitoringRecord:
        """Atomically replace a record with ``updater(current)``.

        Raises TargetNotFoundError when the target is unknown.
        """

    @abstractmethod
    async def register(self, record: MonitoringRecord) -> None:
        """Add or replace a target (registration itself happens upstream)."""
