from __future__ import annotations

from datetime import datetime
from typing import Optional

import structlog

from ..errors import TargetNotFoundError
from ..models import MonitoringRecord
from .base import ApplicationRegistry, Updater, is_due


logger = structlog.get_logger(__name__)


class InMemoryRegistry(ApplicationRegistry):
    """Process-local registry.

    Updates are atomic with respect to other coroutines because no await
    happens between reading the current record and storing the new one.
    """

    def __init__(self, records: Optional[list[MonitoringRecord]] = None):
        self._records: dict[str, MonitoringRecord] = {}
        for record in records or []:
            self._records[record.target_id] = record

    async def list_due(self, now: datetime) -> list[MonitoringRecord]:
        return [r.model_copy(deep=True) for r in self._records.values() if is_due(r, now)]

    async def list_all(self) -> list[MonitoringRecord]:
        return [r.model_copy(deep=True) for r in self._records.values()]

    async def get(self, target_id: str) -> Optional[MonitoringRecord]:
        record = self._records.get(target_id)
        return record.model_copy(deep=True) if record is not None else None

    async def apply_update(self, target_id: str, updater: Updater) -> MonitoringRecord:
        current = self._records.get(target_id)
        if current is None:
            raise TargetNotFoundError(target_id)
        updated = updater(current.model_copy(deep=True))
        self._records[target_id] = updated
        self._after_write()
        return updated.model_copy(deep=True)

    async def register(self, record: MonitoringRecord) -> None:
        self._records[record.target_id] = record.model_copy(deep=True)
        self._after_write()
        logger.info("Registered target", target_id=record.target_id)

    def _after_write(self) -> None:
        """Hook for subclasses that persist the registry."""
