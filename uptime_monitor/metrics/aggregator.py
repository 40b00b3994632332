"""Uptime rollup, incident retention and aggregate statistics."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

import structlog

from ..config import MonitoringConfig
from ..history import compute_availability, window_samples
from ..models import HealthStatus, MonitoringRecord
from ..publisher import EventPublisher, safe_publish
from ..registry.base import ApplicationRegistry
from ..state.health_state import utcnow


logger = structlog.get_logger(__name__)


def is_reportable(record: MonitoringRecord) -> bool:
    return record.is_active and record.deployment_status == "deployed"


def streak_rollup_uptime(consecutive_failures: int) -> float:
    """Estimate used by the periodic rollup: two points off per failure in the current streak."""
    return max(0.0, 100.0 - 2.0 * int(consecutive_failures))


def window_metrics(record: MonitoringRecord, *, since: datetime) -> tuple[Optional[float], Optional[float]]:
    """(availability %, average response ms) over samples newer than ``since``."""
    samples = window_samples(record.check_history, since_ts=since.timestamp())
    _, _, availability = compute_availability(samples)
    timings = [float(s[2]) for s in samples if len(s) > 2 and s[2] is not None]
    avg = (sum(timings) / len(timings)) if timings else None
    return availability, avg


class MetricsAggregator:
    def __init__(
        self,
        registry: ApplicationRegistry,
        config: Optional[MonitoringConfig] = None,
        publisher: Optional[EventPublisher] = None,
    ):
        self.registry = registry
        self.config = config or MonitoringConfig()
        self.publisher = publisher

    def rollup_record(self, record: MonitoringRecord, now: datetime) -> MonitoringRecord:
        updated = record.model_copy(deep=True)
        if self.config.uptime_mode == "rolling_window":
            since = now - timedelta(hours=self.config.uptime_window_hours)
            availability, avg = window_metrics(record, since=since)
            # No samples in the window: keep the last known figures
            if availability is not None:
                updated.uptime_percentage = availability
            if avg is not None:
                updated.response_time.average = avg
        else:
            updated.uptime_percentage = streak_rollup_uptime(record.consecutive_failures)
        return updated

    async def rollup(self, now: Optional[datetime] = None) -> int:
        """Recompute uptime for every active, deployed target. Returns the number updated."""
        now = now or utcnow()
        logger.info("Aggregating health metrics", mode=self.config.uptime_mode)

        updated = 0
        for record in await self.registry.list_all():
            if not is_reportable(record):
                continue
            try:
                rolled = await self.registry.apply_update(record.target_id, lambda r: self.rollup_record(r, now))
                updated += 1
            except Exception as e:
                logger.error("Failed to roll up target", target_id=record.target_id, error=f"{type(e).__name__}: {e}")
                continue
            safe_publish(self.publisher, rolled)

        logger.info("Health metrics aggregation completed", targets=updated)
        return updated

    async def cleanup_incidents(self, now: Optional[datetime] = None) -> int:
        """Purge resolved incidents that started before the retention horizon."""
        now = now or utcnow()
        cutoff = now - timedelta(days=self.config.incident_retention_days)

        purged = 0
        for record in await self.registry.list_all():
            stale = [i for i in record.incidents if i.resolved and i.start_time < cutoff]
            if not stale:
                continue

            def _prune(current: MonitoringRecord) -> MonitoringRecord:
                pruned = current.model_copy(deep=True)
                pruned.incidents = [i for i in current.incidents if not (i.resolved and i.start_time < cutoff)]
                return pruned

            try:
                await self.registry.apply_update(record.target_id, _prune)
                purged += len(stale)
            except Exception as e:
                logger.error("Failed to prune incidents", target_id=record.target_id, error=f"{type(e).__name__}: {e}")

        logger.info("Old incident cleanup completed", purged=purged, retention_days=self.config.incident_retention_days)
        return purged

    @staticmethod
    def compute_stats(records: Iterable[MonitoringRecord]) -> dict[str, Any]:
        """Aggregate figures over active, deployed targets."""
        targets = [r for r in records if is_reportable(r)]
        total = len(targets)

        by_status = {status.value: 0 for status in HealthStatus}
        for record in targets:
            by_status[record.health_status.value] += 1

        timings = [r.response_time.current for r in targets if r.response_time.current > 0]
        incidents = [i for r in targets for i in r.incidents]
        resolved = sum(1 for i in incidents if i.resolved)

        return {
            "total_targets": total,
            "monitored_targets": sum(1 for r in targets if r.monitoring_enabled),
            "up": by_status[HealthStatus.UP.value],
            "down": by_status[HealthStatus.DOWN.value],
            "warning": by_status[HealthStatus.WARNING.value],
            "restarting": by_status[HealthStatus.RESTARTING.value],
            "unknown": by_status[HealthStatus.UNKNOWN.value],
            "uptime_percentage": (by_status[HealthStatus.UP.value] / total) * 100.0 if total else 100.0,
            "average_uptime": (sum(r.uptime_percentage for r in targets) / total) if total else 100.0,
            "average_response_time": (sum(timings) / len(timings)) if timings else 0.0,
            "checks_performed": sum(r.checks_performed for r in targets),
            "incidents": {
                "total": len(incidents),
                "resolved": resolved,
                "active": len(incidents) - resolved,
            },
        }
