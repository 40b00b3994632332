"""Periodic check ticks, uptime rollups and incident cleanup."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

import structlog

from ..config import MonitoringConfig
from ..errors import CheckInProgressError, TargetNotFoundError
from ..metrics.aggregator import MetricsAggregator
from ..models import HealthStatus, MonitoringRecord
from ..pipeline import CheckPipeline, CheckResult
from ..registry.base import ApplicationRegistry
from ..state.health_state import utcnow
from .job_scheduler import JobScheduler


logger = structlog.get_logger(__name__)


CHECK_JOB_ID = "health_checks"
ROLLUP_JOB_ID = "uptime_rollup"
CLEANUP_JOB_ID = "incident_cleanup"


class SchedulerState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass
class TickSummary:
    due: int = 0
    checked: int = 0
    failed: int = 0
    skipped_in_flight: int = 0
    skipped_restarting: int = 0
    aborted: bool = False
    target_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "due": self.due,
            "checked": self.checked,
            "failed": self.failed,
            "skipped_in_flight": self.skipped_in_flight,
            "skipped_restarting": self.skipped_restarting,
            "aborted": self.aborted,
        }


class MonitoringScheduler:
    """
    Drives the check pipeline on a fixed tick.

    A target is claimed (added to ``in_flight``) from selection until its
    pipeline finishes, so overlapping ticks and manual checks never probe the
    same target twice at once. Targets within a tick run in batches of
    ``batch_size``; batches run one after another.
    """

    def __init__(
        self,
        registry: ApplicationRegistry,
        pipeline: CheckPipeline,
        aggregator: MetricsAggregator,
        config: Optional[MonitoringConfig] = None,
        job_scheduler: Optional[JobScheduler] = None,
    ):
        self.registry = registry
        self.pipeline = pipeline
        self.aggregator = aggregator
        self.config = config or MonitoringConfig()
        self.jobs = job_scheduler or JobScheduler()
        self.state = SchedulerState.STOPPED
        self.in_flight: set[str] = set()
        self.last_tick: Optional[TickSummary] = None
        self.last_tick_at: Optional[datetime] = None

    async def start(self) -> None:
        if self.state == SchedulerState.RUNNING:
            logger.warning("Monitoring scheduler already running")
            return

        await self.recover_orphaned_restarts()

        cfg = self.config
        self.jobs.add_interval_job(
            CHECK_JOB_ID,
            self.tick,
            seconds=cfg.check_interval_seconds,
            description="Health checks for due targets",
            max_instances=cfg.max_overlapping_ticks,
        )
        self.jobs.add_interval_job(
            ROLLUP_JOB_ID,
            self.run_rollup,
            seconds=cfg.aggregation_interval_seconds,
            description="Uptime rollup",
        )
        self.jobs.add_cron_job(
            CLEANUP_JOB_ID,
            self.run_cleanup,
            cfg.cleanup_cron,
            description="Resolved incident retention cleanup",
        )
        await self.jobs.start()
        self.state = SchedulerState.RUNNING
        logger.info("Monitoring scheduler started",
                    check_interval_seconds=cfg.check_interval_seconds,
                    batch_size=cfg.batch_size)

    async def stop(self) -> None:
        if self.state == SchedulerState.STOPPED:
            return
        await self.jobs.stop()
        self.state = SchedulerState.STOPPED
        logger.info("Monitoring scheduler stopped", in_flight=len(self.in_flight))

    async def recover_orphaned_restarts(self) -> int:
        """Targets left in restarting by a previous process go back to down."""
        recovered = 0
        for record in await self.registry.list_all():
            if record.health_status != HealthStatus.RESTARTING:
                continue
            if record.target_id in self.in_flight:
                continue
            await self.registry.apply_update(record.target_id, self.pipeline.state_machine.fail_restart)
            recovered += 1
            logger.warning("Recovered orphaned restart", target_id=record.target_id)
        return recovered

    async def tick(self, now: Optional[datetime] = None) -> TickSummary:
        now = now or utcnow()
        summary = TickSummary()
        self.last_tick_at = now

        try:
            due = await self.registry.list_due(now)
        except Exception as e:
            summary.aborted = True
            self.last_tick = summary
            logger.error("Failed to list due targets, skipping tick", error=f"{type(e).__name__}: {e}")
            return summary

        summary.due = len(due)
        selected: list[MonitoringRecord] = []
        for record in due:
            if record.health_status == HealthStatus.RESTARTING:
                summary.skipped_restarting += 1
                continue
            if record.target_id in self.in_flight:
                summary.skipped_in_flight += 1
                continue
            self.in_flight.add(record.target_id)
            selected.append(record)
        summary.target_ids = [r.target_id for r in selected]
        # Claimed but not yet handed to _run_guarded, which releases its own claim.
        unstarted = set(summary.target_ids)

        size = max(1, int(self.config.batch_size))
        try:
            for start in range(0, len(selected), size):
                batch = selected[start:start + size]
                results = await asyncio.gather(*(self._run_guarded(r, unstarted) for r in batch))
                summary.checked += sum(1 for ok in results if ok)
                summary.failed += sum(1 for ok in results if not ok)
        finally:
            self.in_flight.difference_update(unstarted)

        self.last_tick = summary
        logger.info("Check tick completed", **summary.to_dict())
        return summary

    async def _run_guarded(self, record: MonitoringRecord, unstarted: set[str]) -> bool:
        unstarted.discard(record.target_id)
        try:
            await self.pipeline.run(record)
            return True
        except Exception as e:
            logger.error("Health check failed",
                         target_id=record.target_id,
                         error=f"{type(e).__name__}: {e}",
                         exc_info=True)
            return False
        finally:
            self.in_flight.discard(record.target_id)

    async def check_target(self, target_id: str) -> CheckResult:
        """Run one check now, outside the tick. Errors propagate to the caller."""
        record = await self.registry.get(target_id)
        if record is None:
            raise TargetNotFoundError(target_id)
        if target_id in self.in_flight or record.health_status == HealthStatus.RESTARTING:
            raise CheckInProgressError(target_id)

        self.in_flight.add(target_id)
        try:
            logger.info("Manual health check", target_id=target_id)
            return await self.pipeline.run(record)
        finally:
            self.in_flight.discard(target_id)

    async def run_rollup(self) -> int:
        try:
            return await self.aggregator.rollup()
        except Exception as e:
            logger.error("Uptime rollup failed", error=f"{type(e).__name__}: {e}")
            return 0

    async def run_cleanup(self) -> int:
        try:
            return await self.aggregator.cleanup_incidents()
        except Exception as e:
            logger.error("Incident cleanup failed", error=f"{type(e).__name__}: {e}")
            return 0

    def status(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "in_flight": sorted(self.in_flight),
            "last_tick_at": self.last_tick_at.isoformat() if self.last_tick_at else None,
            "last_tick": self.last_tick.to_dict() if self.last_tick else None,
            "jobs": self.jobs.list_jobs(),
        }
