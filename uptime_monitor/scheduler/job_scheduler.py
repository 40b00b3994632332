"""APScheduler wrapper for the engine's periodic jobs."""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger


logger = structlog.get_logger(__name__)


class JobScheduler:
    """Owns an AsyncIOScheduler and the bookkeeping for the jobs added to it."""

    def __init__(self, scheduler: Optional[AsyncIOScheduler] = None):
        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self.jobs: Dict[str, Dict[str, Any]] = {}
        self.running = False

    async def start(self):
        """Start the scheduler; must be called from inside the event loop."""
        if self.running:
            logger.warning("Job scheduler already running")
            return

        self.scheduler.start()
        self.running = True
        logger.info("Job scheduler started", jobs=len(self.jobs))

    async def stop(self):
        """Stop firing jobs. Runs already in progress are left to finish."""
        if not self.running:
            return

        self.scheduler.shutdown(wait=False)
        self.running = False
        logger.info("Job scheduler stopped")

    def add_cron_job(
        self,
        job_id: str,
        func: Callable,
        cron_expression: str,
        description: Optional[str] = None,
        max_instances: int = 1,
    ):
        """Add a job on a five-field cron expression (minute hour day month day_of_week)."""
        cron_parts = cron_expression.split()
        if len(cron_parts) != 5:
            raise ValueError(f"Invalid cron expression: {cron_expression}")

        trigger = CronTrigger(
            minute=cron_parts[0],
            hour=cron_parts[1],
            day=cron_parts[2],
            month=cron_parts[3],
            day_of_week=cron_parts[4],
            timezone=timezone.utc,
        )
        self._add(job_id, func, trigger, description, max_instances,
                  {"type": "cron", "expression": cron_expression})
        logger.info("Added cron job", job_id=job_id, cron=cron_expression, description=description)

    def add_interval_job(
        self,
        job_id: str,
        func: Callable,
        seconds: int,
        description: Optional[str] = None,
        max_instances: int = 1,
    ):
        """Add a job that fires every ``seconds``.

        ``max_instances`` caps how many runs of the job may overlap; extra
        firings are skipped by APScheduler with a warning.
        """
        trigger = IntervalTrigger(seconds=seconds, timezone=timezone.utc)
        self._add(job_id, func, trigger, description, max_instances,
                  {"type": "interval", "seconds": seconds})
        logger.info("Added interval job",
                    job_id=job_id,
                    interval_seconds=seconds,
                    max_instances=max_instances,
                    description=description)

    def _add(self, job_id, func, trigger, description, max_instances, info):
        if job_id in self.jobs:
            logger.warning("Job already exists, replacing", job_id=job_id)
            self.remove_job(job_id)

        job = self.scheduler.add_job(
            func=func,
            trigger=trigger,
            id=job_id,
            name=description or job_id,
            max_instances=max(1, int(max_instances)),
            coalesce=True,
            replace_existing=True,
        )
        self.jobs[job_id] = dict(info, job=job, description=description,
                                 added_at=datetime.now(timezone.utc))

    def remove_job(self, job_id: str) -> bool:
        if job_id not in self.jobs:
            logger.warning("Job not found", job_id=job_id)
            return False

        if self.scheduler.get_job(job_id) is not None:
            self.scheduler.remove_job(job_id)
        del self.jobs[job_id]
        logger.info("Removed job", job_id=job_id)
        return True

    def get_job_status(self, job_id: str) -> Optional[Dict[str, Any]]:
        job_info = self.jobs.get(job_id)
        if job_info is None:
            return None

        scheduler_job = self.scheduler.get_job(job_id)
        if scheduler_job is None:
            return None

        next_run = getattr(scheduler_job, "next_run_time", None)
        return {
            "job_id": job_id,
            "name": scheduler_job.name,
            "type": job_info["type"],
            "next_run": next_run.isoformat() if next_run else None,
            "added_at": job_info["added_at"].isoformat(),
            "description": job_info.get("description"),
            "max_instances": scheduler_job.max_instances,
        }

    def list_jobs(self) -> List[Dict[str, Any]]:
        return [status for status in (self.get_job_status(job_id) for job_id in self.jobs) if status]
