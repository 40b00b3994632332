"""Scheduling of checks and maintenance jobs."""

from .job_scheduler import JobScheduler
from .monitoring_scheduler import MonitoringScheduler, SchedulerState, TickSummary

__all__ = ["JobScheduler", "MonitoringScheduler", "SchedulerState", "TickSummary"]
