"""Automatic restart of targets that stay down."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

import structlog

from ..models import HealthStatus, Incident, MonitoringRecord
from ..publisher import EventPublisher, safe_publish
from ..registry.base import ApplicationRegistry
from ..reporting.incident_manager import IncidentManager
from ..state.health_state import HealthStateMachine, utcnow
from .backends import RemediationBackend


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RemediationOutcome:
    record: MonitoringRecord
    succeeded: bool
    error: Optional[str] = None
    resolved_incident: Optional[Incident] = None


class AutoRemediator:
    """Runs one restart attempt per call; the next check cycle is the retry."""

    def __init__(
        self,
        registry: ApplicationRegistry,
        backend: RemediationBackend,
        state_machine: HealthStateMachine,
        incident_manager: IncidentManager,
        publisher: Optional[EventPublisher] = None,
        *,
        timeout_seconds: float = 120.0,
    ):
        self.registry = registry
        self.backend = backend
        self.state_machine = state_machine
        self.incident_manager = incident_manager
        self.publisher = publisher
        self.timeout_seconds = timeout_seconds

    def should_remediate(self, record: MonitoringRecord) -> bool:
        return (
            record.policy.auto_restart_enabled
            and record.health_status == HealthStatus.DOWN
            and record.consecutive_failures >= record.policy.max_consecutive_failures_before_restart
        )

    async def remediate(self, record: MonitoringRecord) -> RemediationOutcome:
        target_id = record.target_id
        logger.info("Attempting auto-restart", target_id=target_id, consecutive_failures=record.consecutive_failures)

        restarting = await self.registry.apply_update(target_id, self.state_machine.begin_restart)
        safe_publish(self.publisher, restarting)

        error: Optional[str] = None
        try:
            ok = bool(await asyncio.wait_for(self.backend.restart(restarting), timeout=self.timeout_seconds))
            if not ok:
                error = "restart reported failure"
        except asyncio.TimeoutError:
            ok = False
            error = f"restart timed out after {self.timeout_seconds}s"
        except Exception as e:
            ok = False
            error = f"{type(e).__name__}: {e}"

        if not ok:
            logger.error("Auto-restart failed", target_id=target_id, error=error)
            failed = await self._leave_restarting(target_id, self.state_machine.fail_restart)
            safe_publish(self.publisher, failed)
            return RemediationOutcome(record=failed, succeeded=False, error=error)

        resolved: list[Incident] = []

        def _complete(current: MonitoringRecord) -> MonitoringRecord:
            now = utcnow()
            updated = self.state_machine.complete_restart(current, now)
            updated, change = self.incident_manager.on_transition(current.health_status, updated, now=now)
            if change.resolved is not None:
                resolved.append(change.resolved)
            return updated

        recovered = await self._leave_restarting(target_id, _complete)
        safe_publish(self.publisher, recovered)
        if recovered.health_status != HealthStatus.UP:
            return RemediationOutcome(record=recovered, succeeded=False, error="restart outcome not recorded")

        logger.info("Auto-restart completed", target_id=target_id)
        return RemediationOutcome(
            record=recovered,
            succeeded=True,
            resolved_incident=resolved[0] if resolved else None,
        )

    async def _leave_restarting(self, target_id: str, updater) -> MonitoringRecord:
        """Write the post-restart state; if that write fails, fall back to down once more."""
        try:
            return await self.registry.apply_update(target_id, updater)
        except Exception as e:
            logger.error("Failed to record restart outcome, marking target down",
                         target_id=target_id, error=f"{type(e).__name__}: {e}")
            return await self.registry.apply_update(target_id, self.state_machine.fail_restart)
