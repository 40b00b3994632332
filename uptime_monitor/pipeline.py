"""One target's check: probe, state update, incidents, alerting, remediation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import structlog

from .alerting.evaluator import AlertEvaluator
from .models import HealthStatus, Incident, MonitoringRecord, Severity, full_url
from .notifications.notifier import NotificationReport, Notifier
from .probe.health_probe import HealthProbe, ProbeOutcome
from .publisher import EventPublisher, safe_publish
from .registry.base import ApplicationRegistry
from .remediation.auto_remediator import AutoRemediator, RemediationOutcome
from .reporting.incident_manager import IncidentChange, IncidentManager
from .state.health_state import HealthStateMachine, Transition, utcnow


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CheckResult:
    record: MonitoringRecord
    outcome: ProbeOutcome
    transition: Transition
    incident: IncidentChange
    notification: Optional[NotificationReport] = None
    remediation: Optional[RemediationOutcome] = None

    def to_dict(self) -> dict:
        return {
            "target_id": self.record.target_id,
            "health_status": self.record.health_status.value,
            "previous_status": self.transition.previous.value,
            "last_check": self.record.last_check.isoformat() if self.record.last_check else None,
            "response_time": self.outcome.response_time_ms,
            "status_code": self.outcome.status_code,
            "error": self.outcome.error,
            "consecutive_failures": self.record.consecutive_failures,
            "uptime_percentage": self.record.uptime_percentage,
            "alerted": self.notification is not None,
            "remediated": None if self.remediation is None else self.remediation.succeeded,
        }


class CheckPipeline:
    """Runs the full check for a single target.

    Only the registry update is transactional; notification and remediation
    happen afterwards against the committed record.
    """

    def __init__(
        self,
        registry: ApplicationRegistry,
        probe: HealthProbe,
        state_machine: HealthStateMachine,
        incident_manager: IncidentManager,
        evaluator: AlertEvaluator,
        notifier: Notifier,
        remediator: Optional[AutoRemediator] = None,
        publisher: Optional[EventPublisher] = None,
    ):
        self.registry = registry
        self.probe = probe
        self.state_machine = state_machine
        self.incident_manager = incident_manager
        self.evaluator = evaluator
        self.notifier = notifier
        self.remediator = remediator
        self.publisher = publisher

    async def run(self, record: MonitoringRecord) -> CheckResult:
        policy = record.policy
        outcome = await self.probe.probe(full_url(record), policy.health_check_path, policy.timeout_seconds)

        observed: dict = {}

        def _observe(current: MonitoringRecord) -> MonitoringRecord:
            now = utcnow()
            updated = self.state_machine.apply_observation(current, outcome, now)
            updated, change = self.incident_manager.on_transition(current.health_status, updated, outcome.error, now)
            observed["previous"] = current.health_status
            observed["change"] = change
            return updated

        updated = await self.registry.apply_update(record.target_id, _observe)
        safe_publish(self.publisher, updated)

        transition = Transition(previous=observed["previous"], current=updated.health_status)
        change: IncidentChange = observed["change"]
        if transition.changed:
            logger.info("Health status changed",
                        target_id=updated.target_id,
                        previous=transition.previous.value,
                        status=transition.current.value,
                        consecutive_failures=updated.consecutive_failures)

        notification = None
        if self.evaluator.should_alert(updated, outcome.status, outcome.response_time_ms):
            severity = self.evaluator.alert_severity(outcome.status, updated.consecutive_failures,
                                                     outcome.response_time_ms)
            notification = await self._notify(updated, severity, outcome.error, outcome.status,
                                              outcome.response_time_ms)
        elif self.evaluator.should_notify_recovery(change.resolved):
            notification = await self._notify_recovery(updated, change.resolved)

        remediation = None
        if self.remediator is not None and self.remediator.should_remediate(updated):
            remediation = await self.remediator.remediate(updated)
            updated = remediation.record
            if self.evaluator.should_notify_recovery(remediation.resolved_incident):
                await self._notify_recovery(updated, remediation.resolved_incident)

        logger.debug("Health check completed",
                     target_id=updated.target_id,
                     status=updated.health_status.value,
                     response_time_ms=outcome.response_time_ms)
        return CheckResult(
            record=updated,
            outcome=outcome,
            transition=transition,
            incident=change,
            notification=notification,
            remediation=remediation,
        )

    async def _notify(
        self,
        record: MonitoringRecord,
        severity: Severity,
        diagnostic: Optional[str],
        status: HealthStatus,
        response_time_ms: Optional[float],
    ) -> Optional[NotificationReport]:
        # A broken notifier must not stop remediation
        try:
            return await self.notifier.send_alert(record, severity, diagnostic, status=status,
                                                  response_time_ms=response_time_ms)
        except Exception as e:
            logger.error("Error sending alert", target_id=record.target_id, error=f"{type(e).__name__}: {e}")
            return None

    async def _notify_recovery(self, record: MonitoringRecord, resolved: Optional[Incident]) -> Optional[NotificationReport]:
        duration = resolved.duration_seconds if resolved is not None else None
        diagnostic = f"Recovered after {duration}s of downtime" if duration is not None else None
        return await self._notify(record, Severity.LOW, diagnostic, HealthStatus.UP, record.response_time.current)
