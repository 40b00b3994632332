"""Incident tracking driven by health state transitions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import structlog

from ..models import HealthStatus, Incident, IncidentType, MonitoringRecord, Severity


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class IncidentChange:
    """What on_transition did to the record's incident list."""
    opened: Optional[Incident] = None
    resolved: Optional[Incident] = None
    extended: Optional[Incident] = None


class IncidentManager:
    """Opens and resolves downtime incidents.

    Creation and resolution happen in real time on each check; pruning of old
    resolved incidents is a batch job owned by the metrics aggregator.
    """

    def __init__(self, critical_after_failures: int = 5):
        self.critical_after_failures = max(1, int(critical_after_failures))

    def on_transition(
        self,
        previous_status: HealthStatus,
        record: MonitoringRecord,
        diagnostic: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> tuple[MonitoringRecord, IncidentChange]:
        """Apply incident bookkeeping for a record that just moved from ``previous_status``."""
        now = now or datetime.now(timezone.utc)
        current = record.health_status

        if current == HealthStatus.DOWN and previous_status != HealthStatus.DOWN:
            existing = record.open_incident(IncidentType.DOWNTIME)
            if existing is not None:
                # Still the same outage (e.g. a failed restart); keep it open.
                logger.info("Downtime incident extended", target_id=record.target_id, incident_id=existing.id)
                return record, IncidentChange(extended=existing)
            severity = Severity.HIGH
            if record.consecutive_failures >= self.critical_after_failures:
                severity = Severity.CRITICAL
            return self.open_incident(
                record,
                IncidentType.DOWNTIME,
                severity,
                f"Application is down: {diagnostic or 'Unknown error'}",
                now=now,
            )

        if current == HealthStatus.UP:
            existing = record.open_incident(IncidentType.DOWNTIME)
            if existing is not None:
                return self.resolve_incident(record, existing.id, now=now)

        return record, IncidentChange()

    def open_incident(
        self,
        record: MonitoringRecord,
        incident_type: IncidentType,
        severity: Severity,
        description: str,
        now: Optional[datetime] = None,
    ) -> tuple[MonitoringRecord, IncidentChange]:
        incident = Incident(
            type=incident_type,
            severity=severity,
            start_time=now or datetime.now(timezone.utc),
            description=description,
        )
        updated = record.model_copy(deep=True)
        updated.incidents.insert(0, incident)

        logger.info("Created new incident",
                    target_id=record.target_id,
                    incident_id=incident.id,
                    type=incident_type.value,
                    severity=severity.value)
        return updated, IncidentChange(opened=incident)

    def resolve_incident(
        self,
        record: MonitoringRecord,
        incident_id: str,
        now: Optional[datetime] = None,
    ) -> tuple[MonitoringRecord, IncidentChange]:
        now = now or datetime.now(timezone.utc)
        updated = record.model_copy(deep=True)
        for incident in updated.incidents:
            if incident.id != incident_id or incident.resolved:
                continue
            incident.resolved = True
            incident.end_time = now
            incident.duration_seconds = max(0, int((now - incident.start_time).total_seconds()))
            logger.info("Resolved incident",
                        target_id=record.target_id,
                        incident_id=incident_id,
                        duration_seconds=incident.duration_seconds)
            return updated, IncidentChange(resolved=incident)

        logger.warning("Cannot resolve unknown or closed incident", target_id=record.target_id, incident_id=incident_id)
        return record, IncidentChange()
