"""Decides whether a check result is worth waking a human for."""

from __future__ import annotations

from typing import Optional

from ..config import AlertingConfig
from ..models import HealthStatus, Incident, IncidentType, MonitoringRecord, Severity


class AlertEvaluator:
    """Pure alerting rules, evaluated once per check after the state update.

    A single transient failure never alerts: down needs a streak, slow
    responses need a (shorter) streak, warnings need a long one.
    """

    def __init__(self, config: Optional[AlertingConfig] = None):
        self.config = config or AlertingConfig()

    def _is_slow(self, response_time_ms: Optional[float], failures: int) -> bool:
        return (
            response_time_ms is not None
            and response_time_ms > self.config.slow_response_ms
            and failures >= self.config.slow_after_failures
        )

    def should_alert(
        self,
        record: MonitoringRecord,
        new_status: HealthStatus,
        response_time_ms: Optional[float],
    ) -> bool:
        if not record.monitoring_enabled:
            return False

        failures = record.consecutive_failures
        if new_status == HealthStatus.DOWN and failures >= self.config.down_after_failures:
            return True
        if self._is_slow(response_time_ms, failures):
            return True
        if new_status == HealthStatus.WARNING and failures >= self.config.warning_after_failures:
            return True
        return False

    def alert_severity(
        self,
        new_status: HealthStatus,
        consecutive_failures: int,
        response_time_ms: Optional[float],
    ) -> Severity:
        if new_status == HealthStatus.DOWN:
            if consecutive_failures >= self.config.critical_after_failures:
                return Severity.CRITICAL
            return Severity.HIGH
        if response_time_ms is not None and response_time_ms > self.config.very_slow_response_ms:
            return Severity.MEDIUM
        if self._is_slow(response_time_ms, consecutive_failures):
            return Severity.MEDIUM
        return Severity.LOW

    def should_notify_recovery(self, resolved: Optional[Incident]) -> bool:
        return bool(
            self.config.notify_on_recovery
            and resolved is not None
            and resolved.type == IncidentType.DOWNTIME
        )
