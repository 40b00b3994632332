"""Per-target health state transitions.

Every probe outcome is accepted in every state; what differs is the effect on
the failure streak, the uptime figure and the response-time average. The
machine holds no state of its own: each operation takes a record and returns
an updated copy.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from ..history import append_sample
from ..models import HealthStatus, MonitoringRecord
from ..probe.health_probe import ProbeOutcome


FAILING_STATUSES = frozenset({HealthStatus.DOWN, HealthStatus.WARNING})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Transition:
    previous: HealthStatus
    current: HealthStatus

    @property
    def changed(self) -> bool:
        return self.previous != self.current

    @property
    def entered_down(self) -> bool:
        return self.current == HealthStatus.DOWN and self.previous != HealthStatus.DOWN


def streak_uptime_percentage(checks_performed: int, consecutive_failures: int) -> float:
    """
    (checks - current failure streak) / checks * 100, clamped to [0, 100].

    This conflates the current failing streak with historical downtime; it is
    kept as-is because dashboards compare against figures computed this way.
    """
    checks = max(int(checks_performed), 1)
    pct = ((int(checks_performed) - int(consecutive_failures)) / float(checks)) * 100.0
    return max(0.0, min(100.0, pct))


class HealthStateMachine:
    """Applies probe outcomes and remediation steps to monitoring records."""

    def __init__(self, history_max_samples: int = 2880):
        self.history_max_samples = max(1, int(history_max_samples))

    def apply_observation(
        self,
        record: MonitoringRecord,
        outcome: Optional[ProbeOutcome],
        now: Optional[datetime] = None,
    ) -> MonitoringRecord:
        """Return the record as it stands after observing ``outcome``.

        With no outcome the given record is returned untouched.
        """
        if outcome is None:
            return record

        now = now or utcnow()
        updated = record.model_copy(deep=True)

        updated.health_status = outcome.status
        updated.last_check = now
        updated.checks_performed = record.checks_performed + 1
        n = updated.checks_performed

        if outcome.response_time_ms is not None:
            sample = float(outcome.response_time_ms)
            avg = float(record.response_time.average)
            updated.response_time.current = sample
            updated.response_time.average = ((avg * (n - 1)) + sample) / n

        if outcome.status == HealthStatus.UP:
            updated.consecutive_failures = 0
        elif outcome.status in FAILING_STATUSES:
            updated.consecutive_failures = record.consecutive_failures + 1
            updated.last_failure = now

        updated.uptime_percentage = streak_uptime_percentage(n, updated.consecutive_failures)
        updated.check_history = append_sample(
            record.check_history,
            ts=now.timestamp(),
            ok=outcome.ok,
            response_ms=outcome.response_time_ms,
            status_code=outcome.status_code,
            max_samples=self.history_max_samples,
        )
        return updated

    def begin_restart(self, record: MonitoringRecord) -> MonitoringRecord:
        updated = record.model_copy(deep=True)
        updated.health_status = HealthStatus.RESTARTING
        return updated

    def complete_restart(self, record: MonitoringRecord, now: Optional[datetime] = None) -> MonitoringRecord:
        updated = record.model_copy(deep=True)
        updated.health_status = HealthStatus.UP
        updated.consecutive_failures = 0
        updated.last_check = now or utcnow()
        return updated

    def fail_restart(self, record: MonitoringRecord) -> MonitoringRecord:
        # Back to down, not unknown: the next scheduled probe re-evaluates.
        updated = record.model_copy(deep=True)
        updated.health_status = HealthStatus.DOWN
        return updated
