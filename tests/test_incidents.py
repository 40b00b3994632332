from __future__ import annotations

from datetime import datetime, timedelta, timezone

from uptime_monitor.models import HealthStatus, Incident, IncidentType, Severity
from uptime_monitor.reporting.incident_manager import IncidentManager
from uptime_monitor.reporting.incident_query import IncidentFilter, incident_statistics, query_incidents


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _down(make_record, failures: int = 3, **kw):
    return make_record(health_status="down", consecutive_failures=failures, **kw)


def test_entering_down_opens_one_high_incident(make_record) -> None:
    record, change = IncidentManager().on_transition(HealthStatus.UP, _down(make_record), "HTTP 502", NOW)

    assert change.opened is not None
    assert len(record.incidents) == 1
    incident = record.incidents[0]
    assert incident.type == IncidentType.DOWNTIME
    assert incident.severity == Severity.HIGH
    assert incident.resolved is False
    assert incident.start_time == NOW
    assert "HTTP 502" in incident.description


def test_long_failure_streak_opens_critical_incident(make_record) -> None:
    record, _ = IncidentManager(critical_after_failures=5).on_transition(
        HealthStatus.WARNING, _down(make_record, failures=5), None, NOW
    )
    assert record.incidents[0].severity == Severity.CRITICAL
    assert "Unknown error" in record.incidents[0].description


def test_staying_down_does_not_open_another_incident(make_record) -> None:
    manager = IncidentManager()
    record, _ = manager.on_transition(HealthStatus.UP, _down(make_record), None, NOW)
    record, change = manager.on_transition(HealthStatus.DOWN, record, None, NOW + timedelta(seconds=30))

    assert change.opened is None
    assert len(record.incidents) == 1


def test_reentering_down_with_open_incident_extends_it(make_record) -> None:
    manager = IncidentManager()
    record, opened = manager.on_transition(HealthStatus.UP, _down(make_record), None, NOW)

    # down -> restarting -> down (failed restart) is still the same outage
    record, change = manager.on_transition(HealthStatus.RESTARTING, record, None, NOW + timedelta(minutes=1))
    assert change.extended is not None
    assert change.extended.id == opened.opened.id
    assert len([i for i in record.incidents if not i.resolved]) == 1


def test_up_resolves_open_incident_with_duration(make_record) -> None:
    manager = IncidentManager()
    record, _ = manager.on_transition(HealthStatus.UP, _down(make_record), None, NOW)

    record.health_status = HealthStatus.UP
    record.consecutive_failures = 0
    record, change = manager.on_transition(HealthStatus.RESTARTING, record, None, NOW + timedelta(seconds=95))

    assert change.resolved is not None
    incident = record.incidents[0]
    assert incident.resolved is True
    assert incident.end_time == NOW + timedelta(seconds=95)
    assert incident.duration_seconds == 95
    assert incident.end_time >= incident.start_time


def test_first_up_without_incident_changes_nothing(make_record) -> None:
    record = make_record(health_status="up")
    updated, change = IncidentManager().on_transition(HealthStatus.UNKNOWN, record, None, NOW)
    assert updated.incidents == []
    assert change.opened is None and change.resolved is None


def test_warning_does_not_open_incident(make_record) -> None:
    record = make_record(health_status="warning", consecutive_failures=7)
    updated, change = IncidentManager().on_transition(HealthStatus.UP, record, "HTTP 404", NOW)
    assert updated.incidents == []
    assert change.opened is None


def test_resolving_unknown_incident_is_noop(make_record) -> None:
    record = make_record()
    updated, change = IncidentManager().resolve_incident(record, "incident_missing", NOW)
    assert updated is record
    assert change.resolved is None


def _incident(start: datetime, severity: Severity = Severity.HIGH, resolved: bool = False) -> Incident:
    return Incident(type=IncidentType.DOWNTIME, severity=severity, start_time=start, resolved=resolved)


def test_query_incidents_newest_first_with_pagination(make_record) -> None:
    a = make_record("a", incidents=[_incident(NOW - timedelta(hours=h)).model_dump() for h in (1, 5)])
    b = make_record("b", incidents=[_incident(NOW - timedelta(hours=h)).model_dump() for h in (2, 3, 4)])

    first = query_incidents([a, b], page=1, limit=2)
    assert first.total == 5
    assert first.pages == 3
    assert [row["target_id"] for row in first.incidents] == ["a", "b"]

    starts = [row["start_time"] for page in (1, 2, 3) for row in query_incidents([a, b], page=page, limit=2).incidents]
    assert starts == sorted(starts, reverse=True)
    assert len(starts) == 5


def test_query_incidents_filters(make_record) -> None:
    record = make_record(
        "a",
        incidents=[
            _incident(NOW, Severity.CRITICAL).model_dump(),
            _incident(NOW - timedelta(hours=1), Severity.HIGH, resolved=True).model_dump(),
        ],
    )
    other = make_record("b", incidents=[_incident(NOW, Severity.CRITICAL).model_dump()])

    page = query_incidents([record, other], IncidentFilter(target_id="a", severity=Severity.CRITICAL))
    assert page.total == 1
    assert page.incidents[0]["severity"] == "critical"
    assert page.incidents[0]["target_name"] == "App a"

    assert query_incidents([record, other], IncidentFilter(resolved=True)).total == 1
    assert query_incidents([record, other], IncidentFilter(resolved=False)).total == 2

    data = query_incidents([], page=1, limit=20).to_dict()
    assert data["pagination"] == {"page": 1, "limit": 20, "total": 0, "pages": 0}


def test_incident_statistics_period(make_record) -> None:
    a = make_record("a", incidents=[
        _incident(NOW - timedelta(hours=2)).model_dump(),
        _incident(NOW - timedelta(hours=3), resolved=True).model_dump(),
    ])
    b = make_record("b", incidents=[_incident(NOW - timedelta(days=3)).model_dump()])

    stats = incident_statistics([a, b], days_back=1, now=NOW)
    assert stats["total_incidents"] == 2
    assert stats["resolved_incidents"] == 1
    assert stats["active_incidents"] == 1
    assert stats["most_problematic_target"] == "a"
