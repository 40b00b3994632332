from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from uptime_monitor.api import create_app
from uptime_monitor.models import HealthStatus, Incident, IncidentType, Severity
from uptime_monitor.probe.health_probe import ProbeOutcome


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(make_record, make_service, scripted_probe):
    incidents = [
        Incident(type=IncidentType.DOWNTIME, severity=Severity.CRITICAL,
                 start_time=NOW - timedelta(hours=h), resolved=h > 1).model_dump()
        for h in (1, 2, 3)
    ]
    records = [
        make_record("shop", name="Shop", incidents=incidents, health_status="up",
                    response_time={"current": 120.0, "average": 100.0}),
        make_record("blog", name="Blog", health_status="down"),
    ]
    probe = scripted_probe({
        "https://blog.example.com": [
            ProbeOutcome(status=HealthStatus.DOWN, response_time_ms=15.0, error="HTTP 503", status_code=503)
        ]
    })
    return make_service(records, probe)


@pytest.fixture
def client(service) -> TestClient:
    return TestClient(create_app(service, manage_lifecycle=False))


def test_health(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy", "service": "uptime-monitor", "scheduler": "stopped"}


def test_stats(client: TestClient) -> None:
    data = client.get("/api/v1/stats").json()
    assert data["total_targets"] == 2
    assert data["up"] == 1
    assert data["down"] == 1
    assert data["uptime_percentage"] == 50.0
    assert data["average_response_time"] == 120.0
    assert data["last_24h"]["period_days"] == 1


def test_incidents_newest_first_and_filtered(client: TestClient) -> None:
    data = client.get("/api/v1/incidents", params={"limit": 2}).json()
    assert data["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
    starts = [row["start_time"] for row in data["incidents"]]
    assert starts == sorted(starts, reverse=True)
    assert data["incidents"][0]["target_name"] == "Shop"

    resolved = client.get("/api/v1/incidents", params={"resolved": "true", "target_id": "shop"}).json()
    assert resolved["pagination"]["total"] == 2

    assert client.get("/api/v1/incidents", params={"severity": "low"}).json()["pagination"]["total"] == 0
    assert client.get("/api/v1/incidents", params={"severity": "bogus"}).status_code == 422


def test_get_target(client: TestClient) -> None:
    data = client.get("/api/v1/targets/shop").json()
    assert data["target_id"] == "shop"
    assert data["uptime_status"] == "excellent"
    assert "check_history" not in data
    assert client.get("/api/v1/targets/nope").status_code == 404


def test_manual_check_returns_result(client: TestClient) -> None:
    resp = client.post("/api/v1/targets/blog/check")
    assert resp.status_code == 200
    data = resp.json()
    assert data["target_id"] == "blog"
    assert data["health_status"] == "down"
    assert data["previous_status"] == "down"
    assert data["status_code"] == 503
    assert data["consecutive_failures"] == 1


def test_manual_check_conflicts_and_missing(client: TestClient, service) -> None:
    assert client.post("/api/v1/targets/nope/check").status_code == 404

    service.scheduler.in_flight.add("shop")
    resp = client.post("/api/v1/targets/shop/check")
    assert resp.status_code == 409


def test_update_config_clamps_values(client: TestClient) -> None:
    resp = client.put(
        "/api/v1/targets/shop/config",
        json={
            "check_interval_seconds": 2,
            "timeout_seconds": 1000,
            "health_check_path": "/healthz",
            "monitoring_enabled": False,
            "alert_channels": [{"channel_type": "email", "destination": "oncall@example.com"}],
        },
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["monitoring_enabled"] is False
    assert data["policy"]["check_interval_seconds"] == 10
    assert data["policy"]["timeout_seconds"] == 300
    assert data["policy"]["health_check_path"] == "/healthz"
    assert data["alert_channels"] == [
        {"channel_type": "email", "destination": "oncall@example.com", "enabled": True}
    ]

    assert client.put("/api/v1/targets/nope/config", json={}).status_code == 404


def test_scheduler_status(client: TestClient) -> None:
    data = client.get("/api/v1/scheduler").json()
    assert data["state"] == "stopped"
    assert data["in_flight"] == []
    assert data["last_tick"] is None
