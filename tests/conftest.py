from __future__ import annotations

import asyncio
from typing import Any, Optional

import pytest

from uptime_monitor.config import MonitoringConfig
from uptime_monitor.models import AlertChannel, ChannelType, HealthStatus, MonitoringRecord
from uptime_monitor.notifications.channels import ChannelSender
from uptime_monitor.notifications.message import AlertMessage
from uptime_monitor.notifications.notifier import Notifier
from uptime_monitor.probe.health_probe import ProbeOutcome, build_check_url
from uptime_monitor.publisher import EventPublisher, HealthEvent
from uptime_monitor.registry.memory import InMemoryRegistry
from uptime_monitor.remediation.backends import RemediationBackend, SimulatedRestartBackend
from uptime_monitor.service import MonitoringService


UP = ProbeOutcome(status=HealthStatus.UP, response_time_ms=120.0, status_code=200)
DOWN = ProbeOutcome(status=HealthStatus.DOWN, response_time_ms=35.0, error="ConnectError: connection refused")


class ScriptedProbe:
    """Returns scripted outcomes per base URL; the last step repeats. Exceptions are raised."""

    def __init__(self, script: Optional[dict[str, list[Any]]] = None, *, default: ProbeOutcome = UP,
                 delay: float = 0.0):
        self.script = {k: list(v) for k, v in (script or {}).items()}
        self.default = default
        self.delay = delay
        self.calls: list[str] = []
        self.active = 0
        self.max_active = 0

    async def probe(self, base_url, path="/", timeout_seconds=30.0) -> ProbeOutcome:
        url = build_check_url(base_url, path)
        self.calls.append(url)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            steps = self.script.get(base_url)
            step: Any = self.default
            if steps:
                step = steps.pop(0) if len(steps) > 1 else steps[0]
            if isinstance(step, BaseException):
                raise step
            return step
        finally:
            self.active -= 1


class RecordingSender(ChannelSender):
    def __init__(self, result: Any = True):
        self.result = result
        self.messages: list[tuple[AlertMessage, AlertChannel]] = []

    async def deliver(self, message: AlertMessage, channel: AlertChannel) -> bool:
        self.messages.append((message, channel))
        if isinstance(self.result, BaseException):
            raise self.result
        return bool(self.result)


class RecordingPublisher(EventPublisher):
    def __init__(self):
        self.events: list[HealthEvent] = []

    def publish(self, target_id: str, event: HealthEvent) -> None:
        self.events.append(event)


def _make_record(target_id: str = "app-1", **overrides: Any) -> MonitoringRecord:
    data: dict[str, Any] = {
        "target_id": target_id,
        "name": f"App {target_id}",
        "base_url": f"https://{target_id}.example.com",
        "alert_channels": [{"channel_type": "webhook", "destination": "https://hooks.example.com/alerts"}],
    }
    data.update(overrides)
    return MonitoringRecord.from_dict(data)


def _make_service(
    records: list[MonitoringRecord],
    probe: Any,
    *,
    config: Optional[MonitoringConfig] = None,
    sender: Optional[RecordingSender] = None,
    backend: Optional[RemediationBackend] = None,
    publisher: Optional[EventPublisher] = None,
) -> MonitoringService:
    sender = sender or RecordingSender()
    notifier = Notifier({channel_type: sender for channel_type in ChannelType})
    return MonitoringService(
        config or MonitoringConfig(),
        InMemoryRegistry(records),
        probe,
        notifier,
        backend or SimulatedRestartBackend(delay_seconds=0),
        publisher,
    )


@pytest.fixture
def make_record():
    return _make_record


@pytest.fixture
def scripted_probe():
    return ScriptedProbe


@pytest.fixture
def recording_sender():
    return RecordingSender


@pytest.fixture
def recording_publisher():
    return RecordingPublisher()


@pytest.fixture
def make_service():
    return _make_service
