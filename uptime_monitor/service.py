"""Composition root: wires registry, probe, pipeline and scheduler together."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import httpx
import structlog

from .alerting.evaluator import AlertEvaluator
from .config import MonitoringConfig, RegistryConfig
from .errors import TargetNotFoundError
from .metrics.aggregator import MetricsAggregator
from .models import MonitoringRecord, PolicyUpdate, Severity, success_rate, uptime_status
from .notifications.channels import default_senders
from .notifications.notifier import Notifier
from .pipeline import CheckPipeline, CheckResult
from .probe.health_probe import HealthProbe
from .publisher import BroadcastPublisher, EventPublisher
from .registry.base import ApplicationRegistry
from .registry.json_store import JsonFileRegistry
from .registry.memory import InMemoryRegistry
from .registry.seed import seed_registry
from .remediation.auto_remediator import AutoRemediator
from .remediation.backends import RemediationBackend, build_backend
from .reporting.incident_manager import IncidentManager
from .reporting.incident_query import IncidentFilter, IncidentPage, incident_statistics, query_incidents
from .scheduler.monitoring_scheduler import MonitoringScheduler
from .state.health_state import HealthStateMachine


logger = structlog.get_logger(__name__)


def build_registry(config: RegistryConfig) -> ApplicationRegistry:
    if config.backend == "memory":
        return InMemoryRegistry()
    return JsonFileRegistry(config.state_path)


class MonitoringService:
    """Everything the API and entry point need, behind one object."""

    def __init__(
        self,
        config: MonitoringConfig,
        registry: ApplicationRegistry,
        probe: HealthProbe,
        notifier: Notifier,
        remediation_backend: RemediationBackend,
        publisher: Optional[EventPublisher] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self.registry = registry
        self.probe = probe
        self.notifier = notifier
        self.publisher = publisher if publisher is not None else BroadcastPublisher()
        self._http_client = http_client

        self.state_machine = HealthStateMachine(config.history_max_samples)
        self.incident_manager = IncidentManager(config.alerting.critical_after_failures)
        self.evaluator = AlertEvaluator(config.alerting)
        self.remediator = AutoRemediator(
            registry,
            remediation_backend,
            self.state_machine,
            self.incident_manager,
            self.publisher,
            timeout_seconds=config.remediation.timeout_seconds,
        )
        self.pipeline = CheckPipeline(
            registry,
            probe,
            self.state_machine,
            self.incident_manager,
            self.evaluator,
            notifier,
            self.remediator,
            self.publisher,
        )
        self.aggregator = MetricsAggregator(registry, config, self.publisher)
        self.scheduler = MonitoringScheduler(registry, self.pipeline, self.aggregator, config)

    @classmethod
    def from_config(
        cls,
        config: MonitoringConfig,
        *,
        registry: Optional[ApplicationRegistry] = None,
        publisher: Optional[EventPublisher] = None,
    ) -> "MonitoringService":
        client = httpx.AsyncClient(follow_redirects=True)
        return cls(
            config,
            registry if registry is not None else build_registry(config.registry),
            HealthProbe(client, user_agent=config.user_agent),
            Notifier(default_senders(config.notifications, client)),
            build_backend(config.remediation, client),
            publisher,
            http_client=client,
        )

    async def seed_targets(self) -> int:
        targets_file = self.config.registry.targets_file
        if not targets_file or not Path(targets_file).exists():
            return 0
        return await seed_registry(self.registry, targets_file)

    async def start(self) -> None:
        await self.seed_targets()
        await self.scheduler.start()
        logger.info("Monitoring service started", environment=self.config.environment)

    async def stop(self) -> None:
        await self.scheduler.stop()
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
        logger.info("Monitoring service stopped")

    async def check_now(self, target_id: str) -> CheckResult:
        return await self.scheduler.check_target(target_id)

    async def update_policy(self, target_id: str, update: PolicyUpdate) -> MonitoringRecord:
        record = await self.registry.apply_update(target_id, update.apply)
        logger.info("Updated monitoring configuration",
                    target_id=target_id,
                    changes=sorted(update.model_dump(exclude_none=True)))
        return record

    async def get_target(self, target_id: str) -> dict[str, Any]:
        record = await self.registry.get(target_id)
        if record is None:
            raise TargetNotFoundError(target_id)
        data = record.to_dict()
        data.pop("check_history", None)
        data["uptime_status"] = uptime_status(record)
        data["success_rate"] = success_rate(record)
        return data

    async def get_stats(self) -> dict[str, Any]:
        records = await self.registry.list_all()
        stats = self.aggregator.compute_stats(records)
        stats["last_24h"] = incident_statistics(records, days_back=1)
        return stats

    async def list_incidents(
        self,
        *,
        target_id: Optional[str] = None,
        severity: Optional[Severity] = None,
        resolved: Optional[bool] = None,
        page: int = 1,
        limit: int = 20,
    ) -> IncidentPage:
        filters = IncidentFilter(target_id=target_id, severity=severity, resolved=resolved)
        return query_incidents(await self.registry.list_all(), filters, page=page, limit=limit)
