"""Restart backends used by automatic remediation."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

import httpx
import structlog

from ..config import RemediationConfig
from ..errors import ConfigurationError
from ..models import MonitoringRecord


logger = structlog.get_logger(__name__)


class RemediationBackend(ABC):
    """Restarts a deployed application. May be slow; may fail or raise."""

    @abstractmethod
    async def restart(self, record: MonitoringRecord) -> bool:
        """True when the provider accepted and completed the restart."""


class SimulatedRestartBackend(RemediationBackend):
    """Stand-in for a cloud provider: waits, then reports success."""

    def __init__(self, delay_seconds: float = 2.0, succeed: bool = True):
        self.delay_seconds = max(0.0, float(delay_seconds))
        self.succeed = succeed

    async def restart(self, record: MonitoringRecord) -> bool:
        logger.info("Simulating restart", target_id=record.target_id, delay_seconds=self.delay_seconds)
        await asyncio.sleep(self.delay_seconds)
        return self.succeed


class WebhookRestartBackend(RemediationBackend):
    """POSTs to a provider restart/redeploy hook.

    The URL may contain ``{target_id}``; any 2xx response counts as success.
    """

    def __init__(self, client: httpx.AsyncClient, url_template: str, *, token: Optional[str] = None,
                 timeout: float = 120.0):
        if not url_template:
            raise ConfigurationError("Remediation webhook URL is not configured")
        self.client = client
        self.url_template = url_template
        self.token = token
        self.timeout = timeout

    async def restart(self, record: MonitoringRecord) -> bool:
        url = self.url_template.format(target_id=record.target_id)
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        resp = await self.client.post(
            url,
            json={"target_id": record.target_id, "action": "restart"},
            headers=headers,
            timeout=self.timeout,
        )
        if 200 <= resp.status_code < 300:
            return True
        logger.error("Restart hook returned error status", target_id=record.target_id, status_code=resp.status_code)
        return False


def build_backend(config: RemediationConfig, client: httpx.AsyncClient) -> RemediationBackend:
    if config.backend == "webhook":
        return WebhookRestartBackend(client, config.webhook_url or "", token=config.webhook_token,
                                     timeout=config.timeout_seconds)
    return SimulatedRestartBackend(delay_seconds=config.simulated_delay_seconds)
