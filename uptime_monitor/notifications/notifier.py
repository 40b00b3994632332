"""Fans one alert decision out to every enabled channel of a target."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Mapping, Optional

import structlog

from ..models import AlertChannel, ChannelType, HealthStatus, MonitoringRecord, Severity
from .channels import ChannelSender
from .message import AlertMessage, build_alert_message


logger = structlog.get_logger(__name__)


def _mask_destination(destination: str) -> str:
    # Webhook URLs carry secrets in their path
    s = str(destination or "")
    if s.startswith(("http://", "https://")):
        head, _, _ = s.partition("//")
        host = s[len(head) + 2:].split("/", 1)[0]
        return f"{head}//{host}/..."
    return s


@dataclass(frozen=True)
class ChannelResult:
    channel_type: ChannelType
    destination: str
    ok: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class NotificationReport:
    target_id: str
    severity: Severity
    results: tuple[ChannelResult, ...] = ()

    @property
    def attempted(self) -> int:
        return len(self.results)

    @property
    def delivered(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> list[ChannelResult]:
        return [r for r in self.results if not r.ok]


class Notifier:
    """Concurrent, failure-isolated, at-most-once alert delivery."""

    def __init__(self, senders: Mapping[ChannelType, ChannelSender]):
        self.senders = dict(senders)

    async def send_alert(
        self,
        record: MonitoringRecord,
        severity: Severity,
        diagnostic: Optional[str] = None,
        *,
        status: Optional[HealthStatus] = None,
        response_time_ms: Optional[float] = None,
    ) -> NotificationReport:
        """Deliver an alert for ``record`` on all its enabled channels.

        Partial delivery is still a success; failed channels are logged and
        reported, never retried.
        """
        if response_time_ms is None:
            response_time_ms = record.response_time.current
        message = build_alert_message(
            record,
            severity,
            status=status,
            response_time_ms=response_time_ms,
            diagnostic=diagnostic,
        )

        channels = [c for c in record.alert_channels if c.enabled]
        if not channels:
            logger.info("No enabled alert channels", target_id=record.target_id, severity=severity.value)
            return NotificationReport(target_id=record.target_id, severity=severity)

        tasks = [asyncio.create_task(self._deliver_one(message, channel)) for channel in channels]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        results: list[ChannelResult] = []
        for channel, outcome in zip(channels, outcomes):
            if isinstance(outcome, BaseException):
                results.append(ChannelResult(channel.channel_type, channel.destination, False, repr(outcome)))
            else:
                results.append(outcome)

        report = NotificationReport(target_id=record.target_id, severity=severity, results=tuple(results))
        if report.failed:
            logger.warning("Some alert channels failed",
                           target_id=record.target_id,
                           successful=report.delivered,
                           total=report.attempted)
        logger.info("Sent notifications",
                    target_id=record.target_id,
                    severity=severity.value,
                    delivered=report.delivered,
                    total=report.attempted)
        return report

    async def _deliver_one(self, message: AlertMessage, channel: AlertChannel) -> ChannelResult:
        sender = self.senders.get(channel.channel_type)
        if sender is None:
            logger.error("No sender for channel type", channel_type=channel.channel_type.value, target_id=message.target_id)
            return ChannelResult(channel.channel_type, channel.destination, False, "unsupported channel type")

        try:
            ok = bool(await sender.deliver(message, channel))
        except Exception as e:
            logger.error("Alert channel failed",
                         channel_type=channel.channel_type.value,
                         destination=_mask_destination(channel.destination),
                         target_id=message.target_id,
                         error=f"{type(e).__name__}: {e}")
            return ChannelResult(channel.channel_type, channel.destination, False, f"{type(e).__name__}: {e}")

        if not ok:
            logger.error("Alert channel reported failure",
                         channel_type=channel.channel_type.value,
                         destination=_mask_destination(channel.destination),
                         target_id=message.target_id)
            return ChannelResult(channel.channel_type, channel.destination, False, "delivery failed")
        return ChannelResult(channel.channel_type, channel.destination, True)
