"""Data model for monitored targets and their incidents."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class HealthStatus(str, Enum):
    UNKNOWN = "unknown"
    UP = "up"
    DOWN = "down"
    WARNING = "warning"
    RESTARTING = "restarting"


class IncidentType(str, Enum):
    DOWNTIME = "downtime"
    SLOW_RESPONSE = "slow_response"
    ERROR_RATE = "error_rate"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ChannelType(str, Enum):
    EMAIL = "email"
    SLACK = "slack"
    WEBHOOK = "webhook"
    TELEGRAM = "telegram"


def new_incident_id() -> str:
    return f"incident_{uuid.uuid4().hex[:16]}"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Naive timestamps (hand-written target files) are taken as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Incident(BaseModel):
    """A bounded interval of abnormal health for a target."""

    id: str = Field(default_factory=new_incident_id)
    type: IncidentType
    severity: Severity
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    resolved: bool = False
    description: str = ""

    @field_validator("start_time", "end_time")
    @classmethod
    def _utc_times(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class ResponseTime(BaseModel):
    current: float = 0.0
    average: float = 0.0


class MonitoringPolicy(BaseModel):
    """Per-target probing and remediation policy."""

    health_check_path: str = Field(default="/", min_length=1)
    timeout_seconds: int = Field(default=30, ge=5, le=300)
    check_interval_seconds: int = Field(default=30, ge=10, le=3600)
    auto_restart_enabled: bool = True
    max_consecutive_failures_before_restart: int = Field(default=3, ge=1, le=10)


class AlertChannel(BaseModel):
    channel_type: ChannelType
    destination: str
    enabled: bool = True


class MonitoringRecord(BaseModel):
    """Monitoring state of one target application."""

    target_id: str = Field(..., min_length=1)
    name: str = ""
    base_url: Optional[str] = None
    custom_domain: Optional[str] = None

    health_status: HealthStatus = HealthStatus.UNKNOWN
    consecutive_failures: int = Field(default=0, ge=0)
    last_failure: Optional[datetime] = None
    response_time: ResponseTime = Field(default_factory=ResponseTime)
    uptime_percentage: float = Field(default=100.0, ge=0.0, le=100.0)
    checks_performed: int = Field(default=0, ge=0)
    last_check: Optional[datetime] = None
    incidents: list[Incident] = Field(default_factory=list)

    monitoring_enabled: bool = True
    is_active: bool = True
    deployment_status: str = "deployed"
    policy: MonitoringPolicy = Field(default_factory=MonitoringPolicy)
    alert_channels: list[AlertChannel] = Field(default_factory=list)

    # [ts, ok, response_ms, status_code], oldest first
    check_history: list[list[Any]] = Field(default_factory=list)

    @field_validator("last_check", "last_failure")
    @classmethod
    def _utc_times(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @property
    def display_name(self) -> str:
        return self.name or self.target_id

    def open_incident(self, incident_type: IncidentType = IncidentType.DOWNTIME) -> Optional[Incident]:
        """Most recent unresolved incident of the given type, if any."""
        for incident in self.incidents:
            if incident.type == incident_type and not incident.resolved:
                return incident
        return None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MonitoringRecord":
        return cls.model_validate(data)


def full_url(record: MonitoringRecord) -> Optional[str]:
    """The URL probes are sent to: the custom domain wins over the deployment URL."""
    if record.custom_domain:
        return f"https://{record.custom_domain}"
    return record.base_url


def uptime_status(record: MonitoringRecord) -> str:
    uptime = record.uptime_percentage
    if uptime >= 99.9:
        return "excellent"
    if uptime >= 99.0:
        return "good"
    if uptime >= 95.0:
        return "fair"
    return "poor"


def success_rate(record: MonitoringRecord) -> Optional[float]:
    """Percentage of successful checks among the retained samples."""
    samples = record.check_history
    if not samples:
        return None
    ok_count = sum(1 for s in samples if len(s) > 1 and bool(s[1]))
    return (ok_count / float(len(samples))) * 100.0


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, int(value)))


class PolicyUpdate(BaseModel):
    """Partial configuration change for one target; unset fields are left alone.

    Out-of-range interval and timeout values are clamped rather than rejected.
    """

    monitoring_enabled: Optional[bool] = None
    check_interval_seconds: Optional[int] = None
    health_check_path: Optional[str] = None
    timeout_seconds: Optional[int] = None
    auto_restart_enabled: Optional[bool] = None
    max_consecutive_failures_before_restart: Optional[int] = None
    alert_channels: Optional[list[AlertChannel]] = None

    def apply(self, record: MonitoringRecord) -> MonitoringRecord:
        updated = record.model_copy(deep=True)
        policy = updated.policy
        if self.monitoring_enabled is not None:
            updated.monitoring_enabled = self.monitoring_enabled
        if self.check_interval_seconds is not None:
            policy.check_interval_seconds = _clamp(self.check_interval_seconds, 10, 3600)
        if self.health_check_path:
            policy.health_check_path = self.health_check_path
        if self.timeout_seconds is not None:
            policy.timeout_seconds = _clamp(self.timeout_seconds, 5, 300)
        if self.auto_restart_enabled is not None:
            policy.auto_restart_enabled = self.auto_restart_enabled
        if self.max_consecutive_failures_before_restart is not None:
            policy.max_consecutive_failures_before_restart = _clamp(
                self.max_consecutive_failures_before_restart, 1, 10
            )
        if self.alert_channels is not None:
            updated.alert_channels = [c.model_copy() for c in self.alert_channels]
        return updated
