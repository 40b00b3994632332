"""Configuration management for the uptime monitoring engine."""

from __future__ import annotations

import os
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field


class AlertingConfig(BaseModel):
    """Thresholds used when deciding whether a check warrants a notification."""
    down_after_failures: int = Field(default=3, ge=1, description="Consecutive failures before a down alert")
    slow_response_ms: float = Field(default=5000.0, description="Response time considered slow")
    slow_after_failures: int = Field(default=2, ge=1, description="Consecutive failures before a slow-response alert")
    warning_after_failures: int = Field(default=5, ge=1, description="Consecutive failures before a warning alert")
    critical_after_failures: int = Field(default=5, ge=1, description="Failures at which a down alert becomes critical")
    very_slow_response_ms: float = Field(default=10000.0, description="Response time that raises severity to medium")
    notify_on_recovery: bool = Field(default=False, description="Notify channels when a downtime incident resolves")


class NotificationConfig(BaseModel):
    """Channel transport settings."""
    http_timeout_seconds: float = Field(default=15.0, description="Timeout for webhook/Slack/Telegram posts")
    smtp_host: str = Field(default="smtp.gmail.com")
    smtp_port: int = Field(default=587)
    smtp_user: Optional[str] = Field(default=None)
    smtp_password: Optional[str] = Field(default=None)
    smtp_use_tls: bool = Field(default=True)
    from_address: Optional[str] = Field(default=None, description="Sender address, defaults to smtp_user")
    telegram_bot_token: Optional[str] = Field(default=None)
    dashboard_url: Optional[str] = Field(default=None, description="Link included in alert bodies")


class RemediationConfig(BaseModel):
    """Automatic restart backend settings."""
    backend: Literal["simulated", "webhook"] = Field(default="simulated")
    timeout_seconds: float = Field(default=120.0, gt=0, description="Upper bound for one restart attempt")
    simulated_delay_seconds: float = Field(default=2.0, ge=0)
    webhook_url: Optional[str] = Field(default=None, description="Restart hook, formatted with {target_id}")
    webhook_token: Optional[str] = Field(default=None)


class RegistryConfig(BaseModel):
    """Where monitored targets live."""
    backend: Literal["memory", "json"] = Field(default="json")
    state_path: str = Field(default="data/state.json", description="State file for the json backend")
    targets_file: Optional[str] = Field(default=None, description="YAML list of targets to seed the registry with")


class ApiConfig(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)


class MonitoringConfig(BaseModel):
    """Main configuration for the monitoring engine."""

    # Environment settings
    environment: str = Field(default="production", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["console", "json"] = Field(default="console")

    # Check cadence
    check_interval_seconds: int = Field(default=30, ge=1, description="Seconds between check ticks")
    batch_size: int = Field(default=10, ge=1, description="Targets probed concurrently per batch")
    max_overlapping_ticks: int = Field(default=3, ge=1, description="Check ticks allowed to run at once")
    aggregation_interval_seconds: int = Field(default=300, ge=1, description="Seconds between uptime rollups")
    cleanup_cron: str = Field(default="0 2 * * *", description="Cron expression for incident retention cleanup")
    incident_retention_days: int = Field(default=30, ge=1)

    # Probe settings
    user_agent: str = Field(default="UptimeMonitor/1.0")

    # Uptime rollup
    uptime_mode: Literal["streak", "rolling_window"] = Field(default="streak")
    uptime_window_hours: float = Field(default=24.0, gt=0)
    history_max_samples: int = Field(default=2880, ge=1, description="Check samples kept per target")

    alerting: AlertingConfig = Field(default_factory=AlertingConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    remediation: RemediationConfig = Field(default_factory=RemediationConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)


_ENV_OVERRIDES: dict[str, tuple[str, ...]] = {
    "MONITORING_ENV": ("environment",),
    "LOG_LEVEL": ("log_level",),
    "LOG_FORMAT": ("log_format",),
    "CHECK_INTERVAL_SECONDS": ("check_interval_seconds",),
    "SMTP_HOST": ("notifications", "smtp_host"),
    "SMTP_PORT": ("notifications", "smtp_port"),
    "SMTP_USER": ("notifications", "smtp_user"),
    "SMTP_PASSWORD": ("notifications", "smtp_password"),
    "TELEGRAM_BOT_TOKEN": ("notifications", "telegram_bot_token"),
    "REMEDIATION_WEBHOOK_URL": ("remediation", "webhook_url"),
    "REMEDIATION_WEBHOOK_TOKEN": ("remediation", "webhook_token"),
    "MONITORING_STATE_PATH": ("registry", "state_path"),
}


def _set_nested(data: dict[str, Any], keys: tuple[str, ...], value: Any) -> None:
    node = data
    for key in keys[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    node[keys[-1]] = value


def load_config(config_path: Optional[str] = None) -> MonitoringConfig:
    """Load configuration from file or environment variables."""
    if config_path is None:
        config_path = os.getenv("MONITORING_CONFIG", "config/monitoring.yaml")

    config_data: dict[str, Any] = {}

    # Load from file if exists
    if os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}
        if not isinstance(config_data, dict):
            raise ValueError("Config YAML must be a mapping")

    # Override with environment variables; pydantic coerces the strings
    for env_name, keys in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is not None and value.strip():
            _set_nested(config_data, keys, value.strip())

    return MonitoringConfig(**config_data)
