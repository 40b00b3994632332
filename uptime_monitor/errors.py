"""Exceptions raised by the monitoring engine.

Probe failures are never exceptions; they are reduced to a probe outcome.
These types cover configuration and lookup problems callers must handle.
"""

from __future__ import annotations


class MonitoringError(Exception):
    """Base class for monitoring engine errors."""


class ConfigurationError(MonitoringError):
    """A target or the engine is misconfigured (e.g. no URL to probe)."""


class TargetNotFoundError(MonitoringError):
    def __init__(self, target_id: str):
        super().__init__(f"Target not found: {target_id}")
        self.target_id = target_id


class CheckInProgressError(MonitoringError):
    def __init__(self, target_id: str):
        super().__init__(f"A check is already running for target: {target_id}")
        self.target_id = target_id


class RegistryError(MonitoringError):
    """The application registry could not be read or written."""
