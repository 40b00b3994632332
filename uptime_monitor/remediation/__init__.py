"""Automatic remediation (restarts)."""

from .auto_remediator import AutoRemediator, RemediationOutcome
from .backends import RemediationBackend, SimulatedRestartBackend, WebhookRestartBackend, build_backend

__all__ = [
    "AutoRemediator",
    "RemediationBackend",
    "RemediationOutcome",
    "SimulatedRestartBackend",
    "WebhookRestartBackend",
    "build_backend",
]
