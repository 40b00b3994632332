"""HTTP liveness probing."""

from .health_probe import HealthProbe, ProbeOutcome, build_check_url

__all__ = ["HealthProbe", "ProbeOutcome", "build_check_url"]
