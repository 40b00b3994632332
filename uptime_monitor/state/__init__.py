"""Health state machine."""

from .health_state import HealthStateMachine, Transition, streak_uptime_percentage

__all__ = ["HealthStateMachine", "Transition", "streak_uptime_percentage"]
