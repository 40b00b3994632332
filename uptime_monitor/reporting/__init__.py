"""Incident management and incident history."""

from .incident_manager import IncidentChange, IncidentManager
from .incident_query import IncidentFilter, IncidentPage, incident_statistics, query_incidents

__all__ = [
    "IncidentChange",
    "IncidentFilter",
    "IncidentManager",
    "IncidentPage",
    "incident_statistics",
    "query_incidents",
]
