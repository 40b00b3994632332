"""Read side of incident history: filtering, pagination and statistics."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from ..models import MonitoringRecord, Severity


@dataclass(frozen=True)
class IncidentPage:
    incidents: list[dict[str, Any]]
    page: int
    limit: int
    total: int
    pages: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "incidents": self.incidents,
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "pages": self.pages,
            },
        }


@dataclass(frozen=True)
class IncidentFilter:
    target_id: Optional[str] = None
    severity: Optional[Severity] = None
    resolved: Optional[bool] = None
    since: Optional[datetime] = None


def query_incidents(
    records: Iterable[MonitoringRecord],
    filters: IncidentFilter = IncidentFilter(),
    *,
    page: int = 1,
    limit: int = 20,
) -> IncidentPage:
    """Collect incidents across targets, filter them and return one page, newest first."""
    page = max(1, int(page))
    limit = max(1, int(limit))

    rows: list[tuple[datetime, dict[str, Any]]] = []
    for record in records:
        if filters.target_id and record.target_id != filters.target_id:
            continue
        for incident in record.incidents:
            if filters.severity is not None and incident.severity != filters.severity:
                continue
            if filters.resolved is not None and incident.resolved != filters.resolved:
                continue
            if filters.since is not None and incident.start_time < filters.since:
                continue
            row = incident.model_dump(mode="json")
            row["target_id"] = record.target_id
            row["target_name"] = record.display_name
            rows.append((incident.start_time, row))

    rows.sort(key=lambda r: r[0], reverse=True)

    total = len(rows)
    start = (page - 1) * limit
    items = [row for _, row in rows[start:start + limit]]
    return IncidentPage(
        incidents=items,
        page=page,
        limit=limit,
        total=total,
        pages=math.ceil(total / limit) if total else 0,
    )


def incident_statistics(
    records: Iterable[MonitoringRecord],
    *,
    days_back: int = 1,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Incident counts for the period, plus a per-target breakdown."""
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=days_back)

    total = resolved = active = 0
    per_target: dict[str, int] = {}
    for record in records:
        for incident in record.incidents:
            if incident.start_time < cutoff:
                continue
            total += 1
            if incident.resolved:
                resolved += 1
            else:
                active += 1
            per_target[record.target_id] = per_target.get(record.target_id, 0) + 1

    return {
        "period_days": days_back,
        "total_incidents": total,
        "resolved_incidents": resolved,
        "active_incidents": active,
        "target_breakdown": per_target,
        "most_problematic_target": max(per_target, key=lambda k: per_target[k]) if per_target else None,
    }
