"""Channel-independent alert message and its renderings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from html import escape
from typing import Any, Optional

from ..models import HealthStatus, MonitoringRecord, Severity, full_url


SEVERITY_COLORS = {
    Severity.CRITICAL: "#dc2626",
    Severity.HIGH: "#ea580c",
    Severity.MEDIUM: "#d97706",
    Severity.LOW: "#65a30d",
}


@dataclass(frozen=True)
class AlertMessage:
    title: str
    summary: str
    severity: Severity
    status: HealthStatus
    target_id: str
    timestamp: datetime
    detail_fields: dict[str, str] = field(default_factory=dict)
    url: Optional[str] = None


def _format_ms(value: Optional[float]) -> str:
    if value is None:
        return "N/A"
    return f"{int(round(float(value)))}ms"


def build_alert_message(
    record: MonitoringRecord,
    severity: Severity,
    *,
    status: Optional[HealthStatus] = None,
    response_time_ms: Optional[float] = None,
    diagnostic: Optional[str] = None,
    now: Optional[datetime] = None,
) -> AlertMessage:
    status = status or record.health_status
    now = now or datetime.now(timezone.utc)
    name = record.display_name
    url = full_url(record)

    if status == HealthStatus.DOWN:
        title = f"🔴 {name} is DOWN"
        summary = f'Your application "{name}" is currently down and not responding to health checks.'
    elif status == HealthStatus.WARNING:
        title = f"⚠️ {name} has issues"
        summary = f'Your application "{name}" is experiencing issues but is still responding.'
    elif status == HealthStatus.UP:
        title = f"✅ {name} is back UP"
        summary = f'Your application "{name}" has recovered and is now responding normally.'
    else:
        title = f"🚨 Alert: {name} is {status.value}"
        summary = f'Status update for your application "{name}".'

    fields = {
        "Application": name,
        "Status": status.value.upper(),
        "Response Time": _format_ms(response_time_ms),
        "Uptime": f"{record.uptime_percentage:.2f}%",
        "Consecutive Failures": str(record.consecutive_failures),
        "Severity": severity.value,
        "Time": now.strftime("%Y-%m-%d %H:%M:%S UTC"),
    }
    if diagnostic:
        fields["Error"] = str(diagnostic)[:500]

    return AlertMessage(
        title=title,
        summary=summary,
        severity=severity,
        status=status,
        target_id=record.target_id,
        timestamp=now,
        detail_fields=fields,
        url=url,
    )


def render_text(message: AlertMessage, *, dashboard_url: Optional[str] = None) -> str:
    lines = [message.title, "", message.summary, "", "Details:"]
    for name, value in message.detail_fields.items():
        lines.append(f"- {name}: {value}")
    if message.url:
        lines.append(f"- URL: {message.url}")
    if dashboard_url:
        lines.extend(["", f"Dashboard: {dashboard_url}"])
    return "\n".join(lines).strip()


def render_email_html(message: AlertMessage, *, dashboard_url: Optional[str] = None) -> str:
    color = SEVERITY_COLORS[message.severity]
    rows = "\n".join(
        f'<tr><td style="font-weight:600;padding:4px 12px 4px 0">{escape(k)}:</td>'
        f'<td style="color:#6b7280">{escape(v)}</td></tr>'
        for k, v in message.detail_fields.items()
    )
    link = ""
    if message.url:
        link = f'<p><a href="{escape(message.url)}">View Application</a></p>'
    if dashboard_url:
        link += f'<p><a href="{escape(dashboard_url)}">Open Dashboard</a></p>'
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{escape(message.title)}</title></head>"
        "<body style=\"font-family:sans-serif;background:#f8fafc;padding:20px\">"
        f"<div style=\"background:{color};color:white;padding:20px\"><h1>{escape(message.title)}</h1></div>"
        f"<div style=\"background:white;padding:30px\"><p>{escape(message.summary)}</p>"
        f"<table>{rows}</table>{link}</div>"
        "</body></html>"
    )


def render_slack(message: AlertMessage) -> dict[str, Any]:
    fields = [
        {"title": name, "value": value, "short": name != "Error"}
        for name, value in message.detail_fields.items()
    ]
    attachment: dict[str, Any] = {
        "color": SEVERITY_COLORS[message.severity],
        "title": message.title,
        "text": message.summary,
        "fields": fields,
        "ts": int(message.timestamp.timestamp()),
    }
    if message.url:
        attachment["actions"] = [{"type": "button", "text": "View Application", "url": message.url}]
    return {"text": message.title, "attachments": [attachment]}


def render_webhook(message: AlertMessage) -> dict[str, Any]:
    return {
        "event": "monitoring.alert",
        "target_id": message.target_id,
        "status": message.status.value,
        "severity": message.severity.value,
        "title": message.title,
        "summary": message.summary,
        "details": dict(message.detail_fields),
        "url": message.url,
        "timestamp": message.timestamp.isoformat(),
    }
