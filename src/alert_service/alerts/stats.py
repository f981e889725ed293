"""Aggregate statistics over the alert store."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from alert_service.alerts.models import Alert, AlertSeverity, AlertStatus, utcnow

RECENT_WINDOW = timedelta(hours=24)

AWAITING_ACKNOWLEDGEMENT = frozenset({AlertStatus.ACTIVE, AlertStatus.ESCALATED})


@dataclass
class AlertStats:
    """Summary shown next to the alert list."""

    total: int = 0
    active: int = 0
    critical: int = 0
    average_response_time: float = 0.0
    escalation_rate: float = 0.0
    recent: int = 0
    degraded: int = 0
    severity_breakdown: dict[str, int] = field(
        default_factory=lambda: {s.value: 0 for s in AlertSeverity}
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "active": self.active,
            "critical": self.critical,
            "average_response_time": self.average_response_time,
            "escalation_rate": self.escalation_rate,
            "recent": self.recent,
            "degraded": self.degraded,
            "severity_breakdown": dict(self.severity_breakdown),
        }


def compute_stats(alerts: list[Alert], now: datetime | None = None) -> AlertStats:
    """Summarise a set of alerts.

    Args:
        alerts: Alerts to summarise.
        now: Reference time for the recent window.

    Returns:
        AlertStats where ``active`` counts alerts awaiting acknowledgement,
        ``critical`` counts unresolved critical alerts, ``average_response_time``
        is in seconds and ``escalation_rate`` is a percentage.
    """
    now = now or utcnow()
    stats = AlertStats(total=len(alerts))
    if not alerts:
        return stats

    response_times: list[float] = []
    escalated = 0
    for alert in alerts:
        stats.severity_breakdown[alert.severity.value] += 1
        if alert.status in AWAITING_ACKNOWLEDGEMENT:
            stats.active += 1
        if alert.severity is AlertSeverity.CRITICAL and alert.status is not AlertStatus.RESOLVED:
            stats.critical += 1
        if alert.response_time is not None:
            response_times.append(alert.response_time)
        if alert.escalation_level > 0:
            escalated += 1
        if now - alert.created_at <= RECENT_WINDOW:
            stats.recent += 1
        if alert.degraded_delivery:
            stats.degraded += 1

    if response_times:
        stats.average_response_time = sum(response_times) / len(response_times)
    stats.escalation_rate = round(100.0 * escalated / len(alerts), 2)
    return stats
