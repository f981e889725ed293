"""Alert domain model.

This module defines the alert entity and the records attached to it:
- Severity, status and channel enums
- Location of the reported condition
- Transition events (audit trail) and dispatch records
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class AlertSeverity(Enum):
    """Alert severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertStatus(Enum):
    """Alert lifecycle status."""

    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    ESCALATED = "escalated"


class AlertChannel(Enum):
    """Delivery channels an alert can be sent through."""

    SMS = "sms"
    EMAIL = "email"
    CALL = "call"
    PUSH = "push"


class DispatchTrigger(Enum):
    """Lifecycle step that caused a dispatch."""

    CREATED = "created"
    ESCALATED = "escalated"


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


@dataclass
class Coordinates:
    """Geographic point."""

    lat: float
    lng: float


@dataclass
class AlertLocation:
    """Where the condition was reported."""

    parish: str
    polling_station: str | None = None
    coordinates: Coordinates | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "parish": self.parish,
            "polling_station": self.polling_station,
            "coordinates": (
                {"lat": self.coordinates.lat, "lng": self.coordinates.lng}
                if self.coordinates
                else None
            ),
        }


@dataclass
class AlertDraft:
    """Producer input for a new alert, before the store assigns identity."""

    title: str
    description: str
    severity: AlertSeverity
    category: str
    location: AlertLocation
    channels: list[AlertChannel]
    created_by: int
    recipients: list[str] = field(default_factory=list)


@dataclass
class DispatchResult:
    """Outcome of delivering an alert over one channel."""

    channel: AlertChannel
    recipient_count: int
    succeeded: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel.value,
            "recipient_count": self.recipient_count,
            "succeeded": self.succeeded,
            "error": self.error,
        }


@dataclass
class DispatchRecord:
    """One fan-out of an alert across its channels."""

    trigger: DispatchTrigger
    escalation_level: int
    results: list[DispatchResult]
    recipients: list[str] = field(default_factory=list)
    at: datetime = field(default_factory=utcnow)

    @property
    def failed_channels(self) -> list[AlertChannel]:
        """Channels that did not deliver."""
        return [r.channel for r in self.results if not r.succeeded]

    def to_dict(self) -> dict[str, Any]:
        return {
            "trigger": self.trigger.value,
            "escalation_level": self.escalation_level,
            "recipients": list(self.recipients),
            "at": self.at.isoformat(),
            "results": [r.to_dict() for r in self.results],
        }


@dataclass
class TransitionEvent:
    """Audit entry for an accepted lifecycle transition."""

    from_status: AlertStatus | None
    to_status: AlertStatus
    actor: int
    at: datetime = field(default_factory=utcnow)
    note: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "from_status": self.from_status.value if self.from_status else None,
            "to_status": self.to_status.value,
            "actor": self.actor,
            "at": self.at.isoformat(),
            "note": self.note,
        }


@dataclass
class Alert:
    """A condition requiring human attention and multi-channel notification."""

    id: str
    title: str
    description: str
    severity: AlertSeverity
    category: str
    location: AlertLocation
    channels: list[AlertChannel]
    recipients: list[str]
    created_by: int
    created_at: datetime
    status: AlertStatus = AlertStatus.ACTIVE
    acknowledged_by: int | None = None
    acknowledged_at: datetime | None = None
    resolved_by: int | None = None
    resolved_at: datetime | None = None
    resolution: str | None = None
    escalation_level: int = 0
    history: list[TransitionEvent] = field(default_factory=list)
    dispatches: list[DispatchRecord] = field(default_factory=list)

    @property
    def response_time(self) -> float | None:
        """Seconds between creation and acknowledgement."""
        if self.acknowledged_at is None:
            return None
        return (self.acknowledged_at - self.created_at).total_seconds()

    @property
    def degraded_delivery(self) -> bool:
        """True when the latest dispatch left at least one channel undelivered."""
        if not self.dispatches:
            return False
        return bool(self.dispatches[-1].failed_channels)

    @property
    def is_terminal(self) -> bool:
        return self.status is AlertStatus.RESOLVED

    def to_dict(self) -> dict[str, Any]:
        """Convert alert to dictionary.

        Returns:
            Dictionary representation of the alert.
        """
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "severity": self.severity.value,
            "category": self.category,
            "location": self.location.to_dict(),
            "status": self.status.value,
            "channels": [c.value for c in self.channels],
            "recipients": list(self.recipients),
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
            "acknowledged_by": self.acknowledged_by,
            "acknowledged_at": self.acknowledged_at.isoformat() if self.acknowledged_at else None,
            "resolved_by": self.resolved_by,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "resolution": self.resolution,
            "escalation_level": self.escalation_level,
            "response_time": self.response_time,
            "degraded_delivery": self.degraded_delivery,
            "history": [e.to_dict() for e in self.history],
            "dispatches": [d.to_dict() for d in self.dispatches],
        }
