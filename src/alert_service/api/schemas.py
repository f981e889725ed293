"""Pydantic schemas for API request/response models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from alert_service.alerts.models import (
    Alert,
    AlertChannel,
    AlertDraft,
    AlertLocation,
    AlertSeverity,
    AlertStatus,
    Coordinates,
)


class CoordinatesSchema(BaseModel):
    """Geographic point."""

    lat: float = Field(..., ge=-90, le=90, description="Latitude")
    lng: float = Field(..., ge=-180, le=180, description="Longitude")


class LocationSchema(BaseModel):
    """Where the condition was reported."""

    parish: str = Field(..., min_length=1, description="Parish (required)")
    polling_station: str | None = Field(default=None, description="Polling station name")
    coordinates: CoordinatesSchema | None = Field(default=None, description="Map position")


class AlertCreateRequest(BaseModel):
    """Request model for creating an alert."""

    title: str = Field(..., min_length=1, max_length=255, description="Alert title")
    description: str = Field(default="", max_length=5000, description="Alert details")
    severity: AlertSeverity = Field(..., description="low, medium, high or critical")
    category: str = Field(default="general", max_length=100, description="Free-form category tag")
    location: LocationSchema = Field(..., description="Alert location")
    channels: list[AlertChannel] = Field(
        ..., min_length=1, description="Delivery channels (sms, email, call, push)"
    )
    recipients: list[str] = Field(
        default_factory=list, description="Recipients; configured defaults when empty"
    )

    def to_draft(self, created_by: int) -> AlertDraft:
        """Convert to a domain draft for the acting user."""
        coordinates = None
        if self.location.coordinates is not None:
            coordinates = Coordinates(
                lat=self.location.coordinates.lat, lng=self.location.coordinates.lng
            )
        return AlertDraft(
            title=self.title,
            description=self.description,
            severity=self.severity,
            category=self.category,
            location=AlertLocation(
                parish=self.location.parish,
                polling_station=self.location.polling_station,
                coordinates=coordinates,
            ),
            channels=list(self.channels),
            created_by=created_by,
            recipients=list(self.recipients),
        )


class BulkCreateRequest(BaseModel):
    """Request model for bulk alert creation."""

    alerts: list[AlertCreateRequest] = Field(
        ..., min_length=1, max_length=100, description="Alerts to create"
    )


class ResolveRequest(BaseModel):
    """Request model for resolving an alert."""

    resolution: str = Field(..., min_length=1, max_length=5000, description="How it was resolved")


class EscalateRequest(BaseModel):
    """Request model for escalating an alert."""

    reason: str = Field(..., min_length=1, max_length=1000, description="Why it is escalated")


class TransitionEventResponse(BaseModel):
    """Audit entry for a lifecycle transition."""

    from_status: AlertStatus | None = None
    to_status: AlertStatus
    actor: int
    at: datetime
    note: str | None = None


class DispatchResultResponse(BaseModel):
    """Delivery outcome for one channel."""

    channel: AlertChannel
    recipient_count: int
    succeeded: bool
    error: str | None = None


class DispatchRecordResponse(BaseModel):
    """One fan-out of an alert."""

    trigger: str
    escalation_level: int
    recipients: list[str]
    at: datetime
    results: list[DispatchResultResponse]


class AlertResponse(BaseModel):
    """Alert as returned by the API."""

    id: str = Field(..., description="Alert ID")
    title: str
    description: str
    severity: AlertSeverity
    category: str
    location: LocationSchema
    status: AlertStatus
    channels: list[AlertChannel]
    recipients: list[str]
    created_by: int
    created_at: datetime
    acknowledged_by: int | None = None
    acknowledged_at: datetime | None = None
    resolved_by: int | None = None
    resolved_at: datetime | None = None
    resolution: str | None = None
    escalation_level: int = Field(..., ge=0, description="Number of escalations so far")
    response_time: float | None = Field(
        default=None, description="Seconds from creation to acknowledgement"
    )
    degraded_delivery: bool = Field(
        default=False, description="Latest dispatch left at least one channel undelivered"
    )
    history: list[TransitionEventResponse] = Field(default_factory=list)
    dispatches: list[DispatchRecordResponse] = Field(default_factory=list)

    @classmethod
    def from_alert(cls, alert: Alert) -> "AlertResponse":
        return cls.model_validate(alert.to_dict())


class StatsResponse(BaseModel):
    """Aggregate alert statistics."""

    total: int = Field(..., description="Alerts in the store")
    active: int = Field(..., description="Alerts awaiting acknowledgement (active or escalated)")
    critical: int = Field(..., description="Unresolved critical alerts")
    average_response_time: float = Field(..., description="Mean response time in seconds")
    escalation_rate: float = Field(..., description="Percentage of alerts escalated at least once")
    recent: int = Field(..., description="Alerts created in the last 24 hours")
    degraded: int = Field(..., description="Alerts whose latest dispatch had a failed channel")
    severity_breakdown: dict[str, int] = Field(..., description="Alert count per severity")


class ChannelResponse(BaseModel):
    """Delivery channel and whether it can deliver."""

    id: str
    name: str
    type: str
    enabled: bool
    priority: int
    sender: str | None = None


class EscalationRuleResponse(BaseModel):
    """Escalation rule."""

    name: str
    severities: list[AlertSeverity]
    categories: list[str]
    time_threshold_minutes: int
    escalate_to: list[str]
    channels: list[AlertChannel]
    enabled: bool


class BulkItemResponse(BaseModel):
    """Outcome for one alert in a bulk request."""

    index: int
    created: bool
    alert_id: str | None = None
    error: str | None = None


class BulkSummary(BaseModel):
    """Totals for a bulk request."""

    total_processed: int
    successfully_added: int
    failed: int


class BulkCreateResponse(BaseModel):
    """Response model for bulk alert creation."""

    success: bool = Field(..., description="True when at least one alert was created")
    items: list[BulkItemResponse]
    summary: BulkSummary


class SystemTestResponse(BaseModel):
    """Response model for the alert system self-test."""

    success: bool = Field(..., description="Test alert went through its full lifecycle")
    degraded_delivery: bool = Field(..., description="At least one channel failed to deliver")
    alert: AlertResponse


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="Service status")
    store: str = Field(..., description="Alert store backend (memory or database)")
    auto_escalation: bool = Field(..., description="Whether the escalation monitor is running")


class ErrorResponse(BaseModel):
    """Response model for errors."""

    success: bool = Field(default=False, description="Always false for errors")
    error: str = Field(..., description="Error message")
    error_code: str = Field(..., description="Error code")
    details: dict[str, Any] | None = Field(default=None, description="Extra error context")
