"""Monitoring module for alert-service.

Prometheus counters and histograms for alert creation, lifecycle
transitions, channel delivery and bulk ingestion.
"""

from alert_service.monitoring.metrics import (
    ALERT_TRANSITIONS,
    ALERT_TRANSITIONS_REJECTED,
    ALERTS_CREATED,
    BULK_ITEMS,
    CHANNEL_DELIVERIES,
    DISPATCH_LATENCY,
)

__all__ = [
    "ALERTS_CREATED",
    "ALERT_TRANSITIONS",
    "ALERT_TRANSITIONS_REJECTED",
    "BULK_ITEMS",
    "CHANNEL_DELIVERIES",
    "DISPATCH_LATENCY",
]
