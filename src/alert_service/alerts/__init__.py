"""Alert System - store, lifecycle, dispatch and escalation.

This module provides the alert subsystem of the observer dashboard:
- Alert entities and the process-lifetime alert store
- The lifecycle controller (acknowledge, escalate, resolve)
- Multi-channel dispatch (SMS, email, push, voice)
- Escalation rules and overdue-alert monitoring
- Rate-limited bulk ingestion
"""

from alert_service.alerts.bulk import BulkAlertIngestor, BulkIngestResult, BulkItemResult, TokenBucket
from alert_service.alerts.channels import (
    ChannelSender,
    ConsoleSender,
    DeliveryReceipt,
    NotificationMessage,
    SmtpEmailSender,
    TwilioSmsSender,
    TwilioVoiceSender,
    WebhookPushSender,
)
from alert_service.alerts.dispatcher import AlertDispatcher, render_message
from alert_service.alerts.escalation import (
    EscalationMonitor,
    EscalationRule,
    EscalationRuleRegistry,
    create_default_rules,
)
from alert_service.alerts.lifecycle import AlertLifecycleController, LifecycleEvent
from alert_service.alerts.models import (
    Alert,
    AlertChannel,
    AlertDraft,
    AlertLocation,
    AlertSeverity,
    AlertStatus,
    Coordinates,
    DispatchRecord,
    DispatchResult,
    DispatchTrigger,
    TransitionEvent,
)
from alert_service.alerts.stats import AlertStats, compute_stats
from alert_service.alerts.store import AlertFilter, InMemoryAlertRepository

__all__ = [
    "Alert",
    "AlertChannel",
    "AlertDispatcher",
    "AlertDraft",
    "AlertFilter",
    "AlertLifecycleController",
    "AlertLocation",
    "AlertSeverity",
    "AlertStats",
    "AlertStatus",
    "BulkAlertIngestor",
    "BulkIngestResult",
    "BulkItemResult",
    "ChannelSender",
    "ConsoleSender",
    "Coordinates",
    "DeliveryReceipt",
    "DispatchRecord",
    "DispatchResult",
    "DispatchTrigger",
    "EscalationMonitor",
    "EscalationRule",
    "EscalationRuleRegistry",
    "InMemoryAlertRepository",
    "LifecycleEvent",
    "NotificationMessage",
    "SmtpEmailSender",
    "TokenBucket",
    "TransitionEvent",
    "TwilioSmsSender",
    "TwilioVoiceSender",
    "WebhookPushSender",
    "compute_stats",
    "create_default_rules",
    "render_message",
]
