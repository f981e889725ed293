"""Prometheus metrics for the alert lifecycle and delivery."""

from prometheus_client import Counter, Histogram

ALERTS_CREATED = Counter(
    "alerts_created_total",
    "Total alerts created",
    ["severity"],
)

ALERT_TRANSITIONS = Counter(
    "alert_transitions_total",
    "Accepted lifecycle transitions",
    ["event"],
)

ALERT_TRANSITIONS_REJECTED = Counter(
    "alert_transitions_rejected_total",
    "Lifecycle transitions rejected as invalid",
    ["event"],
)

CHANNEL_DELIVERIES = Counter(
    "alert_channel_deliveries_total",
    "Channel delivery attempts by outcome",
    ["channel", "outcome"],
)

DISPATCH_LATENCY = Histogram(
    "alert_dispatch_latency_seconds",
    "Per-channel dispatch latency",
    ["channel"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

BULK_ITEMS = Counter(
    "alert_bulk_items_total",
    "Bulk ingestion items by outcome",
    ["outcome"],
)
