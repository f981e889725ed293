"""Pytest fixtures for alert-service tests."""

import asyncio
from collections.abc import Callable, Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from alert_service.alerts.channels import ChannelSender, DeliveryReceipt, NotificationMessage
from alert_service.alerts.dispatcher import AlertDispatcher
from alert_service.alerts.lifecycle import AlertLifecycleController
from alert_service.alerts.models import (
    AlertChannel,
    AlertDraft,
    AlertLocation,
    AlertSeverity,
)
from alert_service.alerts.store import InMemoryAlertRepository
from alert_service.core.config import Settings
from alert_service.main import app
from alert_service.services.alerts import AlertService, get_alert_service


class RecordingSender(ChannelSender):
    """Sender that records what it was asked to deliver.

    Attributes:
        error: When set, every delivery fails with this error.
        fail_for: Recipients whose delivery fails.
        delay: Seconds to wait before answering.
        raises: Exception raised instead of returning a receipt.
    """

    def __init__(self, channel: AlertChannel) -> None:
        super().__init__(channel)
        self.error: str | None = None
        self.fail_for: set[str] = set()
        self.delay = 0.0
        self.raises: Exception | None = None
        self.sent: list[tuple[str, NotificationMessage]] = []

    async def send(self, recipient: str, message: NotificationMessage) -> DeliveryReceipt:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raises is not None:
            raise self.raises
        self.sent.append((recipient, message))
        if self.error or recipient in self.fail_for:
            return DeliveryReceipt(
                delivered=False, recipient=recipient, error=self.error or "rejected"
            )
        return DeliveryReceipt(delivered=True, recipient=recipient)


@pytest.fixture
def senders() -> dict[AlertChannel, RecordingSender]:
    """One recording sender per channel."""
    return {channel: RecordingSender(channel) for channel in AlertChannel}


@pytest.fixture
def dispatcher(senders: dict[AlertChannel, RecordingSender]) -> AlertDispatcher:
    """Dispatcher over the recording senders with a short timeout."""
    return AlertDispatcher(senders=list(senders.values()), timeout_seconds=0.5)


@pytest.fixture
def store() -> InMemoryAlertRepository:
    return InMemoryAlertRepository()


@pytest.fixture
def controller(
    store: InMemoryAlertRepository, dispatcher: AlertDispatcher
) -> AlertLifecycleController:
    """Lifecycle controller over an empty in-memory store."""
    return AlertLifecycleController(
        store,
        dispatcher,
        default_recipients=["+18765550100", "coordinator@example.com"],
        escalation_contacts={
            "emergency_coordinator": ["+18765550111"],
            "election_commission": ["+18765550122", "+18765550111"],
        },
    )


@pytest.fixture
def make_draft() -> Callable[..., AlertDraft]:
    """Factory for alert drafts; keyword arguments override the defaults."""

    def _make(**overrides: Any) -> AlertDraft:
        values: dict[str, Any] = {
            "title": "Ballot box tampering reported",
            "description": "Observer reports a seal broken on box 3",
            "severity": AlertSeverity.CRITICAL,
            "category": "security_threat",
            "location": AlertLocation(parish="Kingston", polling_station="Kingston College"),
            "channels": [AlertChannel.SMS, AlertChannel.EMAIL],
            "created_by": 1,
            "recipients": ["+18765550101", "observer@example.com"],
        }
        values.update(overrides)
        return AlertDraft(**values)

    return _make


@pytest.fixture
def test_settings() -> Settings:
    """Settings for service and API tests."""
    return Settings(
        auto_escalation_enabled=False,
        dispatch_timeout_seconds=0.5,
        default_recipients=["+18765550100"],
        bulk_concurrency=2,
        bulk_rate_per_second=1000,
    )


@pytest.fixture
def alert_service(
    test_settings: Settings, senders: dict[AlertChannel, RecordingSender]
) -> AlertService:
    """Alert service over an in-memory store and recording senders."""
    return AlertService(
        settings=test_settings,
        store=InMemoryAlertRepository(),
        senders=list(senders.values()),
    )


@pytest.fixture
def client(alert_service: AlertService) -> Generator[TestClient, None, None]:
    """Create a test client bound to a fresh alert service."""
    app.dependency_overrides[get_alert_service] = lambda: alert_service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def actor_headers() -> dict[str, str]:
    return {"X-Actor-Id": "7"}
