"""Tests for escalation rules and the escalation monitor."""

import asyncio
from collections.abc import Callable
from datetime import timedelta

import pytest

from alert_service.alerts.dispatcher import AlertDispatcher
from alert_service.alerts.escalation import (
    SYSTEM_ACTOR,
    EscalationMonitor,
    EscalationRule,
    EscalationRuleRegistry,
    create_default_rules,
)
from alert_service.alerts.lifecycle import AlertLifecycleController
from alert_service.alerts.models import (
    AlertChannel,
    AlertDraft,
    AlertSeverity,
    AlertStatus,
    utcnow,
)
from alert_service.alerts.store import InMemoryAlertRepository


def immediate_rule(**overrides: object) -> EscalationRule:
    """Rule that makes every alert overdue at once."""
    values: dict = {
        "name": "immediate",
        "severities": list(AlertSeverity),
        "time_threshold_minutes": 0,
        "escalate_to": ["duty_officer"],
        "channels": [AlertChannel.EMAIL],
    }
    values.update(overrides)
    return EscalationRule(**values)


class TestEscalationRules:
    """Tests for EscalationRule and the registry."""

    def test_default_rules(self) -> None:
        registry = create_default_rules()

        critical = registry.rule_for(AlertSeverity.CRITICAL)
        assert critical.name == "critical_immediate"
        assert critical.time_threshold_minutes == 5
        assert critical.escalate_to == ["emergency_coordinator", "election_commission"]
        assert critical.channels == [AlertChannel.SMS, AlertChannel.CALL]

        high = registry.rule_for(AlertSeverity.HIGH)
        assert high.time_threshold_minutes == 15
        assert high.channels == [AlertChannel.SMS, AlertChannel.EMAIL]

        assert registry.rule_for(AlertSeverity.MEDIUM).time_threshold_minutes == 30
        assert registry.rule_for(AlertSeverity.LOW).time_threshold_minutes == 60

    def test_disabled_rule_skipped(self) -> None:
        registry = EscalationRuleRegistry(
            [
                immediate_rule(name="off", enabled=False),
                immediate_rule(name="on"),
            ]
        )

        assert registry.rule_for(AlertSeverity.LOW).name == "on"

    def test_category_rule_preferred(self) -> None:
        registry = EscalationRuleRegistry(
            [
                immediate_rule(name="violence", categories=["violence"]),
                immediate_rule(name="general"),
            ]
        )

        assert registry.rule_for(AlertSeverity.CRITICAL, "violence").name == "violence"
        assert registry.rule_for(AlertSeverity.CRITICAL, "procedural").name == "general"
        assert registry.rule_for(AlertSeverity.CRITICAL).name == "general"

    def test_category_rule_is_severity_fallback(self) -> None:
        """Test a category rule still covers its severities when nothing else does."""
        registry = EscalationRuleRegistry([immediate_rule(name="violence", categories=["violence"])])

        assert registry.rule_for(AlertSeverity.HIGH, "procedural").name == "violence"
        assert registry.rule_for(AlertSeverity.HIGH, "violence").applies_to(
            AlertSeverity.HIGH, "violence"
        )
        assert not registry.list_rules()[0].applies_to(AlertSeverity.HIGH, "procedural")

    def test_add_and_remove_rule(self) -> None:
        registry = EscalationRuleRegistry()
        assert registry.rule_for(AlertSeverity.HIGH) is None

        registry.add_rule(immediate_rule())
        assert registry.rule_for(AlertSeverity.HIGH).name == "immediate"
        assert len(registry.list_rules()) == 1

        assert registry.remove_rule("immediate") is True
        assert registry.remove_rule("immediate") is False
        assert registry.list_rules() == []

    def test_is_overdue(self) -> None:
        rule = immediate_rule(time_threshold_minutes=5)
        now = utcnow()
        assert rule.is_overdue(now - timedelta(minutes=5), now)
        assert not rule.is_overdue(now - timedelta(minutes=4, seconds=59), now)

    def test_to_dict(self) -> None:
        data = create_default_rules().list_rules()[0].to_dict()

        assert data["name"] == "critical_immediate"
        assert data["severities"] == ["critical"]
        assert data["channels"] == ["sms", "call"]
        assert data["enabled"] is True


class TestEscalationMonitor:
    """Tests for EscalationMonitor."""

    @pytest.mark.asyncio
    async def test_escalates_overdue_alerts(
        self, controller: AlertLifecycleController, make_draft: Callable[..., AlertDraft]
    ) -> None:
        critical = await controller.create_alert(make_draft(severity=AlertSeverity.CRITICAL))
        low = await controller.create_alert(make_draft(severity=AlertSeverity.LOW))
        monitor = EscalationMonitor(controller)

        escalated = await monitor.check_overdue(critical.created_at + timedelta(minutes=6))

        assert escalated == [critical.id]
        alert = await controller.store.get(critical.id)
        assert alert.status is AlertStatus.ESCALATED
        assert alert.escalation_level == 1
        assert alert.history[-1].actor == SYSTEM_ACTOR
        assert alert.history[-1].note == "not acknowledged within 5 minutes"
        assert (await controller.store.get(low.id)).status is AlertStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_escalates_once(
        self, controller: AlertLifecycleController, make_draft: Callable[..., AlertDraft]
    ) -> None:
        """Test only still-active alerts are escalated automatically."""
        alert = await controller.create_alert(make_draft(severity=AlertSeverity.CRITICAL))
        monitor = EscalationMonitor(controller)
        later = alert.created_at + timedelta(minutes=30)

        assert await monitor.check_overdue(later) == [alert.id]
        assert await monitor.check_overdue(later) == []
        assert (await controller.store.get(alert.id)).escalation_level == 1

    @pytest.mark.asyncio
    async def test_skips_acknowledged_alerts(
        self, controller: AlertLifecycleController, make_draft: Callable[..., AlertDraft]
    ) -> None:
        alert = await controller.create_alert(make_draft(severity=AlertSeverity.CRITICAL))
        await controller.acknowledge(alert.id, actor=7)
        monitor = EscalationMonitor(controller)

        assert await monitor.check_overdue(alert.created_at + timedelta(hours=2)) == []

    @pytest.mark.asyncio
    async def test_background_loop(
        self, dispatcher: AlertDispatcher, make_draft: Callable[..., AlertDraft]
    ) -> None:
        controller = AlertLifecycleController(
            InMemoryAlertRepository(),
            dispatcher,
            rules=EscalationRuleRegistry([immediate_rule()]),
            escalation_contacts={"duty_officer": ["duty@example.com"]},
        )
        alert = await controller.create_alert(make_draft())
        monitor = EscalationMonitor(controller, interval_seconds=0.01)

        await monitor.start()
        assert monitor.is_running
        await asyncio.sleep(0.05)
        await monitor.stop()

        assert not monitor.is_running
        stored = await controller.store.get(alert.id)
        assert stored.status is AlertStatus.ESCALATED
        assert stored.escalation_level == 1
        assert stored.dispatches[-1].recipients == ["duty@example.com"]

    @pytest.mark.asyncio
    async def test_start_twice_is_harmless(self, controller: AlertLifecycleController) -> None:
        monitor = EscalationMonitor(controller, interval_seconds=10)

        await monitor.start()
        await monitor.start()
        assert monitor.is_running

        await monitor.stop()
        assert not monitor.is_running
