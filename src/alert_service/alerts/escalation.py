"""Escalation Rules - who to re-notify, how, and after how long.

This module provides:
- Severity-keyed escalation rules (threshold, targets, channels)
- A rule registry with the default observer-network rules
- A background monitor that escalates alerts left unacknowledged
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from alert_service.alerts.models import AlertChannel, AlertSeverity, AlertStatus, utcnow
from alert_service.alerts.store import AlertFilter
from alert_service.core.exceptions import AlertServiceException

if TYPE_CHECKING:
    from alert_service.alerts.lifecycle import AlertLifecycleController

logger = logging.getLogger(__name__)

# Actor id recorded for automatic escalations
SYSTEM_ACTOR = 0


@dataclass
class EscalationRule:
    """Escalation policy for a set of severities."""

    name: str
    severities: list[AlertSeverity]
    time_threshold_minutes: int
    escalate_to: list[str]
    channels: list[AlertChannel]
    enabled: bool = True
    categories: list[str] = field(default_factory=list)

    def applies_to(self, severity: AlertSeverity, category: str | None = None) -> bool:
        """Check severity and, for rules that name categories, the alert category."""
        if not self.enabled or severity not in self.severities:
            return False
        return not self.categories or category in self.categories

    def is_overdue(self, created_at: datetime, now: datetime) -> bool:
        """Check if an alert created at ``created_at`` has waited past the threshold."""
        return now - created_at >= timedelta(minutes=self.time_threshold_minutes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "severities": [s.value for s in self.severities],
            "categories": list(self.categories),
            "time_threshold_minutes": self.time_threshold_minutes,
            "escalate_to": list(self.escalate_to),
            "channels": [c.value for c in self.channels],
            "enabled": self.enabled,
        }


class EscalationRuleRegistry:
    """Ordered collection of escalation rules; first match wins."""

    def __init__(self, rules: list[EscalationRule] | None = None) -> None:
        self._rules: list[EscalationRule] = list(rules or [])

    def add_rule(self, rule: EscalationRule) -> None:
        self._rules.append(rule)
        logger.info(f"Added escalation rule: {rule.name}")

    def remove_rule(self, name: str) -> bool:
        for i, rule in enumerate(self._rules):
            if rule.name == name:
                self._rules.pop(i)
                return True
        return False

    def rule_for(self, severity: AlertSeverity, category: str | None = None) -> EscalationRule | None:
        """Return the first enabled rule covering an alert.

        Rules that name categories only match alerts in those categories.
        When none does, the first enabled rule for the severity applies.
        """
        for rule in self._rules:
            if rule.applies_to(severity, category):
                return rule
        for rule in self._rules:
            if rule.enabled and severity in rule.severities:
                return rule
        return None

    def list_rules(self) -> list[EscalationRule]:
        return list(self._rules)


def create_default_rules() -> EscalationRuleRegistry:
    """Create the default escalation rules.

    Critical alerts go to the emergency coordinator and the election
    commission after 5 minutes; lower severities escalate to field
    supervisors and coordinators on longer thresholds.

    Returns:
        EscalationRuleRegistry with the default rules.
    """
    return EscalationRuleRegistry(
        [
            EscalationRule(
                name="critical_immediate",
                severities=[AlertSeverity.CRITICAL],
                categories=["security_threat", "violence", "medical_emergency"],
                time_threshold_minutes=5,
                escalate_to=["emergency_coordinator", "election_commission"],
                channels=[AlertChannel.SMS, AlertChannel.CALL],
            ),
            EscalationRule(
                name="high_priority",
                severities=[AlertSeverity.HIGH],
                categories=["equipment_failure", "crowd_control"],
                time_threshold_minutes=15,
                escalate_to=["field_supervisor"],
                channels=[AlertChannel.SMS, AlertChannel.EMAIL],
            ),
            EscalationRule(
                name="standard_escalation",
                severities=[AlertSeverity.MEDIUM],
                time_threshold_minutes=30,
                escalate_to=["coordinator"],
                channels=[AlertChannel.EMAIL],
            ),
            EscalationRule(
                name="low_priority",
                severities=[AlertSeverity.LOW],
                time_threshold_minutes=60,
                escalate_to=["coordinator"],
                channels=[AlertChannel.EMAIL],
            ),
        ]
    )


class EscalationMonitor:
    """Escalate alerts nobody acknowledged in time.

    Only alerts still ``active`` are considered, so each alert is
    escalated automatically at most once; later escalations are manual.

    Example:
        >>> monitor = EscalationMonitor(controller, interval_seconds=30)
        >>> await monitor.start()
        >>> # Later...
        >>> await monitor.stop()
    """

    def __init__(self, controller: AlertLifecycleController, interval_seconds: float = 30.0) -> None:
        """Initialize the monitor.

        Args:
            controller: Lifecycle controller used to escalate.
            interval_seconds: Seconds between scans.
        """
        self.controller = controller
        self.interval_seconds = interval_seconds
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def check_overdue(self, now: datetime | None = None) -> list[str]:
        """Escalate every active alert past its rule threshold.

        Args:
            now: Reference time, defaults to the current time.

        Returns:
            Ids of the alerts escalated by this scan.
        """
        now = now or utcnow()
        escalated: list[str] = []
        candidates = await self.controller.store.list(AlertFilter(status=AlertStatus.ACTIVE))

        for alert in candidates:
            rule = self.controller.rules.rule_for(alert.severity, alert.category)
            if rule is None or not rule.is_overdue(alert.created_at, now):
                continue
            try:
                await self.controller.escalate(
                    alert.id,
                    actor=SYSTEM_ACTOR,
                    reason=f"not acknowledged within {rule.time_threshold_minutes} minutes",
                    expected_status=AlertStatus.ACTIVE,
                )
                escalated.append(alert.id)
            except AlertServiceException as e:
                # Acknowledged or escalated by an operator since the scan started
                logger.info(f"Skipped auto-escalation of {alert.id}: {e.message}")

        if escalated:
            logger.info(f"Auto-escalated {len(escalated)} overdue alert(s)")
        return escalated

    async def start(self) -> None:
        """Start scanning in the background."""
        if self.is_running:
            logger.warning("Escalation monitor already running")
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop scanning and wait for the loop to exit."""
        self._stop_event.set()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _run(self) -> None:
        logger.info(f"Escalation monitor started (interval {self.interval_seconds}s)")
        while not self._stop_event.is_set():
            try:
                await self.check_overdue()
            except AlertServiceException as e:
                logger.error(f"Escalation scan failed: {e.message}")
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except TimeoutError:
                continue
        logger.info("Escalation monitor stopped")
