"""Alert Lifecycle Controller - the only writer of alert state.

State machine (initial state ``active``)::

    active       --acknowledge--> acknowledged
    escalated    --acknowledge--> acknowledged
    active       --escalate-----> escalated     (level + 1, re-dispatch)
    escalated    --escalate-----> escalated     (level + 1, re-dispatch)
    acknowledged --resolve------> resolved      (terminal)

Anything else raises InvalidTransitionError. Transitions on one alert id
are serialised; transitions on different ids run independently.
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime
from enum import Enum
from typing import Any

from alert_service.alerts.dispatcher import AlertDispatcher
from alert_service.alerts.escalation import (
    EscalationRule,
    EscalationRuleRegistry,
    create_default_rules,
)
from alert_service.alerts.models import (
    Alert,
    AlertDraft,
    AlertStatus,
    DispatchRecord,
    DispatchTrigger,
    TransitionEvent,
    utcnow,
)
from alert_service.core.exceptions import InvalidTransitionError, ValidationError
from alert_service.core.logging import alert_context, get_logger
from alert_service.core.protocols import AlertRepositoryProtocol
from alert_service.monitoring.metrics import (
    ALERT_TRANSITIONS,
    ALERT_TRANSITIONS_REJECTED,
    ALERTS_CREATED,
)

logger = get_logger(__name__)


class LifecycleEvent(Enum):
    """Operator actions on an alert."""

    ACKNOWLEDGE = "acknowledge"
    ESCALATE = "escalate"
    RESOLVE = "resolve"


TRANSITIONS: dict[tuple[AlertStatus, LifecycleEvent], AlertStatus] = {
    (AlertStatus.ACTIVE, LifecycleEvent.ACKNOWLEDGE): AlertStatus.ACKNOWLEDGED,
    (AlertStatus.ESCALATED, LifecycleEvent.ACKNOWLEDGE): AlertStatus.ACKNOWLEDGED,
    (AlertStatus.ACTIVE, LifecycleEvent.ESCALATE): AlertStatus.ESCALATED,
    (AlertStatus.ESCALATED, LifecycleEvent.ESCALATE): AlertStatus.ESCALATED,
    (AlertStatus.ACKNOWLEDGED, LifecycleEvent.RESOLVE): AlertStatus.RESOLVED,
}


def next_status(current: AlertStatus, event: LifecycleEvent) -> AlertStatus:
    """Look up the target state of a transition.

    Raises:
        InvalidTransitionError: If the transition is not in the table.
    """
    target = TRANSITIONS.get((current, event))
    if target is None:
        if current is AlertStatus.RESOLVED:
            message = f"Cannot {event.value} a resolved alert"
        else:
            message = f"Cannot {event.value} an alert that is {current.value}"
        raise InvalidTransitionError(message, current_status=current.value, event=event.value)
    return target


class AlertLocks:
    """One asyncio.Lock per alert id, dropped once nobody waits on it."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, alert_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(alert_id, asyncio.Lock())
        self._holders[alert_id] = self._holders.get(alert_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[alert_id] -= 1
            if self._holders[alert_id] == 0:
                del self._holders[alert_id]
                del self._locks[alert_id]

    def __len__(self) -> int:
        return len(self._locks)


def _require_actor(actor: int | None) -> int:
    if actor is None or isinstance(actor, bool) or not isinstance(actor, int) or actor < 0:
        raise ValidationError("actor is required")
    return actor


def _require_text(value: str | None, name: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{name} is required")
    return value.strip()


class AlertLifecycleController:
    """Create alerts and apply operator transitions.

    Example:
        >>> controller = AlertLifecycleController(store, dispatcher)
        >>> alert = await controller.create_alert(draft)
        >>> alert = await controller.acknowledge(alert.id, actor=7)
        >>> alert = await controller.resolve(alert.id, actor=7, resolution="false alarm")
    """

    def __init__(
        self,
        store: AlertRepositoryProtocol,
        dispatcher: AlertDispatcher,
        rules: EscalationRuleRegistry | None = None,
        max_escalation_level: int = 5,
        default_recipients: list[str] | None = None,
        escalation_contacts: dict[str, list[str]] | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            store: Alert repository.
            dispatcher: Dispatcher used on creation and escalation.
            rules: Escalation rules; defaults to create_default_rules().
            max_escalation_level: Highest level an alert can be escalated to.
            default_recipients: Recipients for drafts that name none.
            escalation_contacts: Addresses per escalation role (``escalate_to`` entry).
        """
        self.store = store
        self.dispatcher = dispatcher
        self.rules = rules or create_default_rules()
        self.max_escalation_level = max_escalation_level
        self.default_recipients = list(default_recipients or [])
        self.escalation_contacts = {
            role: list(addresses) for role, addresses in (escalation_contacts or {}).items()
        }
        self._locks = AlertLocks()

    async def create_alert(self, draft: AlertDraft) -> Alert:
        """Store a new alert and deliver it on its channels.

        Channel failures are recorded on the alert; they do not fail creation.

        Args:
            draft: Producer input.

        Returns:
            The created alert with its first dispatch record.

        Raises:
            ValidationError: If the draft is invalid.
        """
        _require_actor(draft.created_by)
        if not draft.recipients:
            draft = replace(draft, recipients=list(self.default_recipients))

        alert = await self.store.create(draft)
        ALERTS_CREATED.labels(severity=alert.severity.value).inc()
        logger.info(
            "alert_created",
            alert_id=alert.id,
            severity=alert.severity.value,
            parish=alert.location.parish,
            channels=[c.value for c in alert.channels],
        )

        with alert_context(alert.id):
            results = await self.dispatcher.dispatch(alert)
        record = DispatchRecord(
            trigger=DispatchTrigger.CREATED,
            escalation_level=0,
            results=results,
            recipients=list(alert.recipients),
        )
        async with self._locks.hold(alert.id):
            return await self.store.append_dispatch(alert.id, record)

    async def acknowledge(self, alert_id: str, actor: int) -> Alert:
        """Mark an active or escalated alert as seen.

        Raises:
            ValidationError: If actor is missing.
            NotFoundError: If the alert does not exist.
            InvalidTransitionError: If the alert was already acknowledged or resolved.
        """
        actor = _require_actor(actor)

        def changes(alert: Alert, now: datetime) -> dict[str, Any]:
            return {"acknowledged_by": actor, "acknowledged_at": now}

        alert = await self._transition(alert_id, actor, LifecycleEvent.ACKNOWLEDGE, changes)
        logger.info(
            "alert_acknowledged",
            alert_id=alert_id,
            actor=actor,
            response_time=alert.response_time,
        )
        return alert

    async def resolve(self, alert_id: str, actor: int, resolution: str) -> Alert:
        """Close an acknowledged alert.

        Raises:
            ValidationError: If actor or resolution is missing.
            NotFoundError: If the alert does not exist.
            InvalidTransitionError: If the alert is not acknowledged.
        """
        actor = _require_actor(actor)
        resolution = _require_text(resolution, "resolution")

        def changes(alert: Alert, now: datetime) -> dict[str, Any]:
            return {"resolved_by": actor, "resolved_at": now, "resolution": resolution}

        alert = await self._transition(
            alert_id, actor, LifecycleEvent.RESOLVE, changes, note=resolution
        )
        logger.info("alert_resolved", alert_id=alert_id, actor=actor)
        return alert

    async def escalate(
        self,
        alert_id: str,
        actor: int,
        reason: str,
        expected_status: AlertStatus | None = None,
    ) -> Alert:
        """Raise the escalation level and re-notify the escalation targets.

        Args:
            alert_id: Alert to escalate.
            actor: Acting user id.
            reason: Why the alert is escalated.
            expected_status: Reject the escalation unless the alert is in this state.

        Returns:
            The escalated alert with the escalation dispatch recorded.

        Raises:
            ValidationError: If actor or reason is missing.
            NotFoundError: If the alert does not exist.
            InvalidTransitionError: If the alert is acknowledged, resolved, not in
                ``expected_status``, or already at the maximum escalation level.
        """
        actor = _require_actor(actor)
        reason = _require_text(reason, "reason")

        def changes(alert: Alert, now: datetime) -> dict[str, Any]:
            if expected_status is not None and alert.status is not expected_status:
                raise InvalidTransitionError(
                    f"Alert is {alert.status.value}, expected {expected_status.value}",
                    current_status=alert.status.value,
                    event=LifecycleEvent.ESCALATE.value,
                )
            if alert.escalation_level >= self.max_escalation_level:
                raise InvalidTransitionError(
                    f"Alert already at maximum escalation level {self.max_escalation_level}",
                    current_status=alert.status.value,
                    event=LifecycleEvent.ESCALATE.value,
                )
            return {"escalation_level": alert.escalation_level + 1}

        alert = await self._transition(
            alert_id, actor, LifecycleEvent.ESCALATE, changes, note=reason
        )
        logger.warning(
            "alert_escalated",
            alert_id=alert_id,
            actor=actor,
            level=alert.escalation_level,
            reason=reason,
        )

        rule = self.rules.rule_for(alert.severity, alert.category)
        recipients = self.escalation_recipients(alert, rule)
        channels = list(rule.channels) if rule else list(alert.channels)
        with alert_context(alert_id, actor=actor):
            results = await self.dispatcher.dispatch(
                alert, recipients=recipients, channels=channels, escalated=True, reason=reason
            )
        record = DispatchRecord(
            trigger=DispatchTrigger.ESCALATED,
            escalation_level=alert.escalation_level,
            results=results,
            recipients=recipients,
        )
        async with self._locks.hold(alert_id):
            return await self.store.append_dispatch(alert_id, record)

    def escalation_recipients(self, alert: Alert, rule: EscalationRule | None) -> list[str]:
        """Resolve a rule's escalation roles to addresses.

        A role with no configured contacts contributes the alert's own
        recipients. Duplicates are dropped, first occurrence kept.
        """
        if rule is None:
            return list(alert.recipients)
        resolved: list[str] = []
        for role in rule.escalate_to:
            contacts = self.escalation_contacts.get(role)
            if not contacts:
                logger.warning("escalation_role_without_contacts", alert_id=alert.id, role=role)
                contacts = alert.recipients
            resolved.extend(contacts)
        return list(dict.fromkeys(resolved))

    async def _transition(
        self,
        alert_id: str,
        actor: int,
        event: LifecycleEvent,
        build_changes: Callable[[Alert, datetime], dict[str, Any]],
        note: str | None = None,
    ) -> Alert:
        async with self._locks.hold(alert_id):
            alert = await self.store.get(alert_id)
            try:
                target = next_status(alert.status, event)
                now = utcnow()
                changes = build_changes(alert, now)
            except InvalidTransitionError as e:
                ALERT_TRANSITIONS_REJECTED.labels(event=event.value).inc()
                logger.info(
                    "alert_transition_rejected",
                    alert_id=alert_id,
                    event=event.value,
                    status=alert.status.value,
                    reason=e.message,
                )
                raise
            changes["status"] = target
            try:
                # Another service instance may have moved the alert since the read
                updated = await self.store.update(
                    alert_id,
                    changes,
                    TransitionEvent(
                        from_status=alert.status,
                        to_status=target,
                        actor=actor,
                        at=now,
                        note=note,
                    ),
                    expected_status=alert.status,
                    expected_level=alert.escalation_level,
                )
            except InvalidTransitionError as e:
                ALERT_TRANSITIONS_REJECTED.labels(event=event.value).inc()
                logger.warning(
                    "alert_transition_conflict",
                    alert_id=alert_id,
                    event=event.value,
                    status=e.current_status,
                )
                e.event = event.value
                raise
        ALERT_TRANSITIONS.labels(event=event.value).inc()
        return updated
