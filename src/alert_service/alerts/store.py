"""Alert Store - process-lifetime holder of alert entities.

The store is the single source of truth for alert state. Reads hand out
copies so callers never mutate stored alerts; state changes go through
``update``, which the lifecycle controller alone is expected to call.
"""

import copy
import logging
import uuid
from dataclasses import dataclass
from typing import Any

from alert_service.alerts.models import (
    Alert,
    AlertDraft,
    AlertSeverity,
    AlertStatus,
    DispatchRecord,
    TransitionEvent,
    utcnow,
)
from alert_service.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

# Fields the lifecycle controller may change through update()
MUTABLE_FIELDS = frozenset(
    {
        "status",
        "acknowledged_by",
        "acknowledged_at",
        "resolved_by",
        "resolved_at",
        "resolution",
        "escalation_level",
    }
)


@dataclass
class AlertFilter:
    """Conjunction of filter dimensions. ``None`` means no restriction."""

    severity: AlertSeverity | None = None
    status: AlertStatus | None = None
    parish: str | None = None
    search: str | None = None
    limit: int | None = None

    def matches(self, alert: Alert) -> bool:
        """Check whether an alert satisfies every set dimension."""
        if self.severity is not None and alert.severity is not self.severity:
            return False
        if self.status is not None and alert.status is not self.status:
            return False
        if self.parish and alert.location.parish.lower() != self.parish.lower():
            return False
        if self.search:
            needle = self.search.lower()
            if needle not in alert.title.lower() and needle not in alert.description.lower():
                return False
        return True


def new_alert_id() -> str:
    return f"alert_{uuid.uuid4().hex}"


def validate_draft(draft: AlertDraft) -> None:
    """Reject drafts that would violate alert invariants.

    Args:
        draft: Producer input.

    Raises:
        ValidationError: On empty channels, missing parish or empty title.
    """
    if not draft.channels:
        raise ValidationError("An alert needs at least one delivery channel")
    if draft.location is None or not (draft.location.parish or "").strip():
        raise ValidationError("location.parish is required")
    if not (draft.title or "").strip():
        raise ValidationError("title is required")


def build_alert(draft: AlertDraft) -> Alert:
    """Turn a validated draft into a new active alert."""
    validate_draft(draft)
    created_at = utcnow()
    return Alert(
        id=new_alert_id(),
        title=draft.title.strip(),
        description=draft.description,
        severity=draft.severity,
        category=draft.category,
        location=copy.deepcopy(draft.location),
        # dict.fromkeys keeps first-seen order while dropping duplicates
        channels=list(dict.fromkeys(draft.channels)),
        recipients=list(dict.fromkeys(draft.recipients)),
        created_by=draft.created_by,
        created_at=created_at,
        status=AlertStatus.ACTIVE,
        escalation_level=0,
        history=[
            TransitionEvent(
                from_status=None,
                to_status=AlertStatus.ACTIVE,
                actor=draft.created_by,
                at=created_at,
                note="created",
            )
        ],
    )


def apply_changes(alert: Alert, changes: dict[str, Any]) -> None:
    """Apply a lifecycle patch in place.

    Raises:
        ValueError: If the patch touches a field outside MUTABLE_FIELDS.
    """
    unknown = set(changes) - MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be patched: {sorted(unknown)}")
    for key, value in changes.items():
        setattr(alert, key, value)


def check_expected_state(
    alert_id: str,
    status: AlertStatus,
    escalation_level: int,
    expected_status: AlertStatus | None,
    expected_level: int | None,
) -> None:
    """Reject a patch computed from a state the alert has since left.

    Raises:
        InvalidTransitionError: If status or escalation level moved on.
    """
    if (expected_status is not None and status is not expected_status) or (
        expected_level is not None and escalation_level != expected_level
    ):
        raise InvalidTransitionError(
            f"Alert {alert_id} changed concurrently (now {status.value}, level {escalation_level})",
            current_status=status.value,
        )


class InMemoryAlertRepository:
    """Alert repository backed by a dict keyed by alert id.

    Example:
        >>> repo = InMemoryAlertRepository()
        >>> alert = await repo.create(draft)
        >>> same = await repo.get(alert.id)
    """

    def __init__(self) -> None:
        """Initialize an empty repository."""
        self._alerts: dict[str, Alert] = {}

    async def create(self, draft: AlertDraft) -> Alert:
        """Store a new alert built from a draft.

        Args:
            draft: Producer input.

        Returns:
            The created alert.

        Raises:
            ValidationError: If the draft is invalid.
        """
        alert = build_alert(draft)
        self._alerts[alert.id] = alert
        logger.debug(f"Stored alert {alert.id} ({alert.severity.value})")
        return copy.deepcopy(alert)

    async def get(self, alert_id: str) -> Alert:
        """Get an alert by id.

        Raises:
            NotFoundError: If no alert has this id.
        """
        alert = self._alerts.get(alert_id)
        if alert is None:
            raise NotFoundError.for_alert(alert_id)
        return copy.deepcopy(alert)

    async def list(self, alert_filter: AlertFilter | None = None) -> list[Alert]:
        """List alerts matching a filter, most recent first."""
        alert_filter = alert_filter or AlertFilter()
        matched = [a for a in self._alerts.values() if alert_filter.matches(a)]
        matched.sort(key=lambda a: a.created_at, reverse=True)
        if alert_filter.limit is not None:
            matched = matched[: alert_filter.limit]
        return [copy.deepcopy(a) for a in matched]

    async def update(
        self,
        alert_id: str,
        changes: dict[str, Any],
        event: TransitionEvent | None = None,
        expected_status: AlertStatus | None = None,
        expected_level: int | None = None,
    ) -> Alert:
        """Apply a lifecycle patch and record its transition event.

        Raises:
            NotFoundError: If no alert has this id.
            InvalidTransitionError: If the alert left the expected state.
        """
        alert = self._alerts.get(alert_id)
        if alert is None:
            raise NotFoundError.for_alert(alert_id)
        check_expected_state(
            alert_id, alert.status, alert.escalation_level, expected_status, expected_level
        )
        apply_changes(alert, changes)
        if event is not None:
            alert.history.append(event)
        return copy.deepcopy(alert)

    async def append_dispatch(self, alert_id: str, record: DispatchRecord) -> Alert:
        """Attach a dispatch record to an alert.

        Raises:
            NotFoundError: If no alert has this id.
        """
        alert = self._alerts.get(alert_id)
        if alert is None:
            raise NotFoundError.for_alert(alert_id)
        alert.dispatches.append(record)
        return copy.deepcopy(alert)

    async def count(self) -> int:
        return len(self._alerts)
