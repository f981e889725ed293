"""Protocol definitions for alert-service.

This module defines abstract interfaces (protocols) that establish
contracts between the lifecycle controller and its collaborators,
enabling dependency injection of storage backends.
"""

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from alert_service.alerts.models import (
        Alert,
        AlertDraft,
        AlertStatus,
        DispatchRecord,
        TransitionEvent,
    )
    from alert_service.alerts.store import AlertFilter


class AlertRepositoryProtocol(Protocol):
    """Repository interface for alert storage.

    Implemented by the in-memory repository and the SQLAlchemy
    repository. ``update`` and ``append_dispatch`` are reserved for the
    lifecycle controller; external callers go through lifecycle
    operations to keep alert invariants intact.
    """

    async def create(self, draft: "AlertDraft") -> "Alert":
        """Create a new alert with status active.

        Args:
            draft: Producer input.

        Returns:
            The created alert.
        """
        ...

    async def get(self, alert_id: str) -> "Alert":
        """Get an alert by its id.

        Args:
            alert_id: The alert id.

        Returns:
            The alert. Raises NotFoundError if missing.
        """
        ...

    async def list(self, alert_filter: "AlertFilter | None" = None) -> list["Alert"]:
        """List alerts matching a filter, most recent first.

        Args:
            alert_filter: Optional filter criteria.

        Returns:
            List of matching alerts.
        """
        ...

    async def update(
        self,
        alert_id: str,
        changes: dict[str, Any],
        event: "TransitionEvent | None" = None,
        expected_status: "AlertStatus | None" = None,
        expected_level: int | None = None,
    ) -> "Alert":
        """Apply a lifecycle patch.

        The check against ``expected_status`` and ``expected_level`` is atomic
        with the write, so concurrent writers cannot both apply a transition
        from the same state.

        Args:
            alert_id: The alert id.
            changes: Field values to set.
            event: Transition event to append to the alert history.
            expected_status: Only apply if the alert is still in this status.
            expected_level: Only apply if the alert is still at this escalation level.

        Returns:
            The updated alert.

        Raises:
            InvalidTransitionError: If the alert left the expected state.
        """
        ...

    async def append_dispatch(self, alert_id: str, record: "DispatchRecord") -> "Alert":
        """Attach a dispatch record to an alert.

        Args:
            alert_id: The alert id.
            record: Dispatch outcome to store.

        Returns:
            The updated alert.
        """
        ...
