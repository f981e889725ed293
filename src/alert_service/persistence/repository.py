"""SQLAlchemy-backed alert repository.

Implements the same interface as InMemoryAlertRepository. Every
database failure is reported as TransientStoreError; retrying is left to
the caller.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

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
from alert_service.alerts.store import (
    MUTABLE_FIELDS,
    AlertFilter,
    build_alert,
    check_expected_state,
)
from alert_service.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    TransientStoreError,
)
from alert_service.core.logging import get_logger
from alert_service.persistence.models import AlertRow

logger = get_logger(__name__)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _event_from_json(data: dict[str, Any]) -> TransitionEvent:
    return TransitionEvent(
        from_status=AlertStatus(data["from_status"]) if data.get("from_status") else None,
        to_status=AlertStatus(data["to_status"]),
        actor=data["actor"],
        at=datetime.fromisoformat(data["at"]),
        note=data.get("note"),
    )


def _record_from_json(data: dict[str, Any]) -> DispatchRecord:
    return DispatchRecord(
        trigger=DispatchTrigger(data["trigger"]),
        escalation_level=data["escalation_level"],
        recipients=list(data.get("recipients", [])),
        at=datetime.fromisoformat(data["at"]),
        results=[
            DispatchResult(
                channel=AlertChannel(r["channel"]),
                recipient_count=r["recipient_count"],
                succeeded=r["succeeded"],
                error=r.get("error"),
            )
            for r in data.get("results", [])
        ],
    )


def row_to_alert(row: AlertRow) -> Alert:
    """Convert an ORM row to the domain alert."""
    coordinates = None
    if row.latitude is not None and row.longitude is not None:
        coordinates = Coordinates(lat=row.latitude, lng=row.longitude)
    return Alert(
        id=row.id,
        title=row.title,
        description=row.description,
        severity=AlertSeverity(row.severity),
        category=row.category,
        location=AlertLocation(
            parish=row.parish,
            polling_station=row.polling_station,
            coordinates=coordinates,
        ),
        channels=[AlertChannel(c) for c in row.channels],
        recipients=list(row.recipients),
        created_by=row.created_by,
        created_at=_aware(row.created_at),
        status=AlertStatus(row.status),
        acknowledged_by=row.acknowledged_by,
        acknowledged_at=_aware(row.acknowledged_at),
        resolved_by=row.resolved_by,
        resolved_at=_aware(row.resolved_at),
        resolution=row.resolution,
        escalation_level=row.escalation_level,
        history=[_event_from_json(e) for e in row.history or []],
        dispatches=[_record_from_json(d) for d in row.dispatches or []],
    )


def alert_to_row(alert: Alert) -> AlertRow:
    """Convert a domain alert to a new ORM row."""
    coordinates = alert.location.coordinates
    return AlertRow(
        id=alert.id,
        title=alert.title,
        description=alert.description,
        severity=alert.severity.value,
        category=alert.category,
        parish=alert.location.parish,
        polling_station=alert.location.polling_station,
        latitude=coordinates.lat if coordinates else None,
        longitude=coordinates.lng if coordinates else None,
        status=alert.status.value,
        channels=[c.value for c in alert.channels],
        recipients=list(alert.recipients),
        created_by=alert.created_by,
        created_at=alert.created_at,
        escalation_level=alert.escalation_level,
        history=[e.to_dict() for e in alert.history],
        dispatches=[d.to_dict() for d in alert.dispatches],
    )


class SqlAlertRepository:
    """Alert repository backed by an async SQLAlchemy engine.

    Example:
        >>> session_factory = init_database("postgresql+asyncpg://...")
        >>> repo = SqlAlertRepository(session_factory)
        >>> alert = await repo.create(draft)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("alert_store_error", error=str(e))
            raise TransientStoreError(f"Alert store operation failed: {e.__class__.__name__}") from e
        finally:
            await session.close()

    async def _get_row(self, session: AsyncSession, alert_id: str) -> AlertRow:
        result = await session.execute(select(AlertRow).where(AlertRow.id == alert_id))
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError.for_alert(alert_id)
        return row

    async def create(self, draft: AlertDraft) -> Alert:
        """Create a new alert from a draft."""
        alert = build_alert(draft)
        async with self._session() as session:
            session.add(alert_to_row(alert))
            await session.commit()
        return alert

    async def get(self, alert_id: str) -> Alert:
        """Get alert by ID."""
        async with self._session() as session:
            return row_to_alert(await self._get_row(session, alert_id))

    async def list(self, alert_filter: AlertFilter | None = None) -> list[Alert]:
        """List alerts with optional filtering, most recent first."""
        alert_filter = alert_filter or AlertFilter()
        query = select(AlertRow)

        if alert_filter.severity is not None:
            query = query.where(AlertRow.severity == alert_filter.severity.value)
        if alert_filter.status is not None:
            query = query.where(AlertRow.status == alert_filter.status.value)
        if alert_filter.parish:
            query = query.where(func.lower(AlertRow.parish) == alert_filter.parish.lower())
        if alert_filter.search:
            pattern = f"%{alert_filter.search.lower()}%"
            query = query.where(
                or_(
                    func.lower(AlertRow.title).like(pattern),
                    func.lower(AlertRow.description).like(pattern),
                )
            )

        query = query.order_by(AlertRow.created_at.desc())
        if alert_filter.limit is not None:
            query = query.limit(alert_filter.limit)

        async with self._session() as session:
            result = await session.execute(query)
            return [row_to_alert(row) for row in result.scalars().all()]

    async def update(
        self,
        alert_id: str,
        changes: dict[str, Any],
        event: TransitionEvent | None = None,
        expected_status: AlertStatus | None = None,
        expected_level: int | None = None,
    ) -> Alert:
        """Apply a lifecycle patch and append its transition event.

        The expected status and level go into the UPDATE's WHERE clause, so
        of two service instances transitioning the same alert only the first
        write matches a row.

        Raises:
            NotFoundError: If no alert has this id.
            InvalidTransitionError: If the alert left the expected state.
        """
        unknown = set(changes) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be patched: {sorted(unknown)}")

        values = {
            key: value.value if isinstance(value, AlertStatus) else value
            for key, value in changes.items()
        }

        async with self._session() as session:
            row = await self._get_row(session, alert_id)
            check_expected_state(
                alert_id,
                AlertStatus(row.status),
                row.escalation_level,
                expected_status,
                expected_level,
            )
            if event is not None:
                values["history"] = [*row.history, event.to_dict()]

            statement = update(AlertRow).where(AlertRow.id == alert_id)
            if expected_status is not None:
                statement = statement.where(AlertRow.status == expected_status.value)
            if expected_level is not None:
                statement = statement.where(AlertRow.escalation_level == expected_level)
            result = await session.execute(
                statement.values(**values).execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await session.rollback()
                await session.refresh(row)
                raise InvalidTransitionError(
                    f"Alert {alert_id} changed concurrently (now {row.status})",
                    current_status=row.status,
                )
            await session.commit()
            await session.refresh(row)
            return row_to_alert(row)

    async def append_dispatch(self, alert_id: str, record: DispatchRecord) -> Alert:
        """Attach a dispatch record to an alert."""
        async with self._session() as session:
            row = await self._get_row(session, alert_id)
            row.dispatches = [*row.dispatches, record.to_dict()]
            await session.commit()
            return row_to_alert(row)
