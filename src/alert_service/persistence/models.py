"""SQLAlchemy ORM models for the alert store."""

from datetime import datetime
from typing import Any, ClassVar

from sqlalchemy import JSON, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    type_annotation_map: ClassVar[dict[type, type]] = {
        dict[str, Any]: JSON,
        list[Any]: JSON,
    }


class AlertRow(Base):
    """Persisted alert, including its audit trail and dispatch records."""

    __tablename__ = "alerts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    severity: Mapped[str] = mapped_column(String(20), nullable=False)  # low | medium | high | critical
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    parish: Mapped[str] = mapped_column(String(100), nullable=False)
    polling_station: Mapped[str | None] = mapped_column(String(255), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)  # active | acknowledged | resolved | escalated
    channels: Mapped[list[Any]] = mapped_column(JSON, nullable=False)
    recipients: Mapped[list[Any]] = mapped_column(JSON, nullable=False)
    created_by: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    acknowledged_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolution: Mapped[str | None] = mapped_column(Text, nullable=True)
    escalation_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    history: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    dispatches: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (
        Index("idx_alerts_created_at", "created_at"),
        Index("idx_alerts_status", "status"),
        Index("idx_alerts_severity", "severity"),
        Index("idx_alerts_parish", "parish"),
    )

    def __repr__(self) -> str:
        return f"<AlertRow(id={self.id}, status={self.status})>"
