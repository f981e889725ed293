"""Persistent alert storage (SQLAlchemy async)."""

from alert_service.persistence.database import (
    close_database,
    create_tables,
    drop_tables,
    get_session_factory,
    init_database,
)
from alert_service.persistence.models import AlertRow, Base
from alert_service.persistence.repository import SqlAlertRepository

__all__ = [
    "AlertRow",
    "Base",
    "SqlAlertRepository",
    "close_database",
    "create_tables",
    "drop_tables",
    "get_session_factory",
    "init_database",
]
