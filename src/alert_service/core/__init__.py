"""Core module for alert-service.

This module provides core functionality including:
- Configuration management (Settings, get_settings)
- Custom exceptions (AlertServiceException and subclasses)
- Protocol definitions for dependency injection
- Logging utilities
"""

from alert_service.core.config import Settings, get_settings
from alert_service.core.exceptions import (
    AlertServiceException,
    ConfigurationError,
    DatabaseNotInitializedError,
    DispatchChannelError,
    InvalidTransitionError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)
from alert_service.core.logging import get_logger
from alert_service.core.protocols import AlertRepositoryProtocol

__all__ = [
    "AlertRepositoryProtocol",
    "AlertServiceException",
    "ConfigurationError",
    "DatabaseNotInitializedError",
    "DispatchChannelError",
    "InvalidTransitionError",
    "NotFoundError",
    "Settings",
    "TransientStoreError",
    "ValidationError",
    "get_logger",
    "get_settings",
]
