"""Structured logging configuration.

Service, API and lifecycle code log structlog events (``alert_created``,
``alert_escalated``). Dispatcher and sender modules use plain stdlib
loggers; both end up in the same handler and renderer. Alert context bound
with ``alert_context`` is attached to every record emitted inside it,
stdlib records included.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

from alert_service.core.config import get_settings

SERVICE_NAME = "alert-service"

QUIET_LOGGERS = ("uvicorn.access", "aiosqlite", "aiosmtplib", "sqlalchemy.engine")


def add_service_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging() -> None:
    """Configure structlog and route stdlib loggers through it."""
    settings = get_settings()

    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(settings.log_format),
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(settings.log_level.upper())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@contextmanager
def alert_context(alert_id: str, **values: object) -> Iterator[None]:
    """Bind ``alert_id`` (and any extra values) to logs emitted in the block.

    Example:
        >>> with alert_context(alert.id, actor=7):
        ...     await dispatcher.dispatch(alert)
    """
    with structlog.contextvars.bound_contextvars(alert_id=alert_id, **values):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
