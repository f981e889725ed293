"""Custom exception hierarchy for alert-service.

Lifecycle and validation errors are always raised to the caller. Channel
delivery failures are recorded on the alert instead of failing the
operation that triggered the dispatch.
"""


class AlertServiceException(Exception):  # noqa: N818
    """Base exception for alert-service.

    All custom exceptions in alert-service inherit from this class so
    callers can catch every service error with a single except clause.
    """

    def __init__(self, message: str = "") -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
        """
        super().__init__(message)
        self.message = message


class ValidationError(AlertServiceException):
    """Malformed or missing required fields.

    Raised on alert creation or on a transition missing a required
    argument. Never retried automatically.
    """

    def __init__(self, message: str = "Invalid alert data") -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
        """
        super().__init__(message)


class NotFoundError(AlertServiceException):
    """Operation on an unknown alert id."""

    def __init__(self, message: str = "Alert not found", alert_id: str | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
            alert_id: The id that was looked up.
        """
        super().__init__(message)
        self.alert_id = alert_id

    @classmethod
    def for_alert(cls, alert_id: str) -> "NotFoundError":
        """Build the error for a missing alert id."""
        return cls(f"Alert not found: {alert_id}", alert_id=alert_id)


class InvalidTransitionError(AlertServiceException):
    """Transition not permitted from the alert's current state.

    Raised instead of silently turning a repeated or conflicting operator
    action into a no-op.
    """

    def __init__(
        self,
        message: str = "Invalid alert transition",
        current_status: str | None = None,
        event: str | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
            current_status: Status the alert was in.
            event: The rejected lifecycle event.
        """
        super().__init__(message)
        self.current_status = current_status
        self.event = event


class DispatchChannelError(AlertServiceException):
    """A single delivery channel failed.

    Recorded per channel in the dispatch results; it does not fail the
    create or escalate operation that triggered the dispatch.
    """

    def __init__(self, message: str = "Channel delivery failed", channel: str | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
            channel: Channel that failed.
        """
        super().__init__(message)
        self.channel = channel


class TransientStoreError(AlertServiceException):
    """Underlying persistence call failed.

    Propagated to the caller as retryable. The store does not retry
    internally.
    """

    def __init__(self, message: str = "Alert store temporarily unavailable") -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
        """
        super().__init__(message)


class ConfigurationError(AlertServiceException):
    """Configuration is invalid.

    Raised when the application configuration is invalid or missing
    required values.
    """

    def __init__(self, message: str = "Invalid configuration") -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
        """
        super().__init__(message)


class DatabaseNotInitializedError(AlertServiceException):
    """Database is not initialized.

    Raised when attempting to perform database operations
    before the database has been initialized.
    """

    def __init__(
        self, message: str = "Database not initialized. Call init_database() first."
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
        """
        super().__init__(message)
