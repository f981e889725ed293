"""Configuration management for alert-service."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ALERTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server settings
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format (json or text)")

    # Storage
    database_url: str | None = Field(
        default=None,
        description="Async SQLAlchemy URL (postgresql+asyncpg://...). In-memory store if unset",
    )

    # Lifecycle
    max_escalation_level: int = Field(
        default=5, ge=1, description="Highest escalation level an alert can reach"
    )
    auto_escalation_enabled: bool = Field(
        default=True, description="Escalate alerts left active past their rule threshold"
    )
    escalation_check_interval_seconds: float = Field(
        default=30.0, gt=0, description="Interval between overdue-alert scans"
    )
    escalation_contacts: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Addresses per escalation role (JSON object of role to address list)",
    )

    # Dispatch
    dispatch_timeout_seconds: float = Field(
        default=5.0, gt=0, description="Per-channel delivery timeout"
    )
    default_recipients: list[str] = Field(
        default_factory=list,
        description="Recipients used when a producer supplies none",
    )

    # Bulk ingestion
    bulk_concurrency: int = Field(default=2, ge=1, description="Bulk ingestion workers")
    bulk_rate_per_second: float = Field(
        default=0.5, gt=0, description="Alert creations per second during bulk ingestion"
    )

    # Twilio (SMS and voice)
    twilio_account_sid: str | None = Field(default=None, description="Twilio account SID")
    twilio_auth_token: str | None = Field(default=None, description="Twilio auth token")
    twilio_from_number: str | None = Field(default=None, description="Twilio sender number")

    # SMTP (email)
    smtp_host: str | None = Field(default=None, description="SMTP server host")
    smtp_port: int = Field(default=587, description="SMTP server port")
    smtp_username: str | None = Field(default=None, description="SMTP username")
    smtp_password: str | None = Field(default=None, description="SMTP password")
    smtp_from_email: str = Field(
        default="alerts@observer.local", description="Sender email address"
    )
    smtp_use_tls: bool = Field(default=True, description="Use STARTTLS")

    # Push gateway
    push_webhook_url: str | None = Field(default=None, description="Push gateway webhook URL")

    # Polling client defaults
    poll_list_interval_seconds: float = Field(
        default=5.0, gt=0, description="Alert list refresh interval"
    )
    poll_stats_interval_seconds: float = Field(
        default=10.0, gt=0, description="Alert stats refresh interval"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
