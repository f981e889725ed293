"""Alert service wiring the store, dispatcher, controller and monitor."""

from alert_service.alerts.bulk import BulkAlertIngestor, BulkIngestResult
from alert_service.alerts.channels import (
    ChannelSender,
    ConsoleSender,
    SmtpEmailSender,
    TwilioSmsSender,
    TwilioVoiceSender,
    WebhookPushSender,
)
from alert_service.alerts.dispatcher import AlertDispatcher
from alert_service.alerts.escalation import (
    EscalationMonitor,
    EscalationRule,
    EscalationRuleRegistry,
    create_default_rules,
)
from alert_service.alerts.lifecycle import AlertLifecycleController
from alert_service.alerts.models import (
    Alert,
    AlertChannel,
    AlertDraft,
    AlertLocation,
    AlertSeverity,
)
from alert_service.alerts.stats import AlertStats, compute_stats
from alert_service.alerts.store import AlertFilter, InMemoryAlertRepository
from alert_service.core.config import Settings, get_settings
from alert_service.core.logging import get_logger
from alert_service.core.protocols import AlertRepositoryProtocol
from alert_service.persistence.database import close_database, create_tables, init_database
from alert_service.persistence.repository import SqlAlertRepository

logger = get_logger(__name__)

SYSTEM_TEST_TITLE = "System Test Alert"


def build_senders(settings: Settings) -> list[ChannelSender]:
    """Create one sender per channel from settings.

    In debug mode an unconfigured channel falls back to ConsoleSender;
    otherwise it keeps the real sender, which reports "not configured".
    """
    senders: list[ChannelSender] = [
        TwilioSmsSender(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_from_number,
        ),
        TwilioVoiceSender(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_from_number,
        ),
        SmtpEmailSender(
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            from_email=settings.smtp_from_email,
            use_tls=settings.smtp_use_tls,
        ),
        WebhookPushSender(url=settings.push_webhook_url),
    ]
    if settings.debug:
        senders = [s if s.enabled else ConsoleSender(s.channel) for s in senders]
    return senders


class AlertService:
    """Entry point used by the API for every alert operation."""

    def __init__(
        self,
        settings: Settings | None = None,
        store: AlertRepositoryProtocol | None = None,
        senders: list[ChannelSender] | None = None,
        rules: EscalationRuleRegistry | None = None,
    ) -> None:
        """Initialize the alert service.

        Args:
            settings: Service settings, defaults to get_settings().
            store: Alert repository. Built from ``database_url`` when omitted.
            senders: Channel senders. Built from settings when omitted.
            rules: Escalation rules, defaults to create_default_rules().
        """
        self._settings = settings or get_settings()
        self._uses_database = store is None and self._settings.database_url is not None
        self.store = store or self._build_store()
        self.rules = rules or create_default_rules()
        self.dispatcher = AlertDispatcher(
            senders=build_senders(self._settings) if senders is None else senders,
            timeout_seconds=self._settings.dispatch_timeout_seconds,
        )
        self.controller = AlertLifecycleController(
            self.store,
            self.dispatcher,
            rules=self.rules,
            max_escalation_level=self._settings.max_escalation_level,
            default_recipients=self._settings.default_recipients,
            escalation_contacts=self._settings.escalation_contacts,
        )
        self.monitor = EscalationMonitor(
            self.controller,
            interval_seconds=self._settings.escalation_check_interval_seconds,
        )
        self.ingestor = BulkAlertIngestor(
            self.controller,
            concurrency=self._settings.bulk_concurrency,
            rate_per_second=self._settings.bulk_rate_per_second,
        )

    def _build_store(self) -> AlertRepositoryProtocol:
        if self._settings.database_url is None:
            return InMemoryAlertRepository()
        return SqlAlertRepository(init_database(self._settings.database_url))

    @property
    def store_backend(self) -> str:
        return "database" if self._uses_database else "memory"

    @property
    def auto_escalation_running(self) -> bool:
        return self.monitor.is_running

    async def start(self) -> None:
        """Create tables and start the escalation monitor."""
        if self._uses_database:
            await create_tables()
        if self._settings.auto_escalation_enabled:
            await self.monitor.start()
        logger.info(
            "alert_service_started",
            store=self.store_backend,
            auto_escalation=self.monitor.is_running,
        )

    async def stop(self) -> None:
        """Stop the escalation monitor and release the database."""
        await self.monitor.stop()
        if self._uses_database:
            await close_database()
        logger.info("alert_service_stopped")

    async def create_alert(self, draft: AlertDraft) -> Alert:
        return await self.controller.create_alert(draft)

    async def get_alert(self, alert_id: str) -> Alert:
        return await self.store.get(alert_id)

    async def list_alerts(self, alert_filter: AlertFilter | None = None) -> list[Alert]:
        return await self.store.list(alert_filter)

    async def acknowledge(self, alert_id: str, actor: int) -> Alert:
        return await self.controller.acknowledge(alert_id, actor)

    async def resolve(self, alert_id: str, actor: int, resolution: str) -> Alert:
        return await self.controller.resolve(alert_id, actor, resolution)

    async def escalate(self, alert_id: str, actor: int, reason: str) -> Alert:
        return await self.controller.escalate(alert_id, actor, reason)

    async def get_stats(self) -> AlertStats:
        """Compute stats over every stored alert."""
        return compute_stats(await self.store.list())

    async def bulk_create(self, drafts: list[AlertDraft]) -> BulkIngestResult:
        """Create many alerts at the configured rate."""
        logger.info("bulk_ingestion_started", count=len(drafts))
        return await self.ingestor.ingest(drafts)

    def list_channels(self) -> list[dict]:
        return self.dispatcher.list_channels()

    def list_escalation_rules(self) -> list[EscalationRule]:
        return self.rules.list_rules()

    async def run_system_test(self, actor: int) -> Alert:
        """Exercise the full lifecycle with a low-severity test alert.

        Creates the alert on every enabled channel (email when none is),
        then acknowledges and resolves it.

        Args:
            actor: User running the test.

        Returns:
            The resolved test alert, including its dispatch results.
        """
        channels = [
            AlertChannel(c["id"]) for c in self.dispatcher.list_channels() if c["enabled"]
        ] or [AlertChannel.EMAIL]
        alert = await self.controller.create_alert(
            AlertDraft(
                title=SYSTEM_TEST_TITLE,
                description="Automated check of alert creation and delivery.",
                severity=AlertSeverity.LOW,
                category="system_test",
                location=AlertLocation(parish="Kingston"),
                channels=channels,
                created_by=actor,
            )
        )
        await self.controller.acknowledge(alert.id, actor)
        alert = await self.controller.resolve(alert.id, actor, "System test completed")
        logger.info(
            "system_test_completed",
            alert_id=alert.id,
            degraded=alert.degraded_delivery,
            status=alert.status.value,
        )
        return alert


# Singleton instance
_alert_service: AlertService | None = None


def get_alert_service() -> AlertService:
    """Get the singleton alert service instance."""
    global _alert_service
    if _alert_service is None:
        _alert_service = AlertService()
    return _alert_service
