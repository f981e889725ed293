"""Alert Dispatcher - Fan an alert out to its delivery channels.

Delivery is best effort: channels run concurrently, each bounded by a
timeout, and one failing channel never blocks the others. Failed
channels are reported in the results, not retried.
"""

import asyncio
import logging
import time
from html import escape
from typing import Any

from alert_service.alerts.channels import ChannelSender, DeliveryReceipt, NotificationMessage
from alert_service.alerts.models import Alert, AlertChannel, DispatchResult
from alert_service.core.exceptions import DispatchChannelError
from alert_service.monitoring.metrics import CHANNEL_DELIVERIES, DISPATCH_LATENCY

logger = logging.getLogger(__name__)

# Catalogue order doubles as channel priority
CHANNEL_CATALOGUE: dict[AlertChannel, str] = {
    AlertChannel.SMS: "SMS Messages",
    AlertChannel.EMAIL: "Email Notifications",
    AlertChannel.PUSH: "Push Notifications",
    AlertChannel.CALL: "Voice Calls",
}


def render_message(alert: Alert, escalated: bool = False, reason: str | None = None) -> NotificationMessage:
    """Render the notification for an alert.

    Args:
        alert: Alert being delivered.
        escalated: Whether this is an escalation re-dispatch.
        reason: Escalation reason, if any.

    Returns:
        NotificationMessage with plain and HTML bodies.
    """
    location = alert.location.parish
    if alert.location.polling_station:
        location = f"{location}, {alert.location.polling_station}"

    if escalated:
        subject = f"ESCALATED ALERT: {alert.title}"
        body = (
            f"ESCALATED (level {alert.escalation_level}): {alert.title} - {location}. "
            f"{alert.description}"
        )
        if reason:
            body = f"{body} Reason: {reason}"
        heading = f"Escalated Emergency Alert - {alert.severity.value.upper()}"
        footer = "This alert has been escalated and still needs acknowledgement."
    else:
        subject = f"EMERGENCY ALERT: {alert.title}"
        body = f"EMERGENCY: {alert.title} - {location}. {alert.description}"
        heading = f"Emergency Alert - {alert.severity.value.upper()}"
        footer = "Please respond immediately to acknowledge this alert."

    html = (
        f"<h2>{escape(heading)}</h2>"
        f"<p><strong>Alert ID:</strong> {escape(alert.id)}</p>"
        f"<p><strong>Location:</strong> {escape(location)}</p>"
        f"<p><strong>Category:</strong> {escape(alert.category)}</p>"
        f"<p><strong>Description:</strong> {escape(alert.description)}</p>"
        f"<p><strong>Time:</strong> {alert.created_at.isoformat()}</p>"
        + (f"<p><strong>Reason:</strong> {escape(reason)}</p>" if reason else "")
        + f"<p>{escape(footer)}</p>"
    )

    return NotificationMessage(
        subject=subject,
        body=body,
        html=html,
        metadata={
            "alert_id": alert.id,
            "severity": alert.severity.value,
            "escalation_level": alert.escalation_level,
        },
    )


class AlertDispatcher:
    """Dispatch alerts to one sender per channel.

    Example:
        >>> dispatcher = AlertDispatcher(timeout_seconds=5)
        >>> dispatcher.add_sender(ConsoleSender(AlertChannel.SMS))
        >>> results = await dispatcher.dispatch(alert)
    """

    def __init__(
        self,
        senders: list[ChannelSender] | None = None,
        timeout_seconds: float = 5.0,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            senders: Channel senders; a later sender replaces an earlier one on the same channel.
            timeout_seconds: Upper bound for delivering on one channel.
        """
        self._senders: dict[AlertChannel, ChannelSender] = {}
        self.timeout_seconds = timeout_seconds
        for sender in senders or []:
            self.add_sender(sender)

    def add_sender(self, sender: ChannelSender) -> None:
        """Register the sender for its channel.

        Args:
            sender: Sender to add.
        """
        self._senders[sender.channel] = sender
        logger.info(f"Registered {sender.name} for channel {sender.channel.value}")

    def remove_sender(self, channel: AlertChannel) -> bool:
        """Remove the sender for a channel.

        Returns:
            True if a sender was removed, False if none was registered.
        """
        return self._senders.pop(channel, None) is not None

    def get_sender(self, channel: AlertChannel) -> ChannelSender | None:
        return self._senders.get(channel)

    def list_channels(self) -> list[dict[str, Any]]:
        """Describe every known channel and whether it can deliver.

        Returns:
            List of channel information dictionaries, by priority.
        """
        channels = []
        for priority, (channel, name) in enumerate(CHANNEL_CATALOGUE.items(), start=1):
            sender = self._senders.get(channel)
            channels.append(
                {
                    "id": channel.value,
                    "name": name,
                    "type": channel.value,
                    "enabled": bool(sender and sender.enabled),
                    "priority": priority,
                    "sender": sender.name if sender else None,
                }
            )
        return channels

    async def dispatch(
        self,
        alert: Alert,
        recipients: list[str] | None = None,
        channels: list[AlertChannel] | None = None,
        escalated: bool = False,
        reason: str | None = None,
    ) -> list[DispatchResult]:
        """Deliver an alert on each channel.

        Args:
            alert: Alert to deliver.
            recipients: Override of the alert's recipients (escalation targets).
            channels: Override of the alert's channels.
            escalated: Render the escalation variant of the message.
            reason: Escalation reason.

        Returns:
            One DispatchResult per channel attempted, in channel order.
        """
        targets = alert.recipients if recipients is None else recipients
        attempted = list(dict.fromkeys(alert.channels if channels is None else channels))
        message = render_message(alert, escalated=escalated, reason=reason)

        results = await asyncio.gather(
            *(self._dispatch_channel(channel, targets, message) for channel in attempted)
        )

        failed = [r.channel.value for r in results if not r.succeeded]
        if failed:
            logger.warning(f"Alert {alert.id} degraded delivery on channels: {', '.join(failed)}")
        return list(results)

    async def _dispatch_channel(
        self,
        channel: AlertChannel,
        recipients: list[str],
        message: NotificationMessage,
    ) -> DispatchResult:
        sender = self._senders.get(channel)
        if sender is None:
            return self._record(DispatchResult(channel, len(recipients), False, "no sender configured for channel"))
        if not recipients:
            return self._record(DispatchResult(channel, 0, False, "no recipients"))

        started = time.perf_counter()
        try:
            outcomes = await asyncio.wait_for(
                asyncio.gather(
                    *(sender.send(recipient, message) for recipient in recipients),
                    return_exceptions=True,
                ),
                timeout=self.timeout_seconds,
            )
        except TimeoutError:
            logger.warning(f"Channel {channel.value} timed out after {self.timeout_seconds}s")
            return self._record(DispatchResult(channel, len(recipients), False, "timeout"))
        finally:
            DISPATCH_LATENCY.labels(channel=channel.value).observe(time.perf_counter() - started)

        receipts: list[DeliveryReceipt] = []
        for recipient, outcome in zip(recipients, outcomes, strict=True):
            if isinstance(outcome, Exception):
                error = DispatchChannelError(f"{sender.name} raised: {outcome!s}", channel=channel.value)
                logger.error(error.message, exc_info=outcome)
                receipts.append(DeliveryReceipt(delivered=False, recipient=recipient, error=error.message))
            else:
                receipts.append(outcome)

        errors = [r.error or "delivery failed" for r in receipts if not r.delivered]
        return self._record(
            DispatchResult(
                channel=channel,
                recipient_count=len(recipients),
                succeeded=not errors,
                error=errors[0] if errors else None,
            )
        )

    @staticmethod
    def _record(result: DispatchResult) -> DispatchResult:
        outcome = "success" if result.succeeded else "failure"
        CHANNEL_DELIVERIES.labels(channel=result.channel.value, outcome=outcome).inc()
        return result
