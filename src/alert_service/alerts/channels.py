"""Channel Senders - Deliver alert notifications to gateways.

This module provides one sender per delivery channel:
- SMS and voice calls through the Twilio REST API
- Email through SMTP
- Push notifications through a gateway webhook
- Console logging (for development)

Every sender honours the same contract: ``send(recipient, message)``
returns a DeliveryReceipt and never raises for gateway failures.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Any

import aiohttp
import aiosmtplib

from alert_service.alerts.models import AlertChannel

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"

_JAMAICA_PHONE = re.compile(r"^(\+1)?876\d{7}$")


def validate_phone_number(phone_number: str) -> bool:
    """Check a Jamaican number (+1876XXXXXXX or 876XXXXXXX)."""
    return bool(_JAMAICA_PHONE.match(re.sub(r"[\s-]", "", phone_number)))


def format_jamaica_phone_number(phone_number: str) -> str:
    """Normalise a Jamaican number to E.164.

    Seven-digit local numbers get the 876 area code. Numbers in an
    unrecognised shape are returned unchanged.

    Example:
        >>> format_jamaica_phone_number("876-555-1234")
        '+18765551234'
    """
    digits = re.sub(r"\D", "", phone_number)
    if digits.startswith("1876") and len(digits) == 11:
        return f"+{digits}"
    if digits.startswith("876") and len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 7:
        return f"+1876{digits}"
    return phone_number


@dataclass
class NotificationMessage:
    """Rendered notification content."""

    subject: str
    body: str
    html: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class DeliveryReceipt:
    """Result of sending one message to one recipient."""

    delivered: bool
    recipient: str
    error: str | None = None
    provider_id: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class ChannelSender(ABC):
    """Abstract base class for channel senders."""

    def __init__(self, channel: AlertChannel, enabled: bool = True) -> None:
        """Initialize the sender.

        Args:
            channel: Channel this sender delivers on.
            enabled: Whether the sender is configured and enabled.
        """
        self.channel = channel
        self.enabled = enabled

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    async def send(self, recipient: str, message: NotificationMessage) -> DeliveryReceipt:
        """Send a message to one recipient.

        Args:
            recipient: Recipient identifier (phone, email, device token).
            message: Rendered notification.

        Returns:
            DeliveryReceipt indicating success or failure.
        """

    def _not_configured(self, recipient: str) -> DeliveryReceipt:
        return DeliveryReceipt(
            delivered=False,
            recipient=recipient,
            error=f"{self.channel.value} sender not configured",
        )


class ConsoleSender(ChannelSender):
    """Logs notifications instead of delivering them.

    Example:
        >>> sender = ConsoleSender(AlertChannel.SMS)
        >>> await sender.send("+18765551234", message)
    """

    async def send(self, recipient: str, message: NotificationMessage) -> DeliveryReceipt:
        """Log the notification.

        Args:
            recipient: Recipient identifier.
            message: Rendered notification.

        Returns:
            DeliveryReceipt.
        """
        if not self.enabled:
            return self._not_configured(recipient)

        logger.info(f"[{self.channel.value.upper()}] to {recipient}: {message.subject}")
        return DeliveryReceipt(delivered=True, recipient=recipient)


class _TwilioSender(ChannelSender):
    """Shared Twilio REST plumbing for SMS and voice."""

    resource = ""

    def __init__(
        self,
        channel: AlertChannel,
        account_sid: str | None,
        auth_token: str | None,
        from_number: str | None,
        timeout: float = 10,
    ) -> None:
        super().__init__(channel, enabled=bool(account_sid and auth_token and from_number))
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout

    @property
    def url(self) -> str:
        return f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/{self.resource}.json"

    def _build_form(self, to_number: str, message: NotificationMessage) -> dict[str, str]:
        raise NotImplementedError

    async def send(self, recipient: str, message: NotificationMessage) -> DeliveryReceipt:
        """Send through the Twilio REST API.

        Args:
            recipient: Jamaican phone number, normalised to E.164 before sending.
                Anything else fails without calling Twilio.
            message: Rendered notification.

        Returns:
            DeliveryReceipt indicating success or failure.
        """
        if not self.enabled:
            return self._not_configured(recipient)

        to_number = format_jamaica_phone_number(recipient)
        if not validate_phone_number(to_number):
            logger.warning(f"Skipped {self.channel.value} to non-Jamaican number {recipient!r}")
            return DeliveryReceipt(
                delivered=False, recipient=recipient, error=f"invalid phone number: {recipient}"
            )
        form = self._build_form(to_number, message)

        try:
            async with aiohttp.ClientSession(
                auth=aiohttp.BasicAuth(self.account_sid or "", self.auth_token or "")
            ) as session:
                async with session.post(
                    self.url,
                    data=form,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status in (200, 201):
                        payload = await response.json()
                        return DeliveryReceipt(
                            delivered=True,
                            recipient=recipient,
                            provider_id=payload.get("sid"),
                        )
                    error_text = await response.text()
                    return DeliveryReceipt(
                        delivered=False,
                        recipient=recipient,
                        error=f"Twilio API error: {response.status} {error_text[:200]}",
                    )
        except TimeoutError:
            return DeliveryReceipt(delivered=False, recipient=recipient, error="timeout")
        except aiohttp.ClientError as e:
            logger.exception(f"Failed to send {self.channel.value} to {recipient}: {e}")
            return DeliveryReceipt(delivered=False, recipient=recipient, error=f"Failed to send: {e!s}")


class TwilioSmsSender(_TwilioSender):
    """SMS delivery through Twilio Messages.

    Example:
        >>> sender = TwilioSmsSender(
        ...     account_sid="AC...",
        ...     auth_token="...",
        ...     from_number="+18765550000",
        ... )
        >>> await sender.send("876-555-1234", message)
    """

    resource = "Messages"

    def __init__(
        self,
        account_sid: str | None,
        auth_token: str | None,
        from_number: str | None,
        timeout: float = 10,
    ) -> None:
        super().__init__(AlertChannel.SMS, account_sid, auth_token, from_number, timeout)

    def _build_form(self, to_number: str, message: NotificationMessage) -> dict[str, str]:
        return {"To": to_number, "From": self.from_number or "", "Body": message.body}


class TwilioVoiceSender(_TwilioSender):
    """Voice call delivery through Twilio Calls, reading the message aloud."""

    resource = "Calls"

    def __init__(
        self,
        account_sid: str | None,
        auth_token: str | None,
        from_number: str | None,
        timeout: float = 10,
    ) -> None:
        super().__init__(AlertChannel.CALL, account_sid, auth_token, from_number, timeout)

    def _build_form(self, to_number: str, message: NotificationMessage) -> dict[str, str]:
        twiml = f"<Response><Say>{escape(message.body)}</Say></Response>"
        return {"To": to_number, "From": self.from_number or "", "Twiml": twiml}


class SmtpEmailSender(ChannelSender):
    """Email delivery using SMTP.

    Example:
        >>> sender = SmtpEmailSender(
        ...     smtp_host="smtp.gmail.com",
        ...     smtp_port=587,
        ...     username="alerts@example.com",
        ...     password="app_password",
        ...     from_email="alerts@example.com",
        ... )
        >>> await sender.send("coordinator@example.com", message)
    """

    def __init__(
        self,
        smtp_host: str | None,
        smtp_port: int,
        username: str | None,
        password: str | None,
        from_email: str,
        use_tls: bool = True,
        timeout: float = 10,
    ) -> None:
        """Initialize the email sender.

        Args:
            smtp_host: SMTP server host. Sender is disabled when unset.
            smtp_port: SMTP server port.
            username: SMTP username.
            password: SMTP password.
            from_email: Sender email address.
            use_tls: Whether to use STARTTLS.
            timeout: Connection timeout in seconds.
        """
        super().__init__(AlertChannel.EMAIL, enabled=bool(smtp_host))
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.use_tls = use_tls
        self.timeout = timeout

    def build_email(self, recipient: str, message: NotificationMessage) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = self.from_email
        msg["To"] = recipient
        msg.attach(MIMEText(message.body, "plain"))
        if message.html:
            msg.attach(MIMEText(message.html, "html"))
        return msg

    async def send(self, recipient: str, message: NotificationMessage) -> DeliveryReceipt:
        """Send the message via SMTP.

        Args:
            recipient: Email address.
            message: Rendered notification.

        Returns:
            DeliveryReceipt indicating success or failure.
        """
        if not self.enabled:
            return self._not_configured(recipient)

        try:
            await aiosmtplib.send(
                self.build_email(recipient, message),
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.username,
                password=self.password,
                start_tls=self.use_tls,
                timeout=self.timeout,
            )
            return DeliveryReceipt(delivered=True, recipient=recipient)
        except TimeoutError:
            return DeliveryReceipt(delivered=False, recipient=recipient, error="timeout")
        except aiosmtplib.SMTPException as e:
            logger.exception(f"Failed to send email to {recipient}: {e}")
            return DeliveryReceipt(
                delivered=False, recipient=recipient, error=f"Failed to send email: {e!s}"
            )


class WebhookPushSender(ChannelSender):
    """Push delivery by HTTP POST to a push gateway.

    Example:
        >>> sender = WebhookPushSender(
        ...     url="https://push.example.com/notify",
        ...     headers={"Authorization": "Bearer token"},
        ... )
        >>> await sender.send("device-token", message)
    """

    def __init__(
        self,
        url: str | None,
        headers: dict[str, str] | None = None,
        timeout: float = 10,
    ) -> None:
        """Initialize the push sender.

        Args:
            url: Gateway URL. Sender is disabled when unset.
            headers: Optional HTTP headers.
            timeout: Request timeout in seconds.
        """
        super().__init__(AlertChannel.PUSH, enabled=bool(url))
        self.url = url
        self.headers = headers or {}
        self.timeout = timeout

    async def send(self, recipient: str, message: NotificationMessage) -> DeliveryReceipt:
        """Send a push notification via the gateway.

        Args:
            recipient: Device token or user handle.
            message: Rendered notification.

        Returns:
            DeliveryReceipt indicating success or failure.
        """
        if not self.enabled:
            return self._not_configured(recipient)

        payload = {
            "to": recipient,
            "title": message.subject,
            "body": message.body,
            "data": message.metadata,
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.url or "",
                    json=payload,
                    headers={"Content-Type": "application/json", **self.headers},
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    response_text = await response.text()
                    if 200 <= response.status < 300:
                        return DeliveryReceipt(delivered=True, recipient=recipient)
                    return DeliveryReceipt(
                        delivered=False,
                        recipient=recipient,
                        error=f"Push gateway error: {response.status} {response_text[:200]}",
                    )
        except TimeoutError:
            return DeliveryReceipt(delivered=False, recipient=recipient, error="timeout")
        except aiohttp.ClientError as e:
            logger.exception(f"Failed to send push to {recipient}: {e}")
            return DeliveryReceipt(delivered=False, recipient=recipient, error=f"Failed to send: {e!s}")
