"""Tests for channel senders."""

from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import aiosmtplib
import pytest

from alert_service.alerts.channels import (
    ConsoleSender,
    NotificationMessage,
    SmtpEmailSender,
    TwilioSmsSender,
    TwilioVoiceSender,
    WebhookPushSender,
    format_jamaica_phone_number,
    validate_phone_number,
)
from alert_service.alerts.models import AlertChannel


@pytest.fixture
def message() -> NotificationMessage:
    """Create a sample notification for testing."""
    return NotificationMessage(
        subject="EMERGENCY ALERT: Ballot box tampering reported",
        body="EMERGENCY: Ballot box tampering reported - Kingston. Seal broken",
        html="<h2>Emergency Alert - CRITICAL</h2>",
        metadata={"alert_id": "alert_123", "severity": "critical"},
    )


def mock_client_session(mock_session_class: MagicMock, response: AsyncMock) -> MagicMock:
    """Wire a patched aiohttp.ClientSession to return ``response`` from post()."""
    mock_post = MagicMock()
    mock_post.__aenter__ = AsyncMock(return_value=response)
    mock_post.__aexit__ = AsyncMock(return_value=None)

    mock_session = MagicMock()
    mock_session.post = MagicMock(return_value=mock_post)
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=None)

    mock_session_class.return_value = mock_session
    return mock_session


def twilio_sms() -> TwilioSmsSender:
    return TwilioSmsSender(
        account_sid="AC123",
        auth_token="secret",
        from_number="+18765550000",
    )


class TestPhoneNumbers:
    """Tests for Jamaican phone number helpers."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("876-555-1234", "+18765551234"),
            ("+1 876 555 1234", "+18765551234"),
            ("18765551234", "+18765551234"),
            ("555-1234", "+18765551234"),
            ("observer@example.com", "observer@example.com"),
        ],
    )
    def test_format(self, raw: str, expected: str) -> None:
        assert format_jamaica_phone_number(raw) == expected

    def test_validate(self) -> None:
        assert validate_phone_number("+18765551234")
        assert validate_phone_number("876 555 1234")
        assert not validate_phone_number("+12125551234")
        assert not validate_phone_number("5551234")


class TestConsoleSender:
    """Tests for ConsoleSender."""

    @pytest.mark.asyncio
    async def test_console_sender_delivers(self, message: NotificationMessage) -> None:
        sender = ConsoleSender(AlertChannel.SMS)
        receipt = await sender.send("+18765551234", message)

        assert receipt.delivered
        assert receipt.recipient == "+18765551234"
        assert sender.name == "ConsoleSender"

    @pytest.mark.asyncio
    async def test_console_sender_disabled(self, message: NotificationMessage) -> None:
        sender = ConsoleSender(AlertChannel.EMAIL, enabled=False)
        receipt = await sender.send("observer@example.com", message)

        assert not receipt.delivered
        assert receipt.error == "email sender not configured"


class TestTwilioSenders:
    """Tests for Twilio SMS and voice senders."""

    def test_unconfigured_sender_is_disabled(self) -> None:
        sender = TwilioSmsSender(account_sid=None, auth_token=None, from_number=None)
        assert sender.enabled is False
        assert sender.channel is AlertChannel.SMS

    @pytest.mark.asyncio
    async def test_unconfigured_sender_does_not_send(self, message: NotificationMessage) -> None:
        sender = TwilioSmsSender(account_sid="AC123", auth_token=None, from_number=None)

        with patch("alert_service.alerts.channels.aiohttp.ClientSession") as mock_session_class:
            receipt = await sender.send("8765551234", message)

            mock_session_class.assert_not_called()
        assert not receipt.delivered
        assert receipt.error == "sms sender not configured"

    def test_message_url(self) -> None:
        assert twilio_sms().url == "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json"

    @pytest.mark.asyncio
    async def test_sms_success(self, message: NotificationMessage) -> None:
        sender = twilio_sms()

        with patch("alert_service.alerts.channels.aiohttp.ClientSession") as mock_session_class:
            mock_response = AsyncMock()
            mock_response.status = 201
            mock_response.json = AsyncMock(return_value={"sid": "SM123"})
            mock_session = mock_client_session(mock_session_class, mock_response)

            receipt = await sender.send("876-555-1234", message)

            assert receipt.delivered
            assert receipt.provider_id == "SM123"
            form = mock_session.post.call_args.kwargs["data"]
            assert form["To"] == "+18765551234"
            assert form["From"] == "+18765550000"
            assert form["Body"] == message.body

    @pytest.mark.asyncio
    async def test_sms_api_error(self, message: NotificationMessage) -> None:
        sender = twilio_sms()

        with patch("alert_service.alerts.channels.aiohttp.ClientSession") as mock_session_class:
            mock_response = AsyncMock()
            mock_response.status = 400
            mock_response.text = AsyncMock(return_value="invalid To number")
            mock_client_session(mock_session_class, mock_response)

            receipt = await sender.send("876-555-1234", message)

            assert not receipt.delivered
            assert "Twilio API error: 400" in receipt.error

    @pytest.mark.asyncio
    async def test_sms_timeout(self, message: NotificationMessage) -> None:
        sender = twilio_sms()

        with patch("alert_service.alerts.channels.aiohttp.ClientSession") as mock_session_class:
            mock_session = MagicMock()
            mock_session.post = MagicMock(side_effect=TimeoutError())
            mock_session.__aenter__ = AsyncMock(return_value=mock_session)
            mock_session.__aexit__ = AsyncMock(return_value=None)
            mock_session_class.return_value = mock_session

            receipt = await sender.send("876-555-1234", message)

            assert not receipt.delivered
            assert receipt.error == "timeout"

    @pytest.mark.asyncio
    async def test_sms_connection_error(self, message: NotificationMessage) -> None:
        sender = twilio_sms()

        with patch("alert_service.alerts.channels.aiohttp.ClientSession") as mock_session_class:
            mock_session = MagicMock()
            mock_session.post = MagicMock(side_effect=aiohttp.ClientError("connection refused"))
            mock_session.__aenter__ = AsyncMock(return_value=mock_session)
            mock_session.__aexit__ = AsyncMock(return_value=None)
            mock_session_class.return_value = mock_session

            receipt = await sender.send("876-555-1234", message)

            assert not receipt.delivered
            assert receipt.error.startswith("Failed to send")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("recipient", ["emergency_coordinator", "observer@example.com", "+12125551234"])
    async def test_non_jamaican_recipient_not_sent(
        self, message: NotificationMessage, recipient: str
    ) -> None:
        sender = twilio_sms()

        with patch("alert_service.alerts.channels.aiohttp.ClientSession") as mock_session_class:
            receipt = await sender.send(recipient, message)

            mock_session_class.assert_not_called()
        assert not receipt.delivered
        assert receipt.error == f"invalid phone number: {recipient}"

    def test_voice_reads_message(self, message: NotificationMessage) -> None:
        sender = TwilioVoiceSender(
            account_sid="AC123", auth_token="secret", from_number="+18765550000"
        )

        form = sender._build_form("+18765551234", message)

        assert sender.channel is AlertChannel.CALL
        assert sender.url.endswith("/Calls.json")
        assert form["Twiml"].startswith("<Response><Say>EMERGENCY: Ballot box")
        assert form["Twiml"].endswith("</Say></Response>")


class TestSmtpEmailSender:
    """Tests for SmtpEmailSender."""

    def make_sender(self) -> SmtpEmailSender:
        return SmtpEmailSender(
            smtp_host="smtp.example.com",
            smtp_port=587,
            username="user",
            password="pass",
            from_email="alerts@example.com",
        )

    def test_build_email(self, message: NotificationMessage) -> None:
        email = self.make_sender().build_email("observer@example.com", message)

        assert email["Subject"] == message.subject
        assert email["To"] == "observer@example.com"
        assert email["From"] == "alerts@example.com"
        assert len(email.get_payload()) == 2

    @pytest.mark.asyncio
    async def test_email_success(self, message: NotificationMessage) -> None:
        sender = self.make_sender()

        with patch("alert_service.alerts.channels.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            receipt = await sender.send("observer@example.com", message)

            assert receipt.delivered
            assert mock_send.call_args.kwargs["hostname"] == "smtp.example.com"
            assert mock_send.call_args.kwargs["start_tls"] is True

    @pytest.mark.asyncio
    async def test_email_smtp_failure(self, message: NotificationMessage) -> None:
        sender = self.make_sender()

        with patch(
            "alert_service.alerts.channels.aiosmtplib.send",
            new_callable=AsyncMock,
            side_effect=aiosmtplib.SMTPException("mailbox unavailable"),
        ):
            receipt = await sender.send("observer@example.com", message)

        assert not receipt.delivered
        assert "mailbox unavailable" in receipt.error

    @pytest.mark.asyncio
    async def test_email_not_configured(self, message: NotificationMessage) -> None:
        sender = SmtpEmailSender(
            smtp_host=None, smtp_port=587, username=None, password=None, from_email="a@b.c"
        )

        receipt = await sender.send("observer@example.com", message)

        assert not sender.enabled
        assert receipt.error == "email sender not configured"


class TestWebhookPushSender:
    """Tests for WebhookPushSender."""

    @pytest.mark.asyncio
    async def test_push_success(self, message: NotificationMessage) -> None:
        sender = WebhookPushSender(url="https://push.example.com/notify")

        with patch("alert_service.alerts.channels.aiohttp.ClientSession") as mock_session_class:
            mock_response = AsyncMock()
            mock_response.status = 202
            mock_response.text = AsyncMock(return_value="queued")
            mock_session = mock_client_session(mock_session_class, mock_response)

            receipt = await sender.send("device-token-1", message)

            assert receipt.delivered
            payload = mock_session.post.call_args.kwargs["json"]
            assert payload["to"] == "device-token-1"
            assert payload["title"] == message.subject
            assert payload["data"]["alert_id"] == "alert_123"

    @pytest.mark.asyncio
    async def test_push_gateway_error(self, message: NotificationMessage) -> None:
        sender = WebhookPushSender(url="https://push.example.com/notify")

        with patch("alert_service.alerts.channels.aiohttp.ClientSession") as mock_session_class:
            mock_response = AsyncMock()
            mock_response.status = 500
            mock_response.text = AsyncMock(return_value="Internal Server Error")
            mock_client_session(mock_session_class, mock_response)

            receipt = await sender.send("device-token-1", message)

            assert not receipt.delivered
            assert "Push gateway error: 500" in receipt.error
