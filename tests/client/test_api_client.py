"""Tests for the alert API client."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from alert_service.alerts.models import AlertSeverity, AlertStatus
from alert_service.alerts.store import AlertFilter
from alert_service.client.api_client import AlertApiClient, error_from_response, filter_params
from alert_service.core.exceptions import (
    AlertServiceException,
    InvalidTransitionError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)


def mock_response(status: int, payload: Any) -> AsyncMock:
    response = AsyncMock()
    response.status = status
    response.json = AsyncMock(return_value=payload)
    return response


def wire_session(mock_session_class: MagicMock, response: AsyncMock) -> MagicMock:
    """Wire a patched aiohttp.ClientSession to return ``response`` from request()."""
    mock_request = MagicMock()
    mock_request.__aenter__ = AsyncMock(return_value=response)
    mock_request.__aexit__ = AsyncMock(return_value=None)

    mock_session = MagicMock()
    mock_session.request = MagicMock(return_value=mock_request)
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=None)

    mock_session_class.return_value = mock_session
    return mock_session


class TestFilterParams:
    """Tests for filter_params."""

    def test_no_filter(self) -> None:
        assert filter_params(None) == {}
        assert filter_params(AlertFilter()) == {}

    def test_all_dimensions(self) -> None:
        params = filter_params(
            AlertFilter(
                severity=AlertSeverity.CRITICAL,
                status=AlertStatus.ACTIVE,
                parish="Kingston",
                search="ballot",
                limit=20,
            )
        )

        assert params == {
            "severity": "critical",
            "status": "active",
            "parish": "Kingston",
            "search": "ballot",
            "limit": "20",
        }


class TestErrorFromResponse:
    """Tests for error_from_response."""

    def test_not_found(self) -> None:
        exc = error_from_response(
            404, {"error": "Alert not found: alert_1", "details": {"alert_id": "alert_1"}}
        )
        assert isinstance(exc, NotFoundError)
        assert exc.alert_id == "alert_1"

    def test_conflict(self) -> None:
        exc = error_from_response(
            409,
            {
                "error": "Cannot resolve an alert that is active",
                "details": {"current_status": "active", "event": "resolve"},
            },
        )
        assert isinstance(exc, InvalidTransitionError)
        assert exc.current_status == "active"

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (422, ValidationError),
            (503, TransientStoreError),
            (500, AlertServiceException),
        ],
    )
    def test_other_statuses(self, status: int, expected: type) -> None:
        exc = error_from_response(status, {})
        assert type(exc) is expected
        assert exc.message == f"Alert API error: {status}"


class TestAlertApiClient:
    """Tests for AlertApiClient."""

    @pytest.mark.asyncio
    async def test_list_alerts(self) -> None:
        client = AlertApiClient("http://alerts.local/", actor_id=7)

        with patch("alert_service.client.api_client.aiohttp.ClientSession") as mock_session_class:
            mock_session = wire_session(mock_session_class, mock_response(200, [{"id": "alert_1"}]))

            alerts = await client.list_alerts(AlertFilter(status=AlertStatus.ACTIVE))

            assert alerts == [{"id": "alert_1"}]
            args = mock_session.request.call_args
            assert args.args == ("GET", "http://alerts.local/alerts")
            assert args.kwargs["params"] == {"status": "active"}
            assert args.kwargs["headers"]["X-Actor-Id"] == "7"

    @pytest.mark.asyncio
    async def test_resolve_sends_body(self) -> None:
        client = AlertApiClient("http://alerts.local", actor_id=7)

        with patch("alert_service.client.api_client.aiohttp.ClientSession") as mock_session_class:
            mock_session = wire_session(
                mock_session_class, mock_response(200, {"id": "alert_1", "status": "resolved"})
            )

            alert = await client.resolve("alert_1", "false alarm")

            assert alert["status"] == "resolved"
            args = mock_session.request.call_args
            assert args.args == ("POST", "http://alerts.local/alerts/alert_1/resolve")
            assert args.kwargs["json"] == {"resolution": "false alarm"}

    @pytest.mark.asyncio
    async def test_conflict_raises_invalid_transition(self) -> None:
        client = AlertApiClient("http://alerts.local", actor_id=7)

        with patch("alert_service.client.api_client.aiohttp.ClientSession") as mock_session_class:
            wire_session(
                mock_session_class,
                mock_response(
                    409,
                    {
                        "success": False,
                        "error": "Cannot acknowledge an alert that is acknowledged",
                        "error_code": "INVALID_TRANSITION",
                    },
                ),
            )

            with pytest.raises(InvalidTransitionError, match="acknowledged"):
                await client.acknowledge("alert_1")

    @pytest.mark.asyncio
    async def test_not_found(self) -> None:
        client = AlertApiClient("http://alerts.local")

        with patch("alert_service.client.api_client.aiohttp.ClientSession") as mock_session_class:
            wire_session(mock_session_class, mock_response(404, {"error": "Alert not found: x"}))

            with pytest.raises(NotFoundError):
                await client.get_alert("x")

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self) -> None:
        client = AlertApiClient("http://alerts.local")

        with patch("alert_service.client.api_client.aiohttp.ClientSession") as mock_session_class:
            mock_session = MagicMock()
            mock_session.request = MagicMock(side_effect=aiohttp.ClientError("refused"))
            mock_session.__aenter__ = AsyncMock(return_value=mock_session)
            mock_session.__aexit__ = AsyncMock(return_value=None)
            mock_session_class.return_value = mock_session

            with pytest.raises(TransientStoreError, match="unreachable"):
                await client.get_stats()

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self) -> None:
        client = AlertApiClient("http://alerts.local")

        with patch("alert_service.client.api_client.aiohttp.ClientSession") as mock_session_class:
            mock_session = MagicMock()
            mock_session.request = MagicMock(side_effect=TimeoutError())
            mock_session.__aenter__ = AsyncMock(return_value=mock_session)
            mock_session.__aexit__ = AsyncMock(return_value=None)
            mock_session_class.return_value = mock_session

            with pytest.raises(TransientStoreError, match="timed out"):
                await client.list_alerts()
