"""HTTP client for the alert API.

Used by dashboards and other consumers. Error responses are mapped back
to the service exceptions so callers handle remote and in-process
errors the same way.
"""

import logging
from typing import Any

import aiohttp

from alert_service.alerts.store import AlertFilter
from alert_service.core.exceptions import (
    AlertServiceException,
    InvalidTransitionError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ACTOR_HEADER = "X-Actor-Id"


def filter_params(alert_filter: AlertFilter | None) -> dict[str, str]:
    """Turn a filter into query parameters, skipping unset dimensions."""
    if alert_filter is None:
        return {}
    params: dict[str, str] = {}
    if alert_filter.severity is not None:
        params["severity"] = alert_filter.severity.value
    if alert_filter.status is not None:
        params["status"] = alert_filter.status.value
    if alert_filter.parish:
        params["parish"] = alert_filter.parish
    if alert_filter.search:
        params["search"] = alert_filter.search
    if alert_filter.limit is not None:
        params["limit"] = str(alert_filter.limit)
    return params


def error_from_response(status: int, payload: dict[str, Any]) -> AlertServiceException:
    """Build the service exception matching an error response."""
    message = payload.get("error") or f"Alert API error: {status}"
    details = payload.get("details") or {}
    if status == 404:
        return NotFoundError(message, alert_id=details.get("alert_id"))
    if status == 409:
        return InvalidTransitionError(
            message,
            current_status=details.get("current_status"),
            event=details.get("event"),
        )
    if status == 422:
        return ValidationError(message)
    if status in (502, 503, 504):
        return TransientStoreError(message)
    return AlertServiceException(message)


class AlertApiClient:
    """Async client for the alert HTTP API.

    Example:
        >>> client = AlertApiClient("http://localhost:8000", actor_id=7)
        >>> alerts = await client.list_alerts(AlertFilter(status=AlertStatus.ACTIVE))
        >>> await client.acknowledge(alerts[0]["id"])
    """

    def __init__(
        self,
        base_url: str,
        actor_id: int | None = None,
        timeout: float = 10,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Service root URL.
            actor_id: User id sent with state-changing requests.
            timeout: Request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.actor_id = actor_id
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.actor_id is not None:
            headers[ACTOR_HEADER] = str(self.actor_id)
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with aiohttp.ClientSession() as session:
                async with session.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers=self._headers(),
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status >= 400:
                        try:
                            payload = await response.json()
                        except (aiohttp.ContentTypeError, ValueError):
                            payload = {"error": (await response.text())[:200]}
                        raise error_from_response(response.status, payload)
                    return await response.json()
        except TimeoutError as e:
            raise TransientStoreError(f"Alert API timed out: {method} {path}") from e
        except aiohttp.ClientError as e:
            logger.warning(f"Alert API request failed: {method} {path}: {e}")
            raise TransientStoreError(f"Alert API unreachable: {e!s}") from e

    async def list_alerts(self, alert_filter: AlertFilter | None = None) -> list[dict[str, Any]]:
        """Fetch alerts, most recent first."""
        return await self._request("GET", "/alerts", params=filter_params(alert_filter))

    async def get_alert(self, alert_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/alerts/{alert_id}")

    async def get_stats(self) -> dict[str, Any]:
        """Fetch aggregate alert statistics."""
        return await self._request("GET", "/alerts/stats")

    async def create_alert(self, alert: dict[str, Any]) -> dict[str, Any]:
        """Create an alert.

        Args:
            alert: Request body as accepted by ``POST /alerts``.

        Returns:
            The created alert.
        """
        return await self._request("POST", "/alerts", json=alert)

    async def acknowledge(self, alert_id: str) -> dict[str, Any]:
        return await self._request("POST", f"/alerts/{alert_id}/acknowledge")

    async def resolve(self, alert_id: str, resolution: str) -> dict[str, Any]:
        return await self._request(
            "POST", f"/alerts/{alert_id}/resolve", json={"resolution": resolution}
        )

    async def escalate(self, alert_id: str, reason: str) -> dict[str, Any]:
        return await self._request(
            "POST", f"/alerts/{alert_id}/escalate", json={"reason": reason}
        )
