"""Consumer-side access to the alert API.

- AlertApiClient: HTTP client with service exceptions for error responses
- AlertFeedPoller: interval refresh of the alert list and stats
"""

from alert_service.client.api_client import AlertApiClient
from alert_service.client.poller import AlertFeedPoller

__all__ = ["AlertApiClient", "AlertFeedPoller"]
