"""Alert feed poller - keeps a display cache of alerts and stats fresh.

The poller re-fetches the alert list and the stats summary on separate
fixed intervals. Ticks do not wait for the previous fetch to finish;
each fetch carries a sequence number and a response older than the last
applied one is dropped, so a slow request can never overwrite newer
data. Closing the poller cancels the loops and every in-flight fetch.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from alert_service.alerts.store import AlertFilter
from alert_service.core.exceptions import AlertServiceException

logger = logging.getLogger(__name__)

ALERTS = "alerts"
STATS = "stats"

UpdateCallback = Callable[[str, Any], None]


class AlertFeedSource(Protocol):
    """What the poller needs from an API client."""

    async def list_alerts(self, alert_filter: AlertFilter | None = None) -> list[dict[str, Any]]: ...

    async def get_stats(self) -> dict[str, Any]: ...


class AlertFeedPoller:
    """Interval-based refresh of alerts and stats.

    Example:
        >>> poller = AlertFeedPoller(AlertApiClient("http://localhost:8000"))
        >>> poller.start()
        >>> poller.alerts, poller.stats
        >>> await poller.close()
    """

    def __init__(
        self,
        client: AlertFeedSource,
        alert_filter: AlertFilter | None = None,
        list_interval: float = 5.0,
        stats_interval: float = 10.0,
        on_update: UpdateCallback | None = None,
    ) -> None:
        """Initialize the poller.

        Args:
            client: Source of alerts and stats, usually AlertApiClient.
            alert_filter: Filter applied to every list fetch.
            list_interval: Seconds between alert list fetches.
            stats_interval: Seconds between stats fetches.
            on_update: Called with ("alerts" | "stats", data) after each applied fetch.
        """
        if list_interval <= 0 or stats_interval <= 0:
            raise ValueError("Polling intervals must be positive")
        self.client = client
        self.alert_filter = alert_filter
        self.list_interval = list_interval
        self.stats_interval = stats_interval
        self.on_update = on_update

        self.alerts: list[dict[str, Any]] = []
        self.stats: dict[str, Any] | None = None
        self.last_error: str | None = None

        self._issued = {ALERTS: 0, STATS: 0}
        self._applied = {ALERTS: 0, STATS: 0}
        self._loops: list[asyncio.Task] = []
        self._in_flight: set[asyncio.Task] = set()
        self._closed = False

    @property
    def auto_refresh(self) -> bool:
        return bool(self._loops)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def start(self) -> None:
        """Start both refresh loops; the first fetch happens immediately."""
        if self._closed:
            raise RuntimeError("Poller is closed")
        if self._loops:
            return
        self._loops = [
            asyncio.create_task(self._loop(ALERTS, self.list_interval)),
            asyncio.create_task(self._loop(STATS, self.stats_interval)),
        ]
        logger.debug(
            f"Alert polling started (list every {self.list_interval}s, "
            f"stats every {self.stats_interval}s)"
        )

    def set_auto_refresh(self, enabled: bool) -> None:
        """Turn interval refresh on or off. Fetches already running finish."""
        if enabled:
            self.start()
        else:
            self._stop_loops()

    async def refresh(self) -> None:
        """Fetch alerts and stats now, regardless of the interval phase."""
        if self._closed:
            raise RuntimeError("Poller is closed")
        await asyncio.gather(self._spawn(ALERTS), self._spawn(STATS), return_exceptions=True)

    async def close(self) -> None:
        """Cancel the loops and in-flight fetches. No update is applied afterwards."""
        self._closed = True
        self._stop_loops()
        pending = list(self._in_flight)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._in_flight.clear()

    def _stop_loops(self) -> None:
        for task in self._loops:
            task.cancel()
        self._loops = []

    async def _loop(self, kind: str, interval: float) -> None:
        while True:
            self._spawn(kind)
            await asyncio.sleep(interval)

    def _spawn(self, kind: str) -> asyncio.Task:
        self._issued[kind] += 1
        task = asyncio.create_task(self._fetch(kind, self._issued[kind]))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def _fetch(self, kind: str, sequence: int) -> None:
        fetch: Callable[[], Awaitable[Any]]
        if kind == ALERTS:
            fetch = lambda: self.client.list_alerts(self.alert_filter)  # noqa: E731
        else:
            fetch = self.client.get_stats

        try:
            data = await fetch()
        except AlertServiceException as e:
            # Keep showing the previous view
            self.last_error = e.message
            logger.warning(f"Alert {kind} fetch failed: {e.message}")
            return
        except Exception as e:
            self.last_error = str(e) or e.__class__.__name__
            logger.exception(f"Unexpected error fetching alert {kind}: {e}")
            return

        if self._closed or sequence <= self._applied[kind]:
            logger.debug(f"Dropped stale {kind} response #{sequence}")
            return

        self._applied[kind] = sequence
        self.last_error = None
        if kind == ALERTS:
            self.alerts = data
        else:
            self.stats = data
        if self.on_update is not None:
            try:
                self.on_update(kind, data)
            except Exception as e:
                logger.exception(f"Alert {kind} update callback failed: {e}")
