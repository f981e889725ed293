"""Bulk Ingestion - rate-limited alert creation.

Bulk creation runs through a fixed pool of workers draining an
``asyncio.Queue``. Every worker takes a token from a shared token bucket
before creating an alert, so the creation rate is an explicit parameter
instead of a sleep between sequential calls.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from alert_service.alerts.models import AlertDraft
from alert_service.core.exceptions import AlertServiceException
from alert_service.monitoring.metrics import BULK_ITEMS

if TYPE_CHECKING:
    from alert_service.alerts.lifecycle import AlertLifecycleController

logger = logging.getLogger(__name__)


class TokenBucket:
    """Token bucket rate limiter.

    Example:
        >>> bucket = TokenBucket(rate=2.0, capacity=1)
        >>> await bucket.acquire()  # returns immediately
        >>> await bucket.acquire()  # waits ~0.5s
    """

    def __init__(
        self,
        rate: float,
        capacity: int = 1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the bucket.

        Args:
            rate: Tokens added per second.
            capacity: Maximum burst size; the bucket starts full.
            clock: Monotonic clock, injectable for tests.
            sleep: Async sleep, injectable for tests.
        """
        if rate <= 0:
            raise ValueError("rate must be positive")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.rate = rate
        self.capacity = capacity
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._updated = clock()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = self._clock()
        self._tokens = min(self.capacity, self._tokens + (now - self._updated) * self.rate)
        self._updated = now

    async def acquire(self) -> None:
        """Wait until a token is available and take it."""
        async with self._lock:
            self._refill()
            while self._tokens < 1:
                await self._sleep((1 - self._tokens) / self.rate)
                self._refill()
            self._tokens -= 1


@dataclass
class BulkItemResult:
    """Outcome for one draft, in input order."""

    index: int
    created: bool
    alert_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "created": self.created,
            "alert_id": self.alert_id,
            "error": self.error,
        }


@dataclass
class BulkIngestResult:
    """Outcome of a bulk ingestion."""

    items: list[BulkItemResult] = field(default_factory=list)

    @property
    def total_processed(self) -> int:
        return len(self.items)

    @property
    def successfully_added(self) -> int:
        return sum(1 for item in self.items if item.created)

    @property
    def failed(self) -> int:
        return self.total_processed - self.successfully_added

    @property
    def success(self) -> bool:
        return self.successfully_added > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "items": [item.to_dict() for item in self.items],
            "summary": {
                "total_processed": self.total_processed,
                "successfully_added": self.successfully_added,
                "failed": self.failed,
            },
        }


class BulkAlertIngestor:
    """Create many alerts with bounded concurrency and rate.

    Example:
        >>> ingestor = BulkAlertIngestor(controller, concurrency=2, rate_per_second=0.5)
        >>> result = await ingestor.ingest(drafts)
        >>> result.successfully_added
    """

    def __init__(
        self,
        controller: AlertLifecycleController,
        concurrency: int = 2,
        rate_per_second: float = 0.5,
        bucket: TokenBucket | None = None,
    ) -> None:
        """Initialize the ingestor.

        Args:
            controller: Controller that creates and dispatches each alert.
            concurrency: Number of workers.
            rate_per_second: Maximum creations per second across workers.
            bucket: Pre-built token bucket, overrides rate_per_second.
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.controller = controller
        self.concurrency = concurrency
        self.bucket = bucket or TokenBucket(rate=rate_per_second, capacity=1)

    async def ingest(self, drafts: list[AlertDraft]) -> BulkIngestResult:
        """Create every draft; per-item failures do not stop the batch.

        Args:
            drafts: Alerts to create.

        Returns:
            BulkIngestResult with one item per draft, in input order.
        """
        queue: asyncio.Queue[tuple[int, AlertDraft]] = asyncio.Queue()
        for index, draft in enumerate(drafts):
            queue.put_nowait((index, draft))

        results: list[BulkItemResult | None] = [None] * len(drafts)
        workers = [
            asyncio.create_task(self._worker(queue, results))
            for _ in range(min(self.concurrency, len(drafts)))
        ]
        try:
            await queue.join()
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        result = BulkIngestResult(items=[item for item in results if item is not None])
        logger.info(
            f"Bulk ingestion processed {result.total_processed} alerts "
            f"({result.successfully_added} added, {result.failed} failed)"
        )
        return result

    async def _worker(
        self,
        queue: asyncio.Queue[tuple[int, AlertDraft]],
        results: list[BulkItemResult | None],
    ) -> None:
        while True:
            index, draft = await queue.get()
            try:
                await self.bucket.acquire()
                alert = await self.controller.create_alert(draft)
                results[index] = BulkItemResult(index=index, created=True, alert_id=alert.id)
                BULK_ITEMS.labels(outcome="created").inc()
            except AlertServiceException as e:
                results[index] = BulkItemResult(index=index, created=False, error=e.message)
                BULK_ITEMS.labels(outcome="failed").inc()
            except Exception as e:
                logger.exception(f"Unexpected error creating bulk item {index}: {e}")
                results[index] = BulkItemResult(index=index, created=False, error=f"Unexpected error: {e!s}")
                BULK_ITEMS.labels(outcome="failed").inc()
            finally:
                queue.task_done()
