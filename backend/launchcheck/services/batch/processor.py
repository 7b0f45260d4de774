"""
Launch Checklist Engine - Batch Processor

Drives one operation across a bounded list of listings and produces
ProgressEvents onto a queue:

    start -> (processing -> progress) per item -> complete

Two pacing strategies:
- concurrent: fixed-size batches run together, with a pause between batches
- sequential: one item at a time with a small delay, for items that include
  long-running generation

An item's exception becomes a failed result for that item only. The
processed counter in progress events only ever increases, even when
concurrent items finish out of order. Cancellation is checked before each
item starts; in-flight items are allowed to finish.
"""
import asyncio
import logging
import os
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence

from ...errors import BatchValidationError
from ...models.domain import BatchItemResult, BatchSummary, ProgressEvent, ProgressEventType
from .pacing import RateLimiter

logger = logging.getLogger(__name__)

BULK_MAX_PRODUCTS = int(os.getenv("BULK_MAX_PRODUCTS", "50"))
BULK_BATCH_SIZE = int(os.getenv("BULK_BATCH_SIZE", "5"))
BULK_BATCH_PAUSE_MS = int(os.getenv("BULK_BATCH_PAUSE_MS", "1000"))
BULK_ITEM_DELAY_MS = int(os.getenv("BULK_ITEM_DELAY_MS", "100"))

ItemHandler = Callable[[str], Awaitable[BatchItemResult]]


class BatchProcessor:
    def __init__(
        self,
        max_items: int = BULK_MAX_PRODUCTS,
        batch_size: int = BULK_BATCH_SIZE,
        batch_pause: float = BULK_BATCH_PAUSE_MS / 1000,
        item_delay: float = BULK_ITEM_DELAY_MS / 1000,
        rate_limiter: Optional[RateLimiter] = None,
        item_timeout: Optional[float] = None,
    ):
        self.max_items = max_items
        self.batch_size = max(1, batch_size)
        self.batch_pause = batch_pause
        self.item_delay = item_delay
        self.rate_limiter = rate_limiter or RateLimiter()
        self.item_timeout = item_timeout

    def validate(self, listing_ids: Sequence[str]) -> List[str]:
        """
        Reject the whole batch before any work starts.

        Raises:
            BatchValidationError: empty, oversized or malformed id list
        """
        if not listing_ids:
            raise BatchValidationError("No products selected")
        if len(listing_ids) > self.max_items:
            raise BatchValidationError(f"Maximum {self.max_items} products per batch")
        if not all(isinstance(i, str) and i.strip() for i in listing_ids):
            raise BatchValidationError("Invalid productIds format")
        return list(listing_ids)

    async def run(
        self,
        listing_ids: Sequence[str],
        operation: str,
        handler: ItemHandler,
        sequential: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[ProgressEvent]:
        """
        Process the batch and yield progress events as they happen.

        Validation runs before the first event; a BatchValidationError is
        raised from the first iteration step.
        """
        ids = self.validate(listing_ids)
        queue: "asyncio.Queue[Optional[ProgressEvent]]" = asyncio.Queue()
        run = _BatchRun(self, ids, operation, handler, queue, cancel_event)
        producer = asyncio.ensure_future(run.execute(sequential))

        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
            await producer
        finally:
            if not producer.done():
                producer.cancel()

    async def run_to_summary(
        self,
        listing_ids: Sequence[str],
        operation: str,
        handler: ItemHandler,
        sequential: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BatchSummary:
        """Drain the event stream and return the final summary."""
        summary = None
        async for event in self.run(listing_ids, operation, handler, sequential, cancel_event):
            if event.type == ProgressEventType.COMPLETE:
                summary = event.summary
        return summary


class _BatchRun:
    """State for one batch: counters, results and the event queue."""

    def __init__(
        self,
        processor: BatchProcessor,
        listing_ids: List[str],
        operation: str,
        handler: ItemHandler,
        queue: asyncio.Queue,
        cancel_event: Optional[asyncio.Event],
    ):
        self.processor = processor
        self.listing_ids = listing_ids
        self.handler = handler
        self.queue = queue
        self.cancel_event = cancel_event
        self.total = len(listing_ids)
        self.summary = BatchSummary(operation=operation, total=self.total)
        self.results: Dict[int, BatchItemResult] = {}

    def _emit(self, event_type: ProgressEventType, **kwargs) -> None:
        self.queue.put_nowait(ProgressEvent(
            type=event_type,
            total=self.total,
            processed=self.summary.processed,
            success_count=self.summary.succeeded,
            error_count=self.summary.failed,
            **kwargs,
        ))

    def _cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    async def execute(self, sequential: bool) -> None:
        logger.info(
            f"Batch {self.summary.operation} started: {self.total} items "
            f"({'sequential' if sequential else 'concurrent'})"
        )
        self._emit(ProgressEventType.START)
        try:
            if sequential:
                await self._run_sequential()
            else:
                await self._run_concurrent()
        finally:
            self.summary.results = [self.results[i] for i in sorted(self.results)]
            self._emit(ProgressEventType.COMPLETE, summary=self.summary)
            self.queue.put_nowait(None)
            logger.info(
                f"Batch {self.summary.operation} complete: {self.summary.succeeded} succeeded, "
                f"{self.summary.failed} failed, cancelled={self.summary.cancelled}"
            )

    async def _run_sequential(self) -> None:
        for index, listing_id in enumerate(self.listing_ids):
            if not await self._process(index, listing_id):
                return
            if index < self.total - 1:
                await asyncio.sleep(self.processor.item_delay)

    async def _run_concurrent(self) -> None:
        size = self.processor.batch_size
        for start in range(0, self.total, size):
            chunk = list(enumerate(self.listing_ids))[start:start + size]
            started = await asyncio.gather(*(self._process(i, lid) for i, lid in chunk))
            if not all(started):
                return
            if start + size < self.total:
                await asyncio.sleep(self.processor.batch_pause)

    async def _process(self, index: int, listing_id: str) -> bool:
        """Process one item. Returns False if the batch was cancelled before it started."""
        if self._cancelled():
            self.summary.cancelled = True
            return False

        self._emit(ProgressEventType.PROCESSING, listing_id=listing_id, index=index)
        await self.processor.rate_limiter.acquire()
        result = await self._run_handler(listing_id)

        self.results[index] = result
        self.summary.processed += 1
        if result.success:
            self.summary.succeeded += 1
        else:
            self.summary.failed += 1
        self._emit(ProgressEventType.PROGRESS, listing_id=listing_id)
        return True

    async def _run_handler(self, listing_id: str) -> BatchItemResult:
        try:
            if self.processor.item_timeout is not None:
                return await asyncio.wait_for(self.handler(listing_id), self.processor.item_timeout)
            return await self.handler(listing_id)
        except asyncio.TimeoutError:
            logger.warning(f"Batch item {listing_id} timed out")
            return BatchItemResult(listing_id=listing_id, success=False, message="Timed out")
        except Exception as exc:
            logger.warning(f"Batch item {listing_id} failed: {exc}", exc_info=True)
            return BatchItemResult(listing_id=listing_id, success=False, message=str(exc) or "Unknown error")
