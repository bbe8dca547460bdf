"""
Webhooks - Delivery Queue and Retry Sweeper.

============================================================
PURPOSE
============================================================
Dispatch never waits on subscribers. It enqueues delivery ids;
a fixed pool of worker tasks consumes the queue and performs the
attempts. The RetrySweeper periodically re-enqueues deliveries
whose next_retry_at has elapsed.

INVARIANTS:
- One failing attempt never stops a worker
- stop() cancels workers; persisted rows stay the source of truth

============================================================
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional


logger = logging.getLogger(__name__)


DeliveryHandler = Callable[[int], Awaitable[Any]]


class DeliveryQueue:
    """asyncio.Queue of delivery ids consumed by a worker pool."""

    def __init__(self, handler: DeliveryHandler, worker_count: int = 4):
        self._handler = handler
        self._worker_count = worker_count
        self._queue: asyncio.Queue = asyncio.Queue()
        self._workers: List[asyncio.Task] = []

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    def qsize(self) -> int:
        return self._queue.qsize()

    # ----- LIFECYCLE -----

    async def start(self) -> None:
        if self._workers:
            logger.warning("DeliveryQueue is already running")
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"webhook-delivery-{i}")
            for i in range(self._worker_count)
        ]
        logger.info(f"DeliveryQueue started with {self._worker_count} workers")

    async def stop(self) -> None:
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info(f"DeliveryQueue stopped ({self._queue.qsize()} ids left queued)")

    # ----- QUEUE -----

    def enqueue(self, delivery_id: int) -> None:
        self._queue.put_nowait(delivery_id)

    async def join(self) -> None:
        """Wait until every enqueued id has been handled."""
        await self._queue.join()

    async def _worker(self, index: int) -> None:
        while True:
            delivery_id = await self._queue.get()
            try:
                await self._handler(delivery_id)
            except Exception as e:
                logger.error(f"Worker {index}: delivery {delivery_id} raised: {e}", exc_info=True)
            finally:
                self._queue.task_done()


class RetrySweeper:
    """Periodic task calling a sweep coroutine (process_pending_retries)."""

    def __init__(self, sweep: Callable[[], Awaitable[int]], interval_seconds: float = 30.0):
        self._sweep = sweep
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.is_running:
            logger.warning("RetrySweeper is already running")
            return
        self._task = asyncio.create_task(self._run(), name="webhook-retry-sweeper")
        logger.info(f"RetrySweeper started (every {self._interval}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("RetrySweeper stopped")

    async def run_once(self) -> int:
        count = await self._sweep()
        if count:
            logger.info(f"RetrySweeper re-enqueued {count} deliveries")
        return count

    async def _run(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Retry sweep failed: {e}", exc_info=True)
            await asyncio.sleep(self._interval)
