"""
Tests for the delivery queue and retry sweeper.
"""

import asyncio

import pytest

from webhooks.queue import DeliveryQueue, RetrySweeper


@pytest.mark.asyncio
class TestDeliveryQueue:

    async def test_workers_handle_every_id(self):
        handled = []

        async def handler(delivery_id):
            handled.append(delivery_id)

        queue = DeliveryQueue(handler, worker_count=2)
        await queue.start()
        for delivery_id in range(5):
            queue.enqueue(delivery_id)
        await queue.join()
        await queue.stop()

        assert sorted(handled) == [0, 1, 2, 3, 4]
        assert not queue.is_running

    async def test_failing_handler_does_not_stop_worker(self):
        handled = []

        async def handler(delivery_id):
            if delivery_id == 1:
                raise RuntimeError("subscriber exploded")
            handled.append(delivery_id)

        queue = DeliveryQueue(handler, worker_count=1)
        await queue.start()
        for delivery_id in (1, 2, 3):
            queue.enqueue(delivery_id)
        await queue.join()
        await queue.stop()

        assert handled == [2, 3]

    async def test_enqueue_without_workers(self):
        async def handler(delivery_id):
            pass

        queue = DeliveryQueue(handler)
        queue.enqueue(1)
        assert queue.qsize() == 1


@pytest.mark.asyncio
class TestRetrySweeper:

    async def test_run_once(self):
        async def sweep():
            return 3

        assert await RetrySweeper(sweep, interval_seconds=60).run_once() == 3

    async def test_background_loop_survives_errors(self):
        calls = []

        async def sweep():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("database unavailable")
            return 0

        sweeper = RetrySweeper(sweep, interval_seconds=0.01)
        await sweeper.start()
        while len(calls) < 3:
            await asyncio.sleep(0.01)
        await sweeper.stop()

        assert not sweeper.is_running
