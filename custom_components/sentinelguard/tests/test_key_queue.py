"""
Tests for KeyedRequestQueue: serialisation, FIFO order, parallel execution
across keys, error propagation, worker retirement and shutdown.
"""

from __future__ import annotations

import asyncio
import time
import unittest
from unittest.mock import AsyncMock

from custom_components.sentinelguard.key_queue import KeyedRequestQueue


class TestKeyedRequestQueue(unittest.IsolatedAsyncioTestCase):

    async def test_single_job_executed(self):
        queue = KeyedRequestQueue()
        called = []
        queue.enqueue("a", AsyncMock(return_value="ok", side_effect=lambda: called.append(1) or "ok"))
        await asyncio.sleep(0.05)
        self.assertIn(1, called)
        await queue.shutdown()

    async def test_result_returned_via_future(self):
        queue = KeyedRequestQueue()
        fut = queue.enqueue("a", AsyncMock(return_value="result"))
        result = await asyncio.wait_for(fut, timeout=2)
        self.assertEqual(result, "result")
        await queue.shutdown()

    async def test_same_key_jobs_run_in_submission_order(self):
        queue = KeyedRequestQueue()
        order = []

        def job(n, delay):
            async def run():
                order.append(f"start{n}")
                await asyncio.sleep(delay)
                order.append(f"end{n}")
                return n
            return run

        futures = [queue.enqueue("a", job(1, 0.05)), queue.enqueue("a", job(2, 0)), queue.enqueue("a", job(3, 0))]
        results = await asyncio.wait_for(asyncio.gather(*futures), timeout=2)

        self.assertEqual(results, [1, 2, 3])
        self.assertEqual(order, ["start1", "end1", "start2", "end2", "start3", "end3"])
        await queue.shutdown()

    async def test_different_keys_run_in_parallel(self):
        """Jobs for key a and key b should not block each other."""
        queue = KeyedRequestQueue()
        start_times = {}
        end_times = {}

        async def timed_job(key):
            start_times[key] = time.monotonic()
            await asyncio.sleep(0.1)
            end_times[key] = time.monotonic()
            return key

        fut1 = queue.enqueue("a", lambda: timed_job("a"))
        fut2 = queue.enqueue("b", lambda: timed_job("b"))

        await asyncio.gather(
            asyncio.wait_for(fut1, timeout=2),
            asyncio.wait_for(fut2, timeout=2),
        )

        # Both should have started before either finished (parallel)
        overlap = start_times["b"] < end_times["a"] and start_times["a"] < end_times["b"]
        self.assertTrue(overlap, "Jobs for different keys should run in parallel")
        await queue.shutdown()

    async def test_exception_propagates_via_future(self):
        queue = KeyedRequestQueue()

        async def failing_job():
            raise ValueError("boom")

        fut = queue.enqueue("a", failing_job)
        with self.assertRaises(ValueError):
            await asyncio.wait_for(fut, timeout=2)
        await queue.shutdown()

    async def test_failure_does_not_block_following_job(self):
        queue = KeyedRequestQueue()

        async def failing_job():
            raise ValueError("boom")

        fut1 = queue.enqueue("a", failing_job)
        fut2 = queue.enqueue("a", AsyncMock(return_value="next"))

        with self.assertRaises(ValueError):
            await fut1
        self.assertEqual(await asyncio.wait_for(fut2, timeout=2), "next")
        await queue.shutdown()

    async def test_worker_retires_when_queue_drains(self):
        queue = KeyedRequestQueue()

        await queue.enqueue(("processes", 42), AsyncMock(return_value=None))
        await asyncio.sleep(0.01)

        self.assertEqual(queue._workers, {})
        self.assertEqual(queue.pending(("processes", 42)), 0)
        # A later job for the same key gets a fresh worker
        self.assertEqual(await queue.enqueue(("processes", 42), AsyncMock(return_value="again")), "again")
        await queue.shutdown()

    async def test_pending_counts_queued_and_running_jobs(self):
        queue = KeyedRequestQueue()
        release = asyncio.Event()

        async def blocked():
            await release.wait()

        queue.enqueue("a", blocked)
        queue.enqueue("a", blocked)
        await asyncio.sleep(0.01)

        self.assertEqual(queue.pending("a"), 2)
        release.set()
        await asyncio.sleep(0.01)
        self.assertEqual(queue.pending("a"), 0)
        await queue.shutdown()

    async def test_shutdown_cancels_workers(self):
        queue = KeyedRequestQueue()

        async def forever():
            await asyncio.sleep(100)

        running = queue.enqueue("a", forever)
        queued = queue.enqueue("a", forever)
        await asyncio.sleep(0.01)
        await queue.shutdown()

        self.assertEqual(len(queue._workers), 0)
        self.assertTrue(queued.cancelled())
        self.assertTrue(running.cancelled())
