"""
KeyedRequestQueue — serialises agent commands per entity key.

This is a pure asyncio concurrency primitive with no HA or network dependencies.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Hashable

from .const import REQUEST_DELAY

_LOGGER = logging.getLogger(__name__)


class KeyedRequestQueue:
    """
    Serialises jobs for each key.

    Jobs for different keys run fully in parallel; jobs for the same key are
    queued and executed one-at-a-time in submission order with request_delay
    between them. A key's worker retires as soon as its queue drains, so
    short-lived keys (process ids) do not accumulate workers.
    """

    def __init__(self, request_delay: float = REQUEST_DELAY) -> None:
        self._request_delay = request_delay
        # key → asyncio.Queue of (coro_factory, Future) pairs
        self._queues: dict[Hashable, asyncio.Queue] = {}
        # key → worker Task
        self._workers: dict[Hashable, asyncio.Task] = {}
        # key → number of jobs queued or running
        self._pending: dict[Hashable, int] = {}

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def enqueue(self, key: Hashable, coro_factory: Callable[[], Any]) -> asyncio.Future:
        """
        Schedule coro_factory() on the queue for key.

        Returns a Future resolved with the job's result (or its exception)
        once every earlier job for the same key has finished.
        """
        self._ensure_key(key)
        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[key] += 1
        self._queues[key].put_nowait((coro_factory, fut))
        return fut

    def pending(self, key: Hashable) -> int:
        """Number of jobs queued or running for key."""
        return self._pending.get(key, 0)

    async def shutdown(self) -> None:
        """Cancel all worker tasks and drain queues."""
        for queue in self._queues.values():
            while not queue.empty():
                _, fut = queue.get_nowait()
                if not fut.done():
                    fut.cancel()
        for task in self._workers.values():
            task.cancel()
        results = await asyncio.gather(*self._workers.values(), return_exceptions=True)
        for result in results:
            if isinstance(result, Exception) and not isinstance(result, asyncio.CancelledError):
                _LOGGER.debug("KeyedRequestQueue worker error during shutdown: %s", result)
        self._workers.clear()
        self._queues.clear()
        self._pending.clear()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_key(self, key: Hashable) -> None:
        """Create queue and worker for key if they do not exist yet."""
        if key not in self._queues:
            self._queues[key] = asyncio.Queue()
            self._pending[key] = 0
            self._workers[key] = asyncio.ensure_future(self._worker(key))

    async def _worker(self, key: Hashable) -> None:
        """Consume jobs from this key's queue until it drains."""
        queue = self._queues[key]
        while True:
            coro_factory, fut = await queue.get()
            try:
                if not fut.cancelled():
                    result = await coro_factory()
                    if not fut.done():
                        fut.set_result(result)
            except asyncio.CancelledError:
                if not fut.done():
                    fut.cancel()
                raise
            except Exception as exc:  # noqa: BLE001
                if not fut.done():
                    fut.set_exception(exc)
            finally:
                self._pending[key] -= 1
                queue.task_done()

            if self._request_delay:
                await asyncio.sleep(self._request_delay)

            if queue.empty():
                # No await between this check and the removal, so a concurrent
                # enqueue either landed before it or gets a fresh worker after.
                del self._queues[key]
                del self._workers[key]
                del self._pending[key]
                return
