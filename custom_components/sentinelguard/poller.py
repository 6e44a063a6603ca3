"""
SnapshotPoller — timer-driven periodic fetches, one handle per entity domain.

Guarantees per handle:
- fetch runs immediately on start (or after one interval when asked to),
  then every interval until stopped;
- at most one fetch is in flight; a tick that finds one still running is
  skipped, not queued;
- after stop() nothing is fetched and a late result is discarded;
- a failing fetch is logged and the next tick runs as usual.

Pure asyncio concurrency primitive with no HA or network dependencies.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from .const import PERSISTENT_POLL_FAILURES

_LOGGER = logging.getLogger(__name__)


class PollHandle:
    """State of one running poll loop."""

    def __init__(
        self,
        name: str,
        interval: float,
        fetch: Callable[[], Awaitable[Any]],
        deliver: Callable[[Any], None],
    ) -> None:
        self.name = name
        self.interval = interval
        self.fetch = fetch
        self.deliver = deliver
        self.stopped = False
        self.consecutive_failures = 0
        self.skipped_ticks = 0
        self._timer: asyncio.TimerHandle | None = None
        self._in_flight: asyncio.Task | None = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None

    def __repr__(self) -> str:
        return f"<PollHandle {self.name} every {self.interval}s{' stopped' if self.stopped else ''}>"


class SnapshotPoller:
    """Drives any number of PollHandles on the running event loop."""

    def __init__(self, failure_threshold: int = PERSISTENT_POLL_FAILURES) -> None:
        self._failure_threshold = failure_threshold
        self._handles: set[PollHandle] = set()

    def start(
        self,
        name: str,
        interval: float,
        fetch: Callable[[], Awaitable[Any]],
        deliver: Callable[[Any], None],
        immediate: bool = True,
    ) -> PollHandle:
        """
        Begin polling: fetch now, then every interval seconds.

        With immediate=False the first fetch waits one interval, for a domain
        whose current snapshot was just fetched some other way.
        """
        if interval <= 0:
            raise ValueError(f"Poll interval must be positive, got {interval}")
        handle = PollHandle(name, interval, fetch, deliver)
        self._handles.add(handle)
        _LOGGER.debug("Starting %s poll every %ss", name, interval)
        if immediate:
            self._tick(handle)
        else:
            handle._timer = asyncio.get_running_loop().call_later(interval, self._tick, handle)
        return handle

    def stop(self, handle: PollHandle) -> None:
        """Stop polling; cancels the pending timer and any in-flight fetch."""
        handle.stopped = True
        if handle._timer is not None:
            handle._timer.cancel()
            handle._timer = None
        if handle._in_flight is not None:
            handle._in_flight.cancel()
        self._handles.discard(handle)

    def request_refresh(self, handle: PollHandle) -> bool:
        """
        Poll now without waiting for the next tick.

        Coalesced like a regular tick: returns False when a fetch is already
        in flight or the handle is stopped.
        """
        if handle.stopped or handle._in_flight is not None:
            return False
        handle._in_flight = asyncio.get_running_loop().create_task(self._run_once(handle))
        return True

    async def async_shutdown(self) -> None:
        """Stop every handle and wait for cancelled fetches to unwind."""
        tasks = [h._in_flight for h in self._handles if h._in_flight is not None]
        for handle in list(self._handles):
            self.stop(handle)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    @property
    def handles(self) -> set[PollHandle]:
        return set(self._handles)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _tick(self, handle: PollHandle) -> None:
        if handle.stopped:
            return
        loop = asyncio.get_running_loop()
        handle._timer = loop.call_later(handle.interval, self._tick, handle)

        if handle._in_flight is not None:
            handle.skipped_ticks += 1
            _LOGGER.debug("%s poll still in flight, skipping tick", handle.name)
            return
        handle._in_flight = loop.create_task(self._run_once(handle))

    async def _run_once(self, handle: PollHandle) -> None:
        try:
            result = await handle.fetch()
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            self._record_failure(handle, exc)
            return
        finally:
            handle._in_flight = None

        if handle.stopped:
            _LOGGER.debug("%s poll stopped, discarding late result", handle.name)
            return

        if handle.consecutive_failures:
            _LOGGER.info(
                "%s poll recovered after %s failed attempts",
                handle.name, handle.consecutive_failures,
            )
        handle.consecutive_failures = 0

        try:
            handle.deliver(result)
        except Exception:  # noqa: BLE001
            _LOGGER.exception("Failed to apply %s snapshot", handle.name)

    def _record_failure(self, handle: PollHandle, exc: Exception) -> None:
        handle.consecutive_failures += 1
        count = handle.consecutive_failures
        if count == 1:
            _LOGGER.warning("Failed to poll %s: %s", handle.name, exc)
        elif count == self._failure_threshold:
            _LOGGER.error(
                "Polling %s has failed %s times in a row, showing stale data: %s",
                handle.name, count, exc,
            )
        else:
            _LOGGER.debug("Failed to poll %s (attempt %s): %s", handle.name, count, exc)
