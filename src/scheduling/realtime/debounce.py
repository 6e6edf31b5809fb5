"""Debounced full-refetch driven by the change feed.

Every change event marks the view dirty.  The first event opens a window of
``delay`` seconds; events arriving inside the window are coalesced, then a
single ``refetch`` runs.  Events that arrive while a refetch is running
schedule exactly one more.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from scheduling.realtime.feed import ChangeEvent, ChangeFeed, Collection

logger = structlog.get_logger()


class DebouncedRefresher:
    """Coalesce bursts of change events into one async refetch.

    Must be constructed inside a running event loop; :meth:`notify` is safe
    to call from any thread (store writes usually run in worker threads).

    Args:
        refetch: Coroutine function that reloads the full state.
        delay: Debounce window in seconds.
        name: Label used in log events.
    """

    def __init__(
        self,
        refetch: Callable[[], Awaitable[None]],
        delay: float,
        name: str = "refresh",
    ) -> None:
        self._refetch = refetch
        self._delay = delay
        self._name = name
        self._loop = asyncio.get_running_loop()
        self._dirty = False
        self._task: asyncio.Task[None] | None = None
        self._token: int | None = None
        self._feed: ChangeFeed | None = None
        self.refresh_count = 0

    def attach(self, feed: ChangeFeed, collections: set[Collection] | None = None) -> None:
        """Subscribe to *feed* so each event triggers :meth:`notify`."""
        self._feed = feed
        self._token = feed.subscribe(self.notify, collections)

    def notify(self, event: ChangeEvent | None = None) -> None:
        """Mark the view dirty and schedule a refetch (thread-safe)."""
        self._loop.call_soon_threadsafe(self._schedule)

    def _schedule(self) -> None:
        self._dirty = True
        if self._task is None or self._task.done():
            self._task = self._loop.create_task(self._run())

    async def _run(self) -> None:
        while self._dirty:
            await asyncio.sleep(self._delay)
            self._dirty = False
            try:
                await self._refetch()
                self.refresh_count += 1
            except Exception:
                logger.exception("debounced_refresh_failed", name=self._name)

    async def wait_idle(self) -> None:
        """Wait until no refetch is pending or running."""
        # Let callbacks queued via call_soon_threadsafe run first.
        await asyncio.sleep(0)
        while self._task is not None and not self._task.done():
            await self._task
            await asyncio.sleep(0)

    async def close(self) -> None:
        """Unsubscribe and cancel any pending refetch."""
        if self._feed is not None and self._token is not None:
            self._feed.unsubscribe(self._token)
            self._token = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
