"""
Session Pool
============
Fixed-size pool of isolated browser contexts for one job.

- ``start()`` opens every context up front; a partial failure closes the
  contexts already opened and raises ``SessionFailure``
- ``acquire()`` suspends while all sessions are busy (backpressure, not an error)
- ``session()`` is the preferred form: release is guaranteed on every exit path
- a session is held by at most one task at a time
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from .errors import SessionFailure
from .monitor import CrawlMonitor, SESSION_ACQUIRED, SESSION_RELEASED

logger = logging.getLogger(__name__)


class SessionPool:
    """Bounded pool of ``BrowserContext`` handles."""

    def __init__(self, browser, capacity: int = 5,
                 context_options: Optional[Dict[str, Any]] = None,
                 monitor: Optional[CrawlMonitor] = None):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._browser = browser
        self.capacity = capacity
        self._context_options = dict(context_options or {})
        self._monitor = monitor

        self._contexts: List[Any] = []
        self._idle: Optional[asyncio.Queue] = None
        self._held: set = set()
        self.peak_in_use = 0
        self._closed = False

    async def start(self) -> "SessionPool":
        """Open ``capacity`` contexts."""
        try:
            for _ in range(self.capacity):
                ctx = await self._browser.new_context(**self._context_options)
                self._contexts.append(ctx)
        except Exception as e:
            logger.error(f"[POOL] Context creation failed after {len(self._contexts)} "
                         f"of {self.capacity}: {e}")
            await self._close_contexts()
            raise SessionFailure(f"could not open browser context: {e}") from e

        self._idle = asyncio.Queue()
        for ctx in self._contexts:
            self._idle.put_nowait(ctx)
        logger.info(f"[POOL] {self.capacity} browser sessions ready")
        return self

    # ------------------------------------------------------------------
    # Acquire / release
    # ------------------------------------------------------------------

    @property
    def in_use(self) -> int:
        return len(self._held)

    async def acquire(self):
        if self._closed or self._idle is None:
            raise SessionFailure("session pool is not open")
        ctx = await self._idle.get()
        self._held.add(id(ctx))
        self.peak_in_use = max(self.peak_in_use, len(self._held))
        if self._monitor:
            self._monitor.emit(SESSION_ACQUIRED, in_use=len(self._held))
        return ctx

    def release(self, ctx) -> None:
        if id(ctx) not in self._held:
            raise ValueError("release() of a session that is not held")
        self._held.discard(id(ctx))
        if self._monitor:
            self._monitor.emit(SESSION_RELEASED, in_use=len(self._held))
        if not self._closed:
            self._idle.put_nowait(ctx)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[Any]:
        ctx = await self.acquire()
        try:
            yield ctx
        finally:
            self.release(ctx)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._close_contexts()
        logger.info(f"[POOL] Closed (peak in use: {self.peak_in_use}/{self.capacity})")

    async def _close_contexts(self) -> None:
        for ctx in self._contexts:
            try:
                await ctx.close()
            except Exception as e:
                logger.debug(f"[POOL] Context close error: {e}")
        self._contexts = []

    async def __aenter__(self) -> "SessionPool":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
