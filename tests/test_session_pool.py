"""Tests for the bounded browser session pool."""

import asyncio

import pytest

from conftest import FakeBrowser, FakeSite
from sitegraph.errors import SessionFailure
from sitegraph.monitor import CrawlMonitor, SESSION_ACQUIRED, SESSION_RELEASED
from sitegraph.session_pool import SessionPool


class TestPoolLifecycle:
    """Opening and closing the pool's browser contexts."""

    def test_start_opens_capacity_contexts_with_options(self):
        """start() opens one context per slot with the given options."""
        browser = FakeBrowser(FakeSite())

        async def scenario():
            pool = SessionPool(browser, 3, {"viewport": {"width": 1280, "height": 800}})
            await pool.start()
            await pool.close()

        asyncio.run(scenario())
        assert len(browser.contexts) == 3
        assert browser.contexts[0].options["viewport"]["width"] == 1280
        assert all(ctx.closed for ctx in browser.contexts)

    def test_partial_start_failure_closes_created_contexts(self):
        """A failed start closes the contexts it already opened."""
        browser = FakeBrowser(FakeSite(), fail_after=2)

        async def scenario():
            pool = SessionPool(browser, 5)
            with pytest.raises(SessionFailure):
                await pool.start()

        asyncio.run(scenario())
        assert len(browser.contexts) == 2
        assert all(ctx.closed for ctx in browser.contexts)

    def test_acquire_before_start_fails(self):
        """acquire() on an unopened pool raises SessionFailure."""
        async def scenario():
            pool = SessionPool(FakeBrowser(FakeSite()), 1)
            with pytest.raises(SessionFailure):
                await pool.acquire()

        asyncio.run(scenario())

    def test_invalid_capacity(self):
        """Capacity below one is rejected."""
        with pytest.raises(ValueError):
            SessionPool(FakeBrowser(FakeSite()), 0)


class TestPoolConcurrency:
    """Sessions are exclusive and bounded by capacity."""

    def test_never_more_than_capacity_in_use(self):
        """Eight tasks on two sessions never exceed two in use."""
        browser = FakeBrowser(FakeSite())
        observed = []

        async def scenario():
            async with SessionPool(browser, 2) as pool:
                async def task():
                    async with pool.session():
                        observed.append(pool.in_use)
                        await asyncio.sleep(0.01)
                await asyncio.gather(*(task() for _ in range(8)))
                return pool.peak_in_use, pool.in_use

        peak, after = asyncio.run(scenario())
        assert peak == 2
        assert max(observed) <= 2
        assert after == 0

    def test_released_on_exception(self):
        """session() returns the context even when the body raises."""
        async def scenario():
            async with SessionPool(FakeBrowser(FakeSite()), 1) as pool:
                with pytest.raises(RuntimeError):
                    async with pool.session():
                        raise RuntimeError("boom")
                # The single session is free again
                ctx = await asyncio.wait_for(pool.acquire(), timeout=1)
                pool.release(ctx)
                return pool.in_use

        assert asyncio.run(scenario()) == 0

    def test_session_held_by_one_task(self):
        """Two holders never share a context; double release fails."""
        async def scenario():
            async with SessionPool(FakeBrowser(FakeSite()), 2) as pool:
                a = await pool.acquire()
                b = await pool.acquire()
                assert a is not b
                pool.release(a)
                pool.release(b)
                with pytest.raises(ValueError):
                    pool.release(a)

        asyncio.run(scenario())

    def test_monitor_sees_acquire_and_release(self):
        """Acquire and release are reported to the monitor."""
        monitor = CrawlMonitor("job-1")

        async def scenario():
            async with SessionPool(FakeBrowser(FakeSite()), 2, monitor=monitor) as pool:
                async with pool.session():
                    pass

        asyncio.run(scenario())
        assert monitor.count(SESSION_ACQUIRED) == 1
        assert monitor.count(SESSION_RELEASED) == 1
        assert monitor.snapshot().peak_sessions == 1
