"""
Browser Launcher
================
Starts and stops one headless Chromium per job.

``launch_browser(config)`` is an async context manager yielding the
Playwright ``Browser``.  Any launch error is raised as ``SessionFailure``;
shutdown errors are logged and suppressed so they never mask the job's
own outcome.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from playwright.async_api import Browser, async_playwright

from .errors import SessionFailure
from .run_config import CrawlerRunConfig

logger = logging.getLogger(__name__)

_CHROMIUM_ARGS = [
    '--disable-gpu',
    '--no-sandbox',
    '--disable-dev-shm-usage',
    '--disable-background-networking',
    '--disable-default-apps',
    '--disable-extensions',
    '--disable-sync',
    '--disable-translate',
    '--metrics-recording-only',
    '--no-first-run',
]


@asynccontextmanager
async def launch_browser(config: CrawlerRunConfig) -> AsyncIterator[Browser]:
    try:
        playwright = await async_playwright().start()
    except Exception as e:
        raise SessionFailure(f"could not start Playwright: {e}") from e

    try:
        browser = await playwright.chromium.launch(
            headless=config.headless,
            args=_CHROMIUM_ARGS,
        )
    except Exception as e:
        await playwright.stop()
        raise SessionFailure(f"could not launch Chromium: {e}") from e

    logger.info(f"Playwright Chromium launched (headless={config.headless})")
    try:
        yield browser
    finally:
        await _close(browser, playwright)


async def _close(browser, playwright) -> None:
    """Close browser and Playwright."""
    # In-flight navigations aborted by the close surface as
    # "Future exception was never retrieved"; keep them out of the log.
    loop = asyncio.get_running_loop()
    original_handler = loop.get_exception_handler()

    def _suppress_target_closed(loop, context):
        exc = context.get('exception')
        if exc and ('TargetClosedError' in type(exc).__name__
                    or 'closed' in str(exc).lower()):
            return
        if original_handler:
            original_handler(loop, context)
        else:
            loop.default_exception_handler(context)

    loop.set_exception_handler(_suppress_target_closed)
    try:
        try:
            await browser.close()
        except Exception as e:
            logger.debug(f"Browser close error: {e}")
        try:
            await playwright.stop()
        except Exception as e:
            logger.debug(f"Playwright stop error: {e}")
        await asyncio.sleep(0.1)
    finally:
        loop.set_exception_handler(original_handler)
