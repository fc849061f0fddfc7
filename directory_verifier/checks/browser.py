"""Scoped headless browser lifetime for page-rendering checks.

Each check acquires its own browser through ``chromium_browser`` and the
browser is closed when the ``async with`` block exits, whatever the exit
path. No browser handle outlives a single check, so a long batch cannot
accumulate orphaned Chromium processes.
"""

from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import AsyncIterator, Callable

from playwright.async_api import Browser, async_playwright

from directory_verifier.config.logging import get_logger

# Flags that make headless Chromium look less like automation
CHROMIUM_ARGS: list[str] = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
]

BrowserLauncher = Callable[[], AbstractAsyncContextManager[Browser]]

logger = get_logger("check.browser")


@asynccontextmanager
async def chromium_browser(headless: bool = True) -> AsyncIterator[Browser]:
    """
    Launch a fresh Chromium instance for the duration of the block.

    Args:
        headless: Run without a visible window

    Yields:
        Playwright Browser, closed on exit
    """
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=headless, args=CHROMIUM_ARGS)
        try:
            yield browser
        finally:
            await browser.close()
            logger.debug("Browser closed")
