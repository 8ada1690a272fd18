"""Shared headless browser with bounded concurrent pages."""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    async_playwright,
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
)

from price_tracker.config import settings
from price_tracker.metrics import browser_pages_in_use

logger = logging.getLogger(__name__)

LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-infobars",
    "--disable-extensions",
]


class PageLoadError(Exception):
    """Page failed to load properly."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to load {url}: {reason}")


@dataclass
class FetchedPage:
    """Rendered HTML plus where the browser ended up."""

    request_url: str
    final_url: str
    html: str


class BrowserPool:
    """
    One Chromium instance shared by every scrape.

    Pages are handed out through acquire(), which limits how many render at
    once and always closes the page on exit.
    """

    def __init__(self, max_concurrency: Optional[int] = None):
        self._max_concurrency = max_concurrency or settings.browser_max_concurrency
        self._semaphore = asyncio.Semaphore(self._max_concurrency)
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._init_lock = asyncio.Lock()

    async def _ensure_context(self) -> BrowserContext:
        """Launch the browser lazily on first use."""
        async with self._init_lock:
            if self._context is not None and self._browser is not None and self._browser.is_connected():
                return self._context

            if self._playwright is None:
                self._playwright = await async_playwright().start()

            if self._browser is None or not self._browser.is_connected():
                logger.info("Launching headless Chromium")
                self._browser = await self._playwright.chromium.launch(
                    headless=True,
                    args=LAUNCH_ARGS,
                )
                self._context = None

            self._context = await self._browser.new_context(
                user_agent=settings.browser_user_agent,
                viewport={
                    "width": settings.browser_viewport_width,
                    "height": settings.browser_viewport_height,
                },
                locale="pl-PL",
            )
            return self._context

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[Page]:
        """Borrow a fresh page; the slot and the page are released on every exit path."""
        async with self._semaphore:
            context = await self._ensure_context()
            page: Optional[Page] = None
            browser_pages_in_use.inc()
            try:
                page = await context.new_page()
                yield page
            finally:
                browser_pages_in_use.dec()
                if page is not None:
                    try:
                        await page.close()
                    except PlaywrightError as e:
                        logger.warning(f"Error closing page: {e}")

    async def fetch(self, url: str) -> FetchedPage:
        """
        Render a page and return its HTML.

        Raises:
            PageLoadError: Navigation failed or timed out
        """
        async with self.acquire() as page:
            logger.debug(f"Navigating to {url}")
            try:
                await page.goto(
                    url,
                    wait_until="networkidle",
                    timeout=settings.headless_browser_timeout * 1000,
                )
            except PlaywrightTimeoutError:
                raise PageLoadError(url, "Navigation timeout")
            except PlaywrightError as e:
                raise PageLoadError(url, str(e))

            # Let late scripts fill in the price
            await asyncio.sleep(settings.page_settle_delay_seconds)

            html = await page.content()
            return FetchedPage(request_url=url, final_url=page.url, html=html)

    async def close(self):
        """Close browser and cleanup."""
        async with self._init_lock:
            if self._context is not None:
                try:
                    await self._context.close()
                except PlaywrightError as e:
                    logger.error(f"Error closing browser context: {e}")
                self._context = None

            if self._browser is not None:
                await self._browser.close()
                self._browser = None

            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None


browser_pool = BrowserPool()
