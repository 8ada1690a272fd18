"""Scrape service: render a product page and extract its data."""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from playwright.async_api import Error as PlaywrightError

from price_tracker.ingest.browser_pool import BrowserPool, PageLoadError, browser_pool
from price_tracker.ingest.extractor import PriceExtractor, extractor
from price_tracker.logging_config import get_logger
from price_tracker.metrics import scrape_duration_seconds, scrapes_total

logger = logging.getLogger(__name__)


@dataclass
class ScrapedInfo:
    """Result of a successful scrape."""

    name: str
    price: int
    url: str
    product_code: Optional[str] = None
    image_url: Optional[str] = None
    category: Optional[str] = None


class ScrapeService:
    """
    Fetches a product page and turns it into a ScrapedInfo.

    Transient failures (navigation errors, timeouts, no price on the page)
    are logged and reported as None; callers decide whether that is an error.
    """

    def __init__(
        self,
        pool: Optional[BrowserPool] = None,
        page_extractor: Optional[PriceExtractor] = None,
    ):
        self.pool = pool or browser_pool
        self.extractor = page_extractor or extractor

    async def scrape_product(self, url: str) -> Optional[ScrapedInfo]:
        """
        Scrape a product page.

        Args:
            url: Product page URL

        Returns:
            ScrapedInfo, or None when the page could not be loaded or had no price
        """
        log = get_logger(__name__, url=url)
        started = time.monotonic()
        try:
            fetched = await self.pool.fetch(url)
        except (PageLoadError, PlaywrightError, asyncio.TimeoutError) as e:
            scrapes_total.labels(status="load_error").inc()
            log.warning(f"Failed to load {url} at {datetime.utcnow().isoformat()}: {e}")
            return None
        finally:
            scrape_duration_seconds.observe(time.monotonic() - started)

        page = self.extractor.extract(fetched.html, fetched.final_url, request_url=url)

        if page.price is None:
            scrapes_total.labels(status="no_price").inc()
            log.warning(
                f"Could not extract price from {url} "
                f"(name={page.name!r}, raw={page.price_text!r}) at {datetime.utcnow().isoformat()}"
            )
            return None

        scrapes_total.labels(status="success").inc()
        log.info(f"Scraped {page.name!r} at {page.price} via {page.strategy} strategy")
        return ScrapedInfo(
            name=page.name or "Unknown Product",
            price=page.price,
            url=url,
            product_code=page.product_code,
            image_url=page.image_url,
            category=page.category,
        )

    async def close(self):
        await self.pool.close()


scrape_service = ScrapeService()
