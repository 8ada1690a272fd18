"""Tracked item lifecycle: add, update, delete and query."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError

from price_tracker.config import settings
from price_tracker.db import repository
from price_tracker.db.models import PriceHistory, TrackedItem
from price_tracker.db.session import AsyncSessionLocal
from price_tracker.errors import ConflictError, NotFoundError, ScrapeError, ValidationError
from price_tracker.ingest.price_parser import (
    build_product_url,
    extract_product_code,
    is_valid_url,
)
from price_tracker.ingest.scraper import ScrapeService, scrape_service
from price_tracker.worker.tracker import TrackingScheduler, tracking_scheduler

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = "This product is already being tracked."


def validate_interval(minutes: Optional[int]) -> int:
    if minutes is None or not 1 <= minutes <= 1440:
        raise ValidationError("Check interval must be between 1 and 1440 minutes")
    return minutes


def validate_threshold(percent: Optional[int]) -> int:
    if percent is None or not 0 <= percent <= 100:
        raise ValidationError("Alert threshold must be between 0 and 100 percent")
    return percent


def resolve_item_input(value: str) -> tuple[str, Optional[str]]:
    """
    Turn user input into (url, product_code).

    Accepts a full http(s) URL or a bare numeric product code, which is
    expanded with settings.product_url_template.
    """
    value = (value or "").strip()
    if value.lower().startswith(("http://", "https://")):
        if not is_valid_url(value):
            raise ValidationError("Invalid URL format")
        return value, extract_product_code(value)
    if value.isdigit():
        return build_product_url(value), value
    raise ValidationError("Enter a product URL or a numeric product code")


class ItemService:
    """Coordinates persistence, scraping and scheduling for tracked items."""

    def __init__(
        self,
        session_factory=None,
        scraper: Optional[ScrapeService] = None,
        tracker: Optional[TrackingScheduler] = None,
    ):
        self.session_factory = session_factory or AsyncSessionLocal
        self.scraper = scraper or scrape_service
        self.tracker = tracker or tracking_scheduler
        # Serializes duplicate check -> scrape -> insert
        self._add_lock = asyncio.Lock()

    async def add_item(
        self,
        url_or_code: str,
        check_interval_minutes: Optional[int] = None,
        price_alert_threshold: Optional[int] = None,
        product_code: Optional[str] = None,
    ) -> TrackedItem:
        """
        Start tracking a product.

        Args:
            url_or_code: Product URL or numeric product code
            check_interval_minutes: 1-1440, defaults to settings
            price_alert_threshold: 0-100 percent, defaults to settings
            product_code: Known product code, takes precedence over the one
                          found in the URL

        Raises:
            ValidationError: Bad input
            ConflictError: Same URL or product code is already tracked
            ScrapeError: The product page could not be scraped

        Returns:
            The created item, already scheduled
        """
        interval = validate_interval(
            settings.default_check_interval_minutes
            if check_interval_minutes is None else check_interval_minutes
        )
        threshold = validate_threshold(
            settings.default_alert_threshold_percent
            if price_alert_threshold is None else price_alert_threshold
        )
        url, url_code = resolve_item_input(url_or_code)
        if product_code:
            product_code = product_code.strip()
            if not product_code.isdigit():
                raise ValidationError("Product code must be numeric")
        product_code = product_code or url_code

        async with self._add_lock:
            async with self.session_factory() as db:
                if await repository.find_duplicate(db, url, product_code):
                    raise ConflictError(DUPLICATE_MESSAGE)

            scraped = await self.scraper.scrape_product(url)
            if scraped is None:
                raise ScrapeError("Could not scrape product. Please check the URL or product code.")

            product_code = product_code or scraped.product_code
            now = datetime.utcnow()

            async with self.session_factory() as db:
                if await repository.find_duplicate(db, url, product_code):
                    raise ConflictError(DUPLICATE_MESSAGE)
                try:
                    item = await repository.create_item(
                        db,
                        url=url,
                        product_code=product_code,
                        name=scraped.name or "Unknown Product",
                        current_price=scraped.price,
                        previous_price=scraped.price,
                        price_change_percent=0,
                        category=scraped.category,
                        image_url=scraped.image_url,
                        check_interval_minutes=interval,
                        price_alert_threshold=threshold,
                        last_checked_at=now,
                    )
                    await repository.append_price_history(db, item.id, scraped.price, now)
                    await db.commit()
                except IntegrityError as e:
                    await db.rollback()
                    raise ConflictError(DUPLICATE_MESSAGE) from e

        self.tracker.schedule_item(item)
        logger.info(f"Now tracking item {item.id} ({item.name}) at {item.current_price}")
        return item

    async def get_item(self, item_id: int) -> TrackedItem:
        async with self.session_factory() as db:
            item = await repository.get_item(db, item_id)
        if item is None:
            raise NotFoundError("Product not found")
        return item

    async def list_items(self) -> Sequence[TrackedItem]:
        async with self.session_factory() as db:
            return await repository.list_items(db)

    async def get_history(self, item_id: int, days: Optional[int] = None) -> Sequence[PriceHistory]:
        """Price observations for an item over the last `days` days."""
        since = datetime.utcnow() - timedelta(days=days or settings.price_history_days)
        async with self.session_factory() as db:
            if await repository.get_item(db, item_id) is None:
                raise NotFoundError("Product not found")
            return await repository.get_price_history(db, item_id, since=since)

    async def update_interval(self, item_id: int, minutes: int) -> TrackedItem:
        validate_interval(minutes)
        async with self.session_factory() as db:
            item = await repository.get_item(db, item_id)
            if item is None:
                raise NotFoundError("Product not found")
            item.check_interval_minutes = minutes
            await db.commit()
        self.tracker.schedule_item(item)
        return item

    async def update_threshold(self, item_id: int, percent: int) -> TrackedItem:
        validate_threshold(percent)
        async with self.session_factory() as db:
            item = await repository.get_item(db, item_id)
            if item is None:
                raise NotFoundError("Product not found")
            item.price_alert_threshold = percent
            await db.commit()
        return item

    async def delete_item(self, item_id: int) -> None:
        """Stop the schedule, then remove price history, then the item."""
        async with self.session_factory() as db:
            if await repository.get_item(db, item_id) is None:
                raise NotFoundError("Product not found")

        self.tracker.unschedule_item(item_id)

        async with self.tracker.locks.get(item_id):
            async with self.session_factory() as db:
                removed = await repository.delete_price_history(db, item_id)
                await repository.delete_item(db, item_id)
                await db.commit()
        self.tracker.locks.discard(item_id)
        logger.info(f"Deleted item {item_id} and {removed} price history rows")


item_service = ItemService()
