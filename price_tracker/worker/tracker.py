"""Per-item price tracking schedule and the check tick."""

import logging
import math
import threading
from contextlib import suppress
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from price_tracker.config import settings
from price_tracker.db import repository
from price_tracker.db.models import TrackedItem
from price_tracker.db.session import AsyncSessionLocal
from price_tracker.detect.change import PriceAlert, compute_change, evaluate_alert
from price_tracker.errors import NotFoundError, RateLimitError, ScrapeError
from price_tracker.ingest.scraper import ScrapeService, scrape_service
from price_tracker.logging_config import get_logger
from price_tracker.metrics import manual_checks_total, price_changes_total, tracked_items
from price_tracker.notify.notifier import Notifier, notifier as default_notifier
from price_tracker.worker.cron import interval_to_cron, parse_cron
from price_tracker.worker.item_locks import ItemLocks, item_locks
from price_tracker.worker.scheduler import scheduler as shared_scheduler

logger = logging.getLogger(__name__)


@dataclass
class PriceCheckResult:
    """Outcome of one scrape-and-persist pass."""

    item_id: int
    previous_price: int
    current_price: int
    price_change_percent: Optional[int]
    checked_at: datetime
    alert: Optional[PriceAlert] = None

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "previous_price": self.previous_price,
            "current_price": self.current_price,
            "price_change_percent": self.price_change_percent,
            "checked_at": self.checked_at.isoformat(),
            "alert_sent": self.alert is not None,
        }


class TrackingScheduler:
    """
    Runs one recurring price check per tracked item.

    The item -> scheduled job map is private. Scheduling an item that is
    already scheduled replaces its entry, and unscheduling an unknown item
    is a no-op.
    """

    def __init__(
        self,
        scheduler: Optional[AsyncIOScheduler] = None,
        session_factory=None,
        scraper: Optional[ScrapeService] = None,
        notifier: Optional[Notifier] = None,
        locks: Optional[ItemLocks] = None,
    ):
        self.scheduler = scheduler or shared_scheduler
        self.session_factory = session_factory or AsyncSessionLocal
        self.scraper = scraper or scrape_service
        self.notifier = notifier or default_notifier
        self.locks = locks or item_locks
        self._jobs: dict[int, object] = {}
        self._registry_lock = threading.Lock()

    @staticmethod
    def _job_id(item_id: int) -> str:
        return f"track-item-{item_id}"

    def _remove_entry(self, item_id: int) -> bool:
        """Remove a scheduled entry. Caller holds the registry lock."""
        job = self._jobs.pop(item_id, None)
        if job is None:
            return False
        with suppress(JobLookupError):
            job.remove()
        return True

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def schedule_item(self, item: TrackedItem) -> None:
        """Install (or replace) the recurring check for an item."""
        cron = interval_to_cron(item.check_interval_minutes)
        trigger = parse_cron(cron, jitter=settings.tracking_jitter_seconds or None)

        with self._registry_lock:
            self._remove_entry(item.id)
            self._jobs[item.id] = self.scheduler.add_job(
                self.check_item_price,
                trigger,
                args=[item.id],
                id=self._job_id(item.id),
                name=f"Price check for item {item.id}",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=settings.misfire_grace_seconds,
            )
            tracked_items.set(len(self._jobs))

        logger.info(
            f"Scheduled price tracking for item {item.id} "
            f"every {item.check_interval_minutes} minutes ({cron})"
        )

    def unschedule_item(self, item_id: int) -> None:
        with self._registry_lock:
            removed = self._remove_entry(item_id)
            tracked_items.set(len(self._jobs))
        if removed:
            logger.info(f"Stopped price tracking for item {item_id}")

    def is_scheduled(self, item_id: int) -> bool:
        with self._registry_lock:
            return item_id in self._jobs

    def scheduled_item_ids(self) -> list[int]:
        with self._registry_lock:
            return sorted(self._jobs)

    async def initialize(self) -> int:
        """Schedule every persisted item. Returns the number scheduled."""
        async with self.session_factory() as db:
            items = await repository.list_items(db)
        for item in items:
            self.schedule_item(item)
        logger.info(f"Initialized price tracking for {len(items)} items")
        return len(items)

    def stop_all(self) -> None:
        with self._registry_lock:
            for item_id in list(self._jobs):
                self._remove_entry(item_id)
            tracked_items.set(0)
        logger.info("Stopped all price tracking")

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    async def _scrape_and_record(self, item_id: int) -> Optional[PriceCheckResult]:
        """
        Scrape an item and persist the observation. Caller holds the item lock.

        Returns None when the item does not exist (or was deleted while the
        page was loading).

        Raises:
            ScrapeError: The page yielded no price
        """
        log = get_logger(__name__, item_id=item_id)

        async with self.session_factory() as db:
            item = await repository.get_item(db, item_id)
            if item is None:
                log.debug(f"Item {item_id} no longer exists, skipping check")
                return None
            url = item.url

        scraped = await self.scraper.scrape_product(url)
        if scraped is None:
            raise ScrapeError(f"Could not scrape price for item {item_id}")

        async with self.session_factory() as db:
            item = await repository.get_item(db, item_id)
            if item is None:
                log.info(f"Item {item_id} was deleted during fetch, discarding result")
                return None

            now = datetime.utcnow()
            previous = item.current_price if item.current_price is not None else scraped.price
            change = compute_change(previous, scraped.price)

            await repository.append_price_history(db, item.id, scraped.price, now)
            item.previous_price = previous
            item.current_price = scraped.price
            item.price_change_percent = change if previous else None
            item.last_checked_at = now
            if scraped.category:
                item.category = scraped.category
            if scraped.image_url:
                item.image_url = scraped.image_url

            name, threshold, item_url, image_url = (
                item.name, item.price_alert_threshold, item.url, item.image_url
            )
            await db.commit()

        if change < 0:
            price_changes_total.labels(direction="down").inc()
        elif change > 0:
            price_changes_total.labels(direction="up").inc()

        log.info(
            f"Item {item_id} ({name}): {previous} -> {scraped.price} "
            f"({change / 100:+.2f}%)"
        )

        alert = evaluate_alert(
            item_id, name, previous, scraped.price, threshold,
            url=item_url, image_url=image_url,
        )
        return PriceCheckResult(
            item_id=item_id,
            previous_price=previous,
            current_price=scraped.price,
            price_change_percent=change if previous else None,
            checked_at=now,
            alert=alert,
        )

    async def check_item_price(self, item_id: int) -> Optional[PriceCheckResult]:
        """
        Scheduled tick for one item. Never raises.

        Returns:
            The check result, or None when the item is gone or the scrape failed
        """
        try:
            async with self.locks.get(item_id):
                result = await self._scrape_and_record(item_id)
            if result is not None and result.alert is not None:
                await self.notifier.send_price_alert(result.alert)
            return result
        except ScrapeError as e:
            logger.warning(f"Skipping price update: {e}")
        except Exception as e:
            logger.error(f"Price check for item {item_id} failed: {e}", exc_info=True)
        return None

    async def check_all_items(self) -> dict:
        """Run a tick for every persisted item, one after another."""
        async with self.session_factory() as db:
            item_ids = await repository.list_item_ids(db)

        checked = 0
        for item_id in item_ids:
            if await self.check_item_price(item_id) is not None:
                checked += 1
        return {"total": len(item_ids), "checked": checked, "failed": len(item_ids) - checked}

    async def request_price_check(self, item_id: int) -> PriceCheckResult:
        """
        Manual price check, rate limited per item.

        Raises:
            NotFoundError: Unknown item
            RateLimitError: Last check was too recent
            ScrapeError: The page yielded no price
        """
        cooldown = settings.manual_check_cooldown_minutes

        async with self.locks.get(item_id):
            async with self.session_factory() as db:
                item = await repository.get_item(db, item_id)
                if item is None:
                    raise NotFoundError("Product not found")
                last_checked_at = item.last_checked_at

            if last_checked_at is not None:
                elapsed = (datetime.utcnow() - last_checked_at).total_seconds() / 60
                if elapsed < cooldown:
                    wait = math.ceil(cooldown - elapsed)
                    manual_checks_total.labels(status="rate_limited").inc()
                    raise RateLimitError(
                        f"Please wait {wait} more minutes before requesting another price check.",
                        retry_after_minutes=wait,
                    )

            try:
                result = await self._scrape_and_record(item_id)
            except ScrapeError as e:
                manual_checks_total.labels(status="failed").inc()
                raise ScrapeError("Failed to check product price. Please try again later.") from e

        if result is None:
            raise NotFoundError("Product not found")

        manual_checks_total.labels(status="success").inc()
        if result.alert is not None:
            await self.notifier.send_price_alert(result.alert)
        return result


tracking_scheduler = TrackingScheduler()
