"""Shared fixtures: in-memory database, scheduler and test doubles."""

from typing import Awaitable, Callable, Optional

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from price_tracker.db import repository
from price_tracker.db.models import Base, ScheduledJob, TrackedItem
from price_tracker.ingest.scraper import ScrapedInfo
from price_tracker.worker.item_locks import ItemLocks
from price_tracker.worker.tracker import TrackingScheduler


class FakeScraper:
    """Returns canned scrape results per URL."""

    def __init__(self):
        self.results: dict[str, Optional[ScrapedInfo]] = {}
        self.calls: list[str] = []
        self.on_scrape: Optional[Callable[[str], Awaitable[None]]] = None

    def set_price(self, url: str, price: Optional[int], name: str = "Test Product", **extra):
        if price is None:
            self.results[url] = None
        else:
            self.results[url] = ScrapedInfo(name=name, price=price, url=url, **extra)

    async def scrape_product(self, url: str) -> Optional[ScrapedInfo]:
        self.calls.append(url)
        if self.on_scrape is not None:
            await self.on_scrape(url)
        return self.results.get(url)

    async def close(self):
        pass


class FakeNotifier:
    def __init__(self):
        self.alerts = []

    async def send_price_alert(self, alert):
        self.alerts.append(alert)
        return {"broadcast": True, "owner": True}

    async def close(self):
        pass


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def scheduler():
    """Never started, so jobs stay pending and nothing fires."""
    return AsyncIOScheduler(timezone="UTC")


@pytest.fixture
def scraper():
    return FakeScraper()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def tracker(scheduler, session_factory, scraper, notifier):
    return TrackingScheduler(
        scheduler=scheduler,
        session_factory=session_factory,
        scraper=scraper,
        notifier=notifier,
        locks=ItemLocks(),
    )


@pytest.fixture
def create_item(session_factory):
    async def _create(**overrides) -> TrackedItem:
        fields = {
            "url": "https://morele.net/laptop-lenovo-ideapad-5-10751839/",
            "product_code": "10751839",
            "name": "Laptop Lenovo IdeaPad 5",
            "current_price": 100000,
            "previous_price": 100000,
            "price_change_percent": 0,
            "check_interval_minutes": 60,
            "price_alert_threshold": 10,
        }
        fields.update(overrides)
        async with session_factory() as db:
            item = await repository.create_item(db, **fields)
            await db.commit()
        return item

    return _create


@pytest.fixture
def create_job(session_factory):
    async def _create(**overrides) -> ScheduledJob:
        fields = {
            "name": "Nightly report",
            "job_type": "custom",
            "cron_expression": "0 0 3 * * *",
            "is_active": True,
        }
        fields.update(overrides)
        async with session_factory() as db:
            job = await repository.create_job(db, **fields)
            await db.commit()
        return job

    return _create
