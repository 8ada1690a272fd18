"""Tests for the browser pool and the scrape service."""

import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from price_tracker.config import settings
from price_tracker.ingest.browser_pool import BrowserPool, FetchedPage, PageLoadError
from price_tracker.ingest.scraper import ScrapedInfo, ScrapeService

PRODUCT_URL = "https://morele.net/laptop-lenovo-ideapad-5-10751839/"
PRODUCT_HTML = """
<html><body>
  <h1>Laptop Lenovo IdeaPad 5</h1>
  <div id="product_price" data-price="3499.00">3 499,00 zł</div>
</body></html>
"""


class FakePage:
    def __init__(self, goto_error=None, gate=None, tracker=None):
        self.goto_error = goto_error
        self.gate = gate
        self.tracker = tracker
        self.url = ""
        self.closed = False

    async def goto(self, url, wait_until=None, timeout=None):
        if self.tracker is not None:
            self.tracker["open"] += 1
            self.tracker["peak"] = max(self.tracker["peak"], self.tracker["open"])
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.goto_error is not None:
                raise self.goto_error
            self.url = url + "?ref=1"
        finally:
            if self.tracker is not None:
                self.tracker["open"] -= 1

    async def content(self):
        return PRODUCT_HTML

    async def close(self):
        self.closed = True


class FakeContext:
    def __init__(self, page_factory):
        self.page_factory = page_factory
        self.pages = []

    async def new_page(self):
        page = self.page_factory()
        self.pages.append(page)
        return page


@pytest.fixture(autouse=True)
def no_settle_delay(monkeypatch):
    monkeypatch.setattr(settings, "page_settle_delay_seconds", 0)


def make_pool(monkeypatch, page_factory, max_concurrency=1):
    pool = BrowserPool(max_concurrency=max_concurrency)
    context = FakeContext(page_factory)

    async def ensure_context():
        return context

    monkeypatch.setattr(pool, "_ensure_context", ensure_context)
    return pool, context


@pytest.mark.asyncio
async def test_fetch_returns_html_and_final_url(monkeypatch):
    pool, context = make_pool(monkeypatch, FakePage)

    fetched = await pool.fetch(PRODUCT_URL)

    assert fetched == FetchedPage(
        request_url=PRODUCT_URL, final_url=PRODUCT_URL + "?ref=1", html=PRODUCT_HTML
    )
    assert context.pages[0].closed


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, reason",
    [
        (PlaywrightTimeoutError("Timeout 30000ms exceeded"), "Navigation timeout"),
        (PlaywrightError("net::ERR_NAME_NOT_RESOLVED"), "net::ERR_NAME_NOT_RESOLVED"),
    ],
)
async def test_failed_navigation_releases_page_and_slot(monkeypatch, error, reason):
    pages = iter([FakePage(goto_error=error), FakePage()])
    pool, context = make_pool(monkeypatch, lambda: next(pages), max_concurrency=1)

    with pytest.raises(PageLoadError) as exc_info:
        await pool.fetch(PRODUCT_URL)

    assert exc_info.value.reason == reason
    assert context.pages[0].closed
    # The single slot is free again
    fetched = await asyncio.wait_for(pool.fetch(PRODUCT_URL), timeout=1)
    assert fetched.html == PRODUCT_HTML


@pytest.mark.asyncio
async def test_error_inside_acquire_closes_page(monkeypatch):
    pool, context = make_pool(monkeypatch, FakePage)

    with pytest.raises(RuntimeError):
        async with pool.acquire():
            raise RuntimeError("extraction blew up")

    assert context.pages[0].closed
    assert not pool._semaphore.locked()


@pytest.mark.asyncio
async def test_concurrent_renders_are_bounded(monkeypatch):
    gate = asyncio.Event()
    counts = {"open": 0, "peak": 0}
    pool, _ = make_pool(
        monkeypatch, lambda: FakePage(gate=gate, tracker=counts), max_concurrency=2
    )

    tasks = [asyncio.create_task(pool.fetch(f"{PRODUCT_URL}?n={n}")) for n in range(5)]
    await asyncio.sleep(0.01)
    assert counts["open"] == 2

    gate.set()
    await asyncio.gather(*tasks)
    assert counts["peak"] == 2


class StubPool:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error

    async def fetch(self, url):
        if self.error is not None:
            raise self.error
        return self.result

    async def close(self):
        pass


@pytest.mark.asyncio
async def test_scrape_product_returns_info():
    pool = StubPool(FetchedPage(PRODUCT_URL, PRODUCT_URL, PRODUCT_HTML))

    info = await ScrapeService(pool=pool).scrape_product(PRODUCT_URL)

    assert info == ScrapedInfo(
        name="Laptop Lenovo IdeaPad 5",
        price=349900,
        url=PRODUCT_URL,
        product_code="10751839",
    )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        PageLoadError(PRODUCT_URL, "Navigation timeout"),
        PlaywrightError("Target page, context or browser has been closed"),
        asyncio.TimeoutError(),
    ],
)
async def test_scrape_product_load_errors_return_none(error):
    service = ScrapeService(pool=StubPool(error=error))
    assert await service.scrape_product(PRODUCT_URL) is None


@pytest.mark.asyncio
async def test_scrape_product_without_price_returns_none():
    html = "<html><body><h1>Laptop</h1><p>Produkt niedostępny</p></body></html>"
    service = ScrapeService(pool=StubPool(FetchedPage(PRODUCT_URL, PRODUCT_URL, html)))

    assert await service.scrape_product(PRODUCT_URL) is None
