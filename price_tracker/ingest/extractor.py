"""Product page extraction: name, price, product code, category and image."""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence
from urllib.parse import urljoin

from selectolax.parser import HTMLParser

from price_tracker.config import settings
from price_tracker.ingest.price_parser import extract_product_code, parse_price
from price_tracker.ingest.strategies import DEFAULT_STRATEGIES, PriceStrategy

logger = logging.getLogger(__name__)

BREADCRUMB_SELECTOR = ".breadcrumb a, .main-breadcrumb a, [class*=\"breadcrumb\"] a"
CATEGORY_PATH = "/kategoria/"

IMAGE_ALT_SELECTORS = (
    'img[alt*="zdjęcie produktu"]',
    'img[alt*="product image"]',
    'img[itemprop="image"]',
)
IMAGE_CLASS_SELECTORS = (
    '[class*="gallery"] img',
    '[class*="product-image"] img',
    'img[class*="product-image"]',
    '[class*="photo"] img',
)


@dataclass
class ExtractedPage:
    """Everything read from one product page."""

    name: Optional[str] = None
    price_text: Optional[str] = None
    price: Optional[int] = None
    product_code: Optional[str] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    strategy: Optional[str] = None


class PriceExtractor:
    """Extracts product data from rendered HTML using ordered price strategies."""

    def __init__(self, strategies: Optional[Sequence[PriceStrategy]] = None):
        self.strategies = tuple(strategies) if strategies is not None else DEFAULT_STRATEGIES

    def extract(
        self, html: str, url: str, request_url: Optional[str] = None
    ) -> ExtractedPage:
        """
        Extract product data from a page.

        Args:
            html: Rendered page HTML
            url: Final URL after redirects
            request_url: URL originally requested, used as a product code fallback

        Returns:
            ExtractedPage; price is None when no strategy found a usable value
        """
        tree = HTMLParser(html)
        page = ExtractedPage(
            name=self.extract_name(tree),
            product_code=extract_product_code(url) or extract_product_code(request_url),
            category=self.extract_category(tree),
            image_url=self.extract_image(tree, url),
        )

        for strategy in self.strategies:
            candidate = strategy.extract(tree)
            if candidate is None:
                continue
            page.price_text = candidate.text
            page.price = parse_price(candidate.text)
            page.strategy = strategy.name
            logger.debug(
                f"Price {candidate.text!r} found by {strategy.name} strategy on {url}"
            )
            break

        return page

    @staticmethod
    def extract_name(tree: HTMLParser) -> Optional[str]:
        h1 = tree.css_first("h1")
        if h1 is not None:
            name = h1.text(separator=" ", strip=True)
            if name:
                return name
        title = tree.css_first("title")
        if title is not None:
            name = title.text(strip=True).split(" - ")[0].strip()
            if name:
                return name
        return None

    @staticmethod
    def extract_category(tree: HTMLParser) -> Optional[str]:
        """
        Pick the most specific category from the breadcrumb trail.

        Walks the trail from the end and takes the first link to a category
        listing that is not a filtered view (no "," or "?" in the href). Falls
        back to any category link when all of them are filtered.
        """
        links = tree.css(BREADCRUMB_SELECTOR)
        fallback = None
        for link in reversed(links):
            href = link.attributes.get("href") or ""
            if CATEGORY_PATH not in href:
                continue
            text = link.text(separator=" ", strip=True)
            if not text:
                continue
            if "," not in href and "?" not in href:
                return text
            if fallback is None:
                fallback = text
        return fallback

    @staticmethod
    def extract_image(tree: HTMLParser, page_url: str) -> Optional[str]:
        candidates = []
        for selector in IMAGE_ALT_SELECTORS + IMAGE_CLASS_SELECTORS:
            candidates.extend(tree.css(selector))
        candidates.extend(
            img for img in tree.css("img")
            if settings.store_domain in (img.attributes.get("src") or "")
        )

        for img in candidates:
            attrs = img.attributes
            src = attrs.get("data-src") or attrs.get("src")
            if src and not src.startswith("data:"):
                return urljoin(page_url, src)
        return None


extractor = PriceExtractor()
