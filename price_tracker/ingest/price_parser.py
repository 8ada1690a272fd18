"""Price normalization and store URL helpers."""

import logging
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional
from urllib.parse import urlparse

from price_tracker.config import settings

logger = logging.getLogger(__name__)

_NON_NUMERIC_RE = re.compile(r"[^\d,.\-]")
_TRAILING_CODE_RE = re.compile(r"(\d+)$")
_DOT_THOUSANDS_RE = re.compile(r"^-?\d{1,3}\.\d{3}$")
_CATEGORY_PATH = "/kategoria/"


def _normalize_separators(raw: str) -> str:
    """Turn a localized number into a plain decimal string.

    The right-most separator is the decimal point when both kinds appear.
    A separator repeated more than once is a thousands separator, and so is
    a lone dot followed by exactly three digits ("1.299").
    """
    if "," in raw and "." in raw:
        if raw.rfind(",") > raw.rfind("."):
            return raw.replace(".", "").replace(",", ".")
        return raw.replace(",", "")
    for sep in (",", "."):
        if raw.count(sep) > 1:
            return raw.replace(sep, "")
    if _DOT_THOUSANDS_RE.match(raw):
        return raw.replace(".", "")
    return raw.replace(",", ".")


def parse_price(
    text: Optional[str],
    min_cents: Optional[int] = None,
    max_cents: Optional[int] = None,
) -> Optional[int]:
    """
    Parse a price string into integer minor units.

    "549 zł" -> 54900, "549,99 zł" -> 54999, "1 299,00 zł" -> 129900.

    Args:
        text: Raw price text, may contain currency symbols and qualifiers
        min_cents: Lower bound (defaults to settings.price_min_cents)
        max_cents: Upper bound (defaults to settings.price_max_cents)

    Returns:
        Price in minor units, or None when the text is not a plausible price
    """
    if not text:
        return None

    cleaned = _NON_NUMERIC_RE.sub("", text)
    if not cleaned:
        return None

    try:
        value = Decimal(_normalize_separators(cleaned))
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None

    cents = int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    lower = settings.price_min_cents if min_cents is None else min_cents
    upper = settings.price_max_cents if max_cents is None else max_cents
    if cents < lower or cents > upper:
        logger.debug(f"Rejected price {cents} outside [{lower}, {upper}]: {text!r}")
        return None
    return cents


def extract_product_code(url: Optional[str]) -> Optional[str]:
    """
    Extract the numeric product code from a product URL.

    Takes the trailing number of the last path segment, e.g.
    ".../laptop-xyz-10751839.html" -> "10751839" and ".../foo-1792417/" -> "1792417".
    Category listings and paths without a trailing number give None.
    """
    if not url:
        return None
    path = urlparse(url).path or url
    if _CATEGORY_PATH in path:
        return None

    segments = [segment for segment in path.split("/") if segment]
    if not segments:
        return None
    last = segments[-1]
    if last.endswith(".html"):
        last = last[: -len(".html")]

    match = _TRAILING_CODE_RE.search(last)
    return match.group(1) if match else None


def build_product_url(product_code: str) -> str:
    """Build the store URL for a bare product code."""
    return settings.product_url_template.format(code=product_code)


def is_valid_url(value: Optional[str]) -> bool:
    """True for absolute http(s) URLs with a host."""
    if not value:
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def format_price(cents: Optional[int]) -> str:
    """Render minor units for humans: 129900 -> '1299.00 zł'."""
    if cents is None:
        return "-"
    return f"{Decimal(cents) / 100:.2f} {settings.price_currency}"
