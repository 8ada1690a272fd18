"""Price extraction strategy base classes."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from selectolax.parser import HTMLParser, Node

from price_tracker.ingest.price_parser import parse_price

# Number followed by a currency marker, e.g. "549 zł", "1 299,99 zł", "49.90 PLN"
PRICE_TOKEN_RE = re.compile(
    r"(?<![\d.,])"
    r"(\d{1,3}(?:[ \u00a0.]\d{3})+(?:,\d{1,2})?|\d+(?:[.,]\d{1,2})?)"
    r"\s*(?:zł|zl|pln)\b\.?",
    re.IGNORECASE,
)

# "od 549 zł", "from 549", "ab 549", "starting at 549"
QUALIFIER_RE = re.compile(
    r"(?:\bod|\bfrom|\bab|\bstarting\s+(?:at|from))[\s:]*$",
    re.IGNORECASE,
)

_QUALIFIER_LOOKBEHIND = 24

STRIKETHROUGH_TAGS = {"del", "s", "strike"}
OLD_PRICE_MARKERS = ("old", "prev", "regular", "before")


@dataclass
class PriceCandidate:
    """A price found on the page."""

    text: str
    value: int
    qualified: bool = False
    source: Optional[str] = None


def candidates_from_text(text: str, source: Optional[str] = None) -> list[PriceCandidate]:
    """Find every "number + currency" token in text."""
    candidates = []
    for match in PRICE_TOKEN_RE.finditer(text):
        value = parse_price(match.group(0))
        if value is None:
            continue
        prefix = text[max(0, match.start() - _QUALIFIER_LOOKBEHIND):match.start()]
        candidates.append(
            PriceCandidate(
                text=match.group(0).strip(),
                value=value,
                qualified=bool(QUALIFIER_RE.search(prefix)),
                source=source,
            )
        )
    return candidates


def node_text(node: Node) -> str:
    return node.text(separator=" ", strip=True)


def is_old_price(node: Node, depth: int = 4) -> bool:
    """True when node sits inside struck-through or "old price" markup."""
    current = node
    for _ in range(depth):
        if current is None or current.tag in ("body", "html"):
            return False
        if current.tag in STRIKETHROUGH_TAGS:
            return True
        classes = (current.attributes.get("class") or "").lower()
        if any(marker in classes for marker in OLD_PRICE_MARKERS):
            return True
        current = current.parent
    return False


def select_best(candidates: list[PriceCandidate]) -> Optional[PriceCandidate]:
    """
    Pick one price out of several.

    The highest candidate without a "starting from" qualifier wins. When every
    candidate is qualified the highest one is taken anyway.
    """
    if not candidates:
        return None
    unqualified = [c for c in candidates if not c.qualified]
    pool = unqualified or candidates
    return max(pool, key=lambda c: c.value)


class PriceStrategy:
    """Base price extraction strategy."""

    name: str = "base"

    def find_candidates(self, tree: HTMLParser) -> list[PriceCandidate]:
        raise NotImplementedError

    def extract(self, tree: HTMLParser) -> Optional[PriceCandidate]:
        return select_best(self.find_candidates(tree))
