"""Elements whose class or id looks like a price holder."""

from __future__ import annotations

from selectolax.parser import HTMLParser

from price_tracker.ingest.strategies.base import (
    PriceCandidate,
    PriceStrategy,
    candidates_from_text,
    is_old_price,
    node_text,
)

_MAX_CONTAINER_TEXT = 120


class PriceClassStrategy(PriceStrategy):
    name = "price_class"
    selectors = (
        '[class*="price"]',
        '[class*="cena"]',
        '[id*="price"]',
        "[data-price]",
    )

    def find_candidates(self, tree: HTMLParser) -> list[PriceCandidate]:
        candidates: list[PriceCandidate] = []
        for node in tree.css(", ".join(self.selectors)):
            if is_old_price(node):
                continue
            # Containers that wrap an old price are covered by their children
            if node.css_first("del, s, strike") is not None:
                continue
            text = node_text(node)
            if not text or len(text) > _MAX_CONTAINER_TEXT:
                continue
            candidates.extend(candidates_from_text(text, source=self.name))
        return candidates
