"""Short leaf elements that contain nothing but a price."""

from __future__ import annotations

from selectolax.parser import HTMLParser

from price_tracker.ingest.strategies.base import (
    PRICE_TOKEN_RE,
    PriceCandidate,
    PriceStrategy,
    candidates_from_text,
    is_old_price,
    node_text,
)

MAX_LEAF_TEXT = 20


class LeafElementStrategy(PriceStrategy):
    name = "leaf_element"

    def find_candidates(self, tree: HTMLParser) -> list[PriceCandidate]:
        candidates: list[PriceCandidate] = []
        for node in tree.css("span, div, p"):
            if next(node.iter(include_text=False), None) is not None:
                continue
            text = node_text(node)
            if not text or len(text) >= MAX_LEAF_TEXT:
                continue
            if not PRICE_TOKEN_RE.fullmatch(text) or is_old_price(node):
                continue
            candidates.extend(candidates_from_text(text, source=self.name))
        return candidates
