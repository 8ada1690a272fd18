"""Designated price container with structured attributes."""

from __future__ import annotations

from selectolax.parser import HTMLParser

from price_tracker.ingest.price_parser import parse_price
from price_tracker.ingest.strategies.base import (
    PriceCandidate,
    PriceStrategy,
    candidates_from_text,
    node_text,
)


class StructuredPriceStrategy(PriceStrategy):
    """Read the product price container, preferring machine-readable attributes."""

    name = "structured"
    selectors = ("#product_price", '[itemprop="price"]')
    attributes = ("data-price", "content", "data-default-price")

    def find_candidates(self, tree: HTMLParser) -> list[PriceCandidate]:
        candidates: list[PriceCandidate] = []
        for selector in self.selectors:
            for node in tree.css(selector):
                attrs = node.attributes
                found = False
                for attr in self.attributes:
                    raw = attrs.get(attr)
                    value = parse_price(raw)
                    if value is not None:
                        candidates.append(PriceCandidate(raw, value, source=self.name))
                        found = True
                        break
                if found:
                    continue

                text = node_text(node)
                from_text = candidates_from_text(text, source=self.name)
                if from_text:
                    candidates.extend(from_text)
                    continue
                value = parse_price(text)
                if value is not None:
                    candidates.append(PriceCandidate(text, value, source=self.name))
            if candidates:
                break
        return candidates
