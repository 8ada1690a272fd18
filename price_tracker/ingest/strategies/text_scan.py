"""Whole-page visible text scan."""

from __future__ import annotations

from selectolax.parser import HTMLParser

from price_tracker.ingest.strategies.base import (
    PriceCandidate,
    PriceStrategy,
    candidates_from_text,
    node_text,
)


class TextScanStrategy(PriceStrategy):
    name = "text_scan"

    def find_candidates(self, tree: HTMLParser) -> list[PriceCandidate]:
        root = tree.body
        if root is None:
            return []
        for node in root.css("script, style, noscript, del, s, strike"):
            node.decompose()
        return candidates_from_text(node_text(root), source=self.name)
