"""Price extraction strategy registry."""

from __future__ import annotations

from price_tracker.ingest.strategies.base import (
    PriceCandidate,
    PriceStrategy,
    candidates_from_text,
    select_best,
)
from price_tracker.ingest.strategies.structured import StructuredPriceStrategy
from price_tracker.ingest.strategies.price_class import PriceClassStrategy
from price_tracker.ingest.strategies.text_scan import TextScanStrategy
from price_tracker.ingest.strategies.leaf_element import LeafElementStrategy


# Tried in order; the first strategy that yields a candidate wins
DEFAULT_STRATEGIES: tuple[PriceStrategy, ...] = (
    StructuredPriceStrategy(),
    PriceClassStrategy(),
    TextScanStrategy(),
    LeafElementStrategy(),
)


__all__ = [
    "DEFAULT_STRATEGIES",
    "PriceCandidate",
    "PriceStrategy",
    "candidates_from_text",
    "select_best",
]
