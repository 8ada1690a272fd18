"""Per-item asyncio locks serializing scrape, compare and persist."""

import asyncio
from collections import defaultdict


class ItemLocks:
    """Lazily created lock per tracked item."""

    def __init__(self):
        self._locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    def get(self, item_id: int) -> asyncio.Lock:
        return self._locks[item_id]

    def discard(self, item_id: int) -> None:
        lock = self._locks.get(item_id)
        if lock is not None and not lock.locked():
            del self._locks[item_id]


item_locks = ItemLocks()
