"""Price change computation and drop alert evaluation."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

logger = logging.getLogger(__name__)

BASIS_POINTS = 10000


@dataclass
class PriceAlert:
    """A price drop that crossed the item's alert threshold."""

    product_id: int
    product_name: str
    old_price: int
    new_price: int
    drop_percent: int  # basis points, always positive
    url: Optional[str] = None
    image_url: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_payload(self) -> dict:
        """Wire shape used by live subscribers."""
        return {
            "productId": self.product_id,
            "productName": self.product_name,
            "oldPrice": self.old_price,
            "newPrice": self.new_price,
            "dropPercent": self.drop_percent,
        }


def compute_change(previous: Optional[int], current: int) -> int:
    """
    Signed change from previous to current in basis points.

    -1050 means a 10.50% drop. Returns 0 when there is no usable previous
    price (None or zero).
    """
    if not previous:
        return 0
    ratio = Decimal(current - previous) / Decimal(previous) * BASIS_POINTS
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def should_alert(change_bp: int, threshold_percent: int) -> bool:
    """A drop alerts when its magnitude reaches the threshold (inclusive)."""
    if change_bp >= 0:
        return False
    return abs(change_bp) >= threshold_percent * 100


def evaluate_alert(
    item_id: int,
    name: str,
    previous: Optional[int],
    current: int,
    threshold_percent: int,
    url: Optional[str] = None,
    image_url: Optional[str] = None,
) -> Optional[PriceAlert]:
    """Build a PriceAlert when the move from previous to current is an alerting drop."""
    if previous is None:
        return None
    change = compute_change(previous, current)
    if not should_alert(change, threshold_percent):
        return None
    logger.info(
        f"Price drop on item {item_id}: {previous} -> {current} "
        f"({change / 100:.2f}%, threshold {threshold_percent}%)"
    )
    return PriceAlert(
        product_id=item_id,
        product_name=name,
        old_price=previous,
        new_price=current,
        drop_percent=abs(change),
        url=url,
        image_url=image_url,
    )
