"""Fan a price alert out to the live broadcast and the owner."""

import asyncio
import logging
from typing import Optional

from price_tracker.detect.change import PriceAlert
from price_tracker.metrics import notifications_sent_total, price_alerts_total
from price_tracker.notify.broadcaster import ConnectionHub, hub
from price_tracker.notify.owner import OwnerNotifier, owner_notifier

logger = logging.getLogger(__name__)


class Notifier:
    """Delivers alerts on every channel; one failing channel never blocks another."""

    def __init__(
        self,
        connection_hub: Optional[ConnectionHub] = None,
        owner: Optional[OwnerNotifier] = None,
    ):
        self.hub = connection_hub or hub
        self.owner = owner or owner_notifier

    async def send_price_alert(self, alert: PriceAlert) -> dict[str, bool]:
        """
        Send an alert to all channels.

        Returns:
            Channel name -> whether delivery succeeded
        """
        price_alerts_total.inc()
        channels = ("broadcast", "owner")
        results = await asyncio.gather(
            self.hub.broadcast_price_alert(alert),
            self.owner.send_price_alert(alert),
            return_exceptions=True,
        )

        outcome = {}
        for channel, result in zip(channels, results):
            if isinstance(result, BaseException):
                logger.error(
                    f"Failed to deliver {channel} alert for item {alert.product_id}: {result}"
                )
                notifications_sent_total.labels(channel=channel, status="error").inc()
                outcome[channel] = False
            else:
                status = "skipped" if result is False else "sent"
                notifications_sent_total.labels(channel=channel, status=status).inc()
                outcome[channel] = result is not False
        return outcome

    async def close(self):
        await self.owner.close()


notifier = Notifier()
