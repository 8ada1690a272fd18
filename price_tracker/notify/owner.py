"""Owner notification through a Discord-compatible webhook."""

import logging
from datetime import datetime
from typing import Optional

import httpx

from price_tracker.config import settings
from price_tracker.detect.change import PriceAlert
from price_tracker.ingest.price_parser import format_price

logger = logging.getLogger(__name__)


class OwnerNotifier:
    """Sends price drop messages to the owner's webhook."""

    def __init__(self, webhook_url: Optional[str] = None):
        self.webhook_url = settings.owner_webhook_url if webhook_url is None else webhook_url
        self._http_client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=30.0)
        return self._http_client

    async def close(self):
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    @staticmethod
    def build_payload(alert: PriceAlert) -> dict:
        drop = alert.drop_percent / 100
        embed = {
            "title": f"Price Drop Alert: {alert.product_name}",
            "description": (
                f"Price dropped by {drop:.2f}% from "
                f"{format_price(alert.old_price)} to {format_price(alert.new_price)}"
            ),
            "color": 0x00FF00,
            "fields": [
                {"name": "Now", "value": format_price(alert.new_price), "inline": True},
                {"name": "Was", "value": format_price(alert.old_price), "inline": True},
                {"name": "Drop", "value": f"{drop:.2f}%", "inline": True},
            ],
            "timestamp": alert.timestamp.isoformat(),
        }
        if alert.url:
            embed["url"] = alert.url
        if alert.image_url:
            embed["thumbnail"] = {"url": alert.image_url}
        return {"embeds": [embed], "username": settings.owner_webhook_username}

    async def send_price_alert(self, alert: PriceAlert) -> bool:
        """
        Post a price drop message.

        Returns:
            False when no webhook is configured

        Raises:
            httpx.HTTPError: Delivery failed
        """
        if not self.webhook_url:
            logger.info(
                f"Owner webhook not configured, skipping alert for item {alert.product_id}"
            )
            return False

        client = await self._get_client()
        response = await client.post(self.webhook_url, json=self.build_payload(alert))
        response.raise_for_status()
        logger.info(
            f"Sent owner alert for item {alert.product_id} at {datetime.utcnow().isoformat()}"
        )
        return True


owner_notifier = OwnerNotifier()
