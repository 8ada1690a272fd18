"""Tests for alert delivery."""

import json

import httpx
import pytest

from price_tracker.detect.change import PriceAlert
from price_tracker.notify.broadcaster import ConnectionHub
from price_tracker.notify.notifier import Notifier
from price_tracker.notify.owner import OwnerNotifier


def make_alert() -> PriceAlert:
    return PriceAlert(
        product_id=1,
        product_name="Laptop Lenovo IdeaPad 5",
        old_price=349900,
        new_price=299900,
        drop_percent=1429,
        url="https://morele.net/laptop-lenovo-ideapad-5-10751839/",
    )


class FakeSocket:
    def __init__(self, fail=False):
        self.fail = fail
        self.accepted = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.fail and self.accepted and self.sent:
            raise RuntimeError("connection closed")
        self.sent.append(message)


class StubHub:
    def __init__(self, error=None):
        self.error = error
        self.alerts = []

    async def broadcast_price_alert(self, alert):
        if self.error:
            raise self.error
        self.alerts.append(alert)
        return 1


class StubOwner:
    def __init__(self, error=None):
        self.error = error
        self.alerts = []

    async def send_price_alert(self, alert):
        if self.error:
            raise self.error
        self.alerts.append(alert)
        return True

    async def close(self):
        pass


@pytest.mark.asyncio
async def test_hub_greets_and_broadcasts():
    hub = ConnectionHub()
    socket = FakeSocket()
    await hub.connect(socket)

    delivered = await hub.broadcast_price_alert(make_alert())

    assert delivered == 1
    assert socket.sent[0] == {"type": "connected", "message": "Connected to notification server"}
    message = socket.sent[1]
    assert message["type"] == "price_alert"
    assert message["data"]["productId"] == 1
    assert message["data"]["dropPercent"] == 1429
    assert "timestamp" in message


@pytest.mark.asyncio
async def test_hub_drops_failing_clients():
    hub = ConnectionHub()
    healthy, broken = FakeSocket(), FakeSocket(fail=True)
    await hub.connect(healthy)
    await hub.connect(broken)

    assert await hub.broadcast({"type": "ping"}) == 1
    assert hub.connection_count == 1


@pytest.mark.asyncio
async def test_owner_failure_does_not_block_broadcast():
    hub = StubHub()
    owner = StubOwner(error=httpx.ConnectError("unreachable"))

    outcome = await Notifier(connection_hub=hub, owner=owner).send_price_alert(make_alert())

    assert outcome == {"broadcast": True, "owner": False}
    assert len(hub.alerts) == 1


@pytest.mark.asyncio
async def test_broadcast_failure_does_not_block_owner():
    hub = StubHub(error=RuntimeError("socket error"))
    owner = StubOwner()

    outcome = await Notifier(connection_hub=hub, owner=owner).send_price_alert(make_alert())

    assert outcome == {"broadcast": False, "owner": True}
    assert len(owner.alerts) == 1


@pytest.mark.asyncio
async def test_owner_without_webhook_skips():
    owner = OwnerNotifier(webhook_url="")
    assert await owner.send_price_alert(make_alert()) is False


@pytest.mark.asyncio
async def test_owner_posts_embed():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(json.loads(request.content))
        return httpx.Response(204)

    owner = OwnerNotifier(webhook_url="https://discord.example/webhook")
    owner._http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    assert await owner.send_price_alert(make_alert()) is True
    await owner.close()

    embed = requests[0]["embeds"][0]
    assert embed["title"] == "Price Drop Alert: Laptop Lenovo IdeaPad 5"
    assert "14.29%" in embed["description"]
    assert embed["url"].endswith("10751839/")


@pytest.mark.asyncio
async def test_owner_raises_on_http_error():
    owner = OwnerNotifier(webhook_url="https://discord.example/webhook")
    owner._http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(500))
    )

    with pytest.raises(httpx.HTTPStatusError):
        await owner.send_price_alert(make_alert())
    await owner.close()
