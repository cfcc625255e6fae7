from __future__ import annotations

import pytest

from medroute.lifecycle.alert_manager import LifecycleEvent
from medroute.live import LiveUpdateHub
from medroute.utils.notifications import NotificationService, SmsNotification, normalize_phone_number


@pytest.mark.parametrize(
    "raw,expected",
    [("+1-555-0199", "+15550199"), ("+91 (98765) 43210", "+919876543210"), ("98765 43210", "+9876543210"), ("", "")],
)
def test_normalize_phone_number(raw, expected):
    assert normalize_phone_number(raw) == expected


class FakeMessages:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def create(self, **kwargs):
        if self.fail:
            raise RuntimeError("twilio down")
        self.sent.append(kwargs)


class FakeClient:
    def __init__(self, fail=False):
        self.messages = FakeMessages(fail)


async def test_sms_goes_to_normalized_number():
    client = FakeClient()
    service = NotificationService(client=client)

    delivered = await service.send_sms(SmsNotification(to="+91 98765 43210", body="Incoming Pre-Alert"))

    assert delivered is True
    assert client.messages.sent[0]["to"] == "+919876543210"
    assert client.messages.sent[0]["body"] == "Incoming Pre-Alert"


async def test_delivery_failure_is_not_raised():
    service = NotificationService(client=FakeClient(fail=True))
    assert await service.send_sms(SmsNotification(to="+15550199", body="x")) is False


class FakeSocketServer:
    def __init__(self):
        self.emitted = []

    async def emit(self, event, payload):
        self.emitted.append((event, payload))


class FakeWebSocket:
    def __init__(self, broken=False):
        self.broken = broken
        self.received = []

    async def accept(self):
        return None

    async def send_json(self, message):
        if self.broken:
            raise RuntimeError("closed")
        self.received.append(message)


async def test_hub_fans_out_and_drops_dead_sockets():
    server = FakeSocketServer()
    hub = LiveUpdateHub(server)
    alive, dead = FakeWebSocket(), FakeWebSocket(broken=True)
    await hub.connect(alive)
    await hub.connect(dead)

    await hub.publish(LifecycleEvent("inflow_synced", {"hospitalId": "h1", "inflowActive": 2}))

    assert alive.received == [{"event": "inflow_synced", "payload": {"hospitalId": "h1", "inflowActive": 2}}]
    assert dead not in hub.websockets
    assert server.emitted == [("inflow_synced", {"hospitalId": "h1", "inflowActive": 2})]
