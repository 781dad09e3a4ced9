"""
Pickup change notifier tests.
"""

import asyncio
import json
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pickup_backend.app.main import app
from pickup_backend.app.api.v1.endpoints.driver_pickups import pickup_stream
from pickup_backend.app.services.pickup_notifier import PickupChangeNotifier, pickup_notifier


class FakeWebSocket:
    def __init__(self, broken=False):
        self.accepted = False
        self.sent = []
        self.broken = broken

    async def accept(self):
        self.accepted = True

    async def send_text(self, message):
        if self.broken:
            raise RuntimeError("connection closed")
        self.sent.append(json.loads(message))


@pytest.mark.asyncio
async def test_publish_reaches_only_the_tenant():
    notifier = PickupChangeNotifier()
    mine, theirs = FakeWebSocket(), FakeWebSocket()
    await notifier.connect(1, mine)
    await notifier.connect(2, theirs)

    delivered = await notifier.publish(1, "pickup.self_assigned", {"pickup_order_id": 7})

    assert delivered == 1
    assert mine.accepted
    assert mine.sent == [{"type": "pickup.self_assigned", "data": {"pickup_order_id": 7}}]
    assert theirs.sent == []


@pytest.mark.asyncio
async def test_broken_connection_is_dropped():
    notifier = PickupChangeNotifier()
    healthy, broken = FakeWebSocket(), FakeWebSocket(broken=True)
    await notifier.connect(1, healthy)
    await notifier.connect(1, broken)

    delivered = await notifier.publish(1, "pickup.canceled", {"pickup_order_id": 3})

    assert delivered == 1
    assert notifier.client_count(1) == 1


@pytest.mark.asyncio
async def test_disconnect_and_publish_without_clients():
    notifier = PickupChangeNotifier()
    ws = FakeWebSocket()
    await notifier.connect(5, ws)
    await notifier.disconnect(5, ws)

    assert notifier.client_count(5) == 0
    assert await notifier.publish(5, "pickup.started", {}) == 0


class SlowWebSocket(FakeWebSocket):
    """Blocks inside send_text until released."""

    def __init__(self):
        super().__init__()
        self.sending = asyncio.Event()
        self.release = asyncio.Event()

    async def send_text(self, message):
        self.sending.set()
        await self.release.wait()
        await super().send_text(message)


@pytest.mark.asyncio
async def test_slow_client_does_not_block_connect():
    notifier = PickupChangeNotifier()
    slow = SlowWebSocket()
    await notifier.connect(1, slow)

    publishing = asyncio.create_task(notifier.publish(1, "pickup.started", {"pickup_order_id": 2}))
    await slow.sending.wait()

    late = FakeWebSocket()
    await asyncio.wait_for(notifier.connect(1, late), timeout=1)
    assert notifier.client_count(1) == 2

    slow.release.set()
    assert await publishing == 1
    assert late.sent == []


def test_stream_rejects_invalid_token():
    client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/v1/driver/pickups/stream?token=not-a-jwt") as ws:
            ws.receive_text()
    assert exc_info.value.code == 1008


class SessionTracker:
    """Session factory that remembers every session it hands out."""

    def __init__(self, bind):
        self.factory = async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)
        self.sessions = []

    def __call__(self):
        session = self.factory()
        self.sessions.append(session)
        return session

    def open_transactions(self):
        return [s for s in self.sessions if s.in_transaction()]


class HeartbeatSocket(FakeWebSocket):
    """Sends one ping, checks the database state, then hangs up."""

    def __init__(self, tracker):
        super().__init__()
        self.tracker = tracker
        self.received = 0
        self.open_while_streaming = None
        self.replies = []

    async def receive_text(self):
        self.received += 1
        if self.received == 1:
            self.open_while_streaming = len(self.tracker.open_transactions())
            return "ping"
        raise WebSocketDisconnect(code=1000)

    async def send_text(self, message):
        self.replies.append(message)

    async def close(self, code=1000):
        self.closed_with = code


@pytest.mark.asyncio
async def test_stream_holds_no_transaction_while_connected(db_session, driver_a, token_a):
    tracker = SessionTracker(db_session.bind)
    ws = HeartbeatSocket(tracker)

    await pickup_stream(ws, token=token_a, session_factory=tracker)

    assert len(tracker.sessions) == 1
    assert ws.open_while_streaming == 0
    assert ws.replies == ["pong"]
    assert pickup_notifier.client_count(driver_a.tenant_id) == 0
