"""
Tests for the live dashboard broadcaster
"""

import asyncio
import json

import pytest

from app.api.ws import WebSocketManager


class FakeWebSocket:
    def __init__(self):
        self.accepted = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        self.sent.append(json.loads(text))


class BrokenWebSocket(FakeWebSocket):
    async def send_text(self, text):
        raise RuntimeError("connection reset")


class SlowWebSocket(FakeWebSocket):
    async def send_text(self, text):
        await asyncio.sleep(5)
        self.sent.append(json.loads(text))


@pytest.mark.asyncio
async def test_broadcast_reaches_every_listener_in_room():
    manager = WebSocketManager(send_timeout=0.5)
    first, second, other_room = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()
    await manager.connect(first, "IFTAR26")
    await manager.connect(second, "IFTAR26")
    await manager.connect(other_room, "OTHER")

    await manager.broadcast_to_event("IFTAR26", {"type": "checkin", "guest": {"id": 1}})

    assert first.accepted and second.accepted
    assert first.sent == [{"type": "checkin", "guest": {"id": 1}}]
    assert second.sent == [{"type": "checkin", "guest": {"id": 1}}]
    assert other_room.sent == []


@pytest.mark.asyncio
async def test_failed_and_slow_listeners_are_dropped():
    manager = WebSocketManager(send_timeout=0.05)
    healthy, broken, slow = FakeWebSocket(), BrokenWebSocket(), SlowWebSocket()
    for websocket in (healthy, broken, slow):
        await manager.connect(websocket, "IFTAR26")

    await manager.broadcast_to_event("IFTAR26", {"type": "checkin"})

    assert healthy.sent == [{"type": "checkin"}]
    assert manager.get_connection_count("IFTAR26") == 1
    assert manager.active_connections["IFTAR26"] == [healthy]


@pytest.mark.asyncio
async def test_broadcast_returns_before_delivery():
    """broadcast() only schedules the send"""
    manager = WebSocketManager(send_timeout=0.5)
    listener = FakeWebSocket()
    await manager.connect(listener, "IFTAR26")

    manager.broadcast("IFTAR26", {"type": "duplicate_scan"})
    assert listener.sent == []

    await asyncio.sleep(0.05)
    assert listener.sent == [{"type": "duplicate_scan"}]
    assert not manager._pending


@pytest.mark.asyncio
async def test_late_listener_gets_no_replay():
    manager = WebSocketManager(send_timeout=0.5)
    await manager.broadcast_to_event("IFTAR26", {"type": "checkin"})

    late = FakeWebSocket()
    await manager.connect(late, "IFTAR26")
    await asyncio.sleep(0)

    assert late.sent == []


def test_broadcast_without_event_loop_is_dropped():
    manager = WebSocketManager()
    manager.broadcast("IFTAR26", {"type": "checkin"})
    assert manager.get_all_connection_counts() == {}


@pytest.mark.asyncio
async def test_disconnect_cleans_up_empty_rooms():
    manager = WebSocketManager()
    listener = FakeWebSocket()
    await manager.connect(listener, "IFTAR26")

    manager.disconnect(listener, "IFTAR26")
    manager.disconnect(listener, "IFTAR26")

    assert "IFTAR26" not in manager.active_connections
