import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from waydown.config import settings
from waydown.services.realtime import ConnectionManager, frame, spot_room, user_room


class FakeSocket:
    def __init__(self, hang=False, broken=False):
        self.sent = []
        self.closed_with = None
        self.hang = hang
        self.broken = broken

    async def accept(self):
        pass

    async def send_json(self, payload):
        if self.hang:
            await asyncio.sleep(10)
        if self.broken:
            raise RuntimeError("socket is gone")
        self.sent.append(payload)

    async def close(self, code=1000):
        self.closed_with = code


@pytest.fixture
async def manager():
    m = ConnectionManager()
    yield m
    await m.shutdown()


def test_frame_shape():
    msg = frame("newLike", {"spot_id": 1})
    assert msg["event"] == "newLike"
    assert msg["data"] == {"spot_id": 1}
    assert "timestamp" in msg


async def test_emit_reaches_room_members(manager):
    a, b, c = FakeSocket(), FakeSocket(), FakeSocket()
    for ws, uid in ((a, 1), (b, 2), (c, 3)):
        await manager.connect(ws, uid)
    manager.join(a, spot_room(9))
    manager.join(b, spot_room(9))

    sent = await manager.emit(spot_room(9), "spotUpdated", {"spot_id": 9})
    assert sent == 2
    assert [m["event"] for m in a.sent] == ["spotUpdated"]
    assert b.sent[0]["data"] == {"spot_id": 9}
    assert c.sent == []


async def test_emit_to_user(manager):
    ws = FakeSocket()
    await manager.connect(ws, 4)
    assert await manager.emit_to_user(4, "newFollower", {}) == 0
    manager.join(ws, user_room(4))
    assert await manager.emit_to_user(4, "newFollower", {"follower_id": 5}) == 1
    assert ws.sent[0]["event"] == "newFollower"


async def test_leave_and_disconnect_clean_rooms(manager):
    ws = FakeSocket()
    await manager.connect(ws, 1)
    manager.join(ws, spot_room(1))
    manager.join(ws, user_room(1))

    manager.leave(ws, spot_room(1))
    assert spot_room(1) not in manager.rooms

    manager.disconnect(ws)
    assert manager.rooms == {}
    assert manager.user_of(ws) is None


async def test_broken_socket_is_dropped(manager):
    ws = FakeSocket(broken=True)
    await manager.connect(ws, 1)
    manager.join(ws, spot_room(1))
    await manager.emit(spot_room(1), "spotUpdated", {})
    assert manager.members(spot_room(1)) == set()


async def test_send_timeout_disconnects(manager, monkeypatch):
    monkeypatch.setattr(settings, "ws_send_timeout_seconds", 0.05)
    slow, fast = FakeSocket(hang=True), FakeSocket()
    await manager.connect(slow, 1)
    await manager.connect(fast, 2)
    manager.join(slow, spot_room(1))
    manager.join(fast, spot_room(1))

    await manager.emit(spot_room(1), "spotUpdated", {})
    assert manager.members(spot_room(1)) == {fast}
    assert len(fast.sent) == 1


async def test_drop_stale(manager):
    idle, active = FakeSocket(), FakeSocket()
    await manager.connect(idle, 1)
    await manager.connect(active, 2)
    later = datetime.now(timezone.utc) + timedelta(minutes=5)
    manager.sockets[active] = (2, later)

    dropped = await manager.drop_stale(now=later)
    assert dropped == 1
    assert idle.closed_with == 1000
    assert manager.user_of(idle) is None
    assert manager.user_of(active) == 2


async def test_shutdown_stops_cleanup_task(manager):
    await manager.connect(FakeSocket(), 1)
    task = manager.cleanup_task
    assert task is not None and not task.done()
    await manager.shutdown()
    assert task.done()
