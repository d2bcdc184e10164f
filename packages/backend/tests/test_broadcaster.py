"""Broadcaster tests — best-effort delivery to room members."""

import pytest

from conftest import FakeTransport
from stockpulse.auth.sessions import Identity, SessionStore
from stockpulse.events.types import ITEM_CREATED, InventoryEvent
from stockpulse.realtime.broadcaster import Broadcaster
from stockpulse.realtime.connections import SESSION_ENDED_CODE, ConnectionManager
from stockpulse.realtime.rooms import RoomRegistry


@pytest.fixture()
def registry():
    return RoomRegistry()


@pytest.fixture()
def manager(registry):
    return ConnectionManager(registry)


@pytest.fixture()
def broadcaster(registry, manager):
    return Broadcaster(registry, manager)


def _open(manager, *rooms, fail=False):
    conn = manager.create(FakeTransport(fail=fail))
    manager.activate(conn)
    for room in rooms:
        manager.join(conn, room)
    return conn


def _event(room="updates"):
    return InventoryEvent(room=room, type=ITEM_CREATED, data={"sku": "A-1"})


@pytest.mark.asyncio
async def test_broadcast_to_empty_room(broadcaster):
    delivered = await broadcaster.broadcast("updates", _event())
    assert delivered == 0


@pytest.mark.asyncio
async def test_broadcast_reaches_only_room_members(broadcaster, manager):
    a = _open(manager, "updates")
    b = _open(manager, "updates")
    c = _open(manager, "other")

    delivered = await broadcaster.broadcast("updates", _event())

    expected = {"type": ITEM_CREATED, "room": "updates", "data": {"sku": "A-1"}}
    assert delivered == 2
    assert a.transport.sent == [expected]
    assert b.transport.sent == [expected]
    assert c.transport.sent == []


@pytest.mark.asyncio
async def test_member_of_several_rooms_gets_one_copy_per_broadcast(broadcaster, manager):
    a = _open(manager, "updates", "other")
    await broadcaster.broadcast("updates", _event())
    assert len(a.transport.sent) == 1


@pytest.mark.asyncio
async def test_failed_delivery_does_not_stop_others(broadcaster, manager):
    broken = _open(manager, "updates", fail=True)
    healthy = _open(manager, "updates")

    delivered = await broadcaster.broadcast("updates", _event())

    assert delivered == 1
    assert broken.transport.sent == []
    assert len(healthy.transport.sent) == 1


@pytest.mark.asyncio
async def test_disconnected_member_is_skipped(broadcaster, manager, registry):
    gone = _open(manager, "updates")
    stays = _open(manager, "updates")

    manager.disconnect(gone)
    delivered = await broadcaster.broadcast("updates", _event())

    assert delivered == 1
    assert gone.transport.sent == []
    assert len(stays.transport.sent) == 1
    assert gone.id not in registry.members_of("updates")


@pytest.mark.asyncio
async def test_stale_registry_entry_is_skipped(broadcaster, registry):
    """A member id with no live connection behind it is ignored, not an error."""
    registry.join("ghost", "updates")
    assert await broadcaster.broadcast("updates", _event()) == 0


@pytest.mark.asyncio
async def test_no_redelivery(broadcaster, manager):
    a = _open(manager, "updates")
    await broadcaster.broadcast("updates", _event())
    await broadcaster.broadcast("updates", _event())
    assert len(a.transport.sent) == 2


# ─── Session-bound sockets ──────────────────────────────


@pytest.mark.asyncio
async def test_socket_with_ended_session_is_closed_not_sent(registry, manager):
    sessions = SessionStore()
    live_token = sessions.create(Identity(user_id="u1", username="live"))
    dead_token = sessions.create(Identity(user_id="u2", username="gone"))
    broadcaster = Broadcaster(registry, manager, sessions=sessions)

    live = manager.create(FakeTransport(), session_token=live_token)
    dead = manager.create(FakeTransport(), session_token=dead_token)
    anonymous = manager.create(FakeTransport())
    for conn in (live, dead, anonymous):
        manager.activate(conn)
        manager.join(conn, "updates")

    sessions.destroy(dead_token)
    delivered = await broadcaster.broadcast("updates", _event())

    assert delivered == 2
    assert len(live.transport.sent) == 1
    assert len(anonymous.transport.sent) == 1
    assert dead.transport.sent == []
    assert dead.transport.closed_with == SESSION_ENDED_CODE
    assert dead.id not in registry.members_of("updates")
