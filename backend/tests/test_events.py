"""Tests for the negotiation room registry."""

import asyncio

import pytest

from tradeflow.core.events import NegotiationRoomRegistry, Subscriber


@pytest.mark.asyncio
async def test_publish_reaches_only_room_members():
    registry = NegotiationRoomRegistry()
    inside, outside = Subscriber("inside"), Subscriber("outside")
    registry.join("n-1", inside)
    registry.join("n-2", outside)

    delivered = registry.publish("n-1", "negotiation:message", {"sequence": 1})

    assert delivered == 1
    event = inside.queue.get_nowait()
    assert event["event"] == "negotiation:message"
    assert event["data"] == {"sequence": 1}
    assert "timestamp" in event
    assert outside.queue.empty()


@pytest.mark.asyncio
async def test_leave_and_leave_all():
    registry = NegotiationRoomRegistry()
    subscriber = Subscriber("s")
    registry.join("n-1", subscriber)
    registry.join("n-2", subscriber)

    registry.leave("n-1", subscriber)
    assert registry.members("n-1") == set()
    assert registry.members("n-2") == {subscriber}

    registry.leave_all(subscriber)
    assert registry.members("n-2") == set()
    assert subscriber.rooms == set()
    assert registry.publish("n-2", "deal:accepted", {}) == 0


@pytest.mark.asyncio
async def test_slow_subscriber_is_dropped_without_blocking():
    """Test that a full queue drops that subscriber but not the others."""
    registry = NegotiationRoomRegistry()
    slow, healthy = Subscriber("slow", maxsize=1), Subscriber("healthy", maxsize=10)
    registry.join("n-1", slow)
    registry.join("n-1", healthy)

    registry.publish("n-1", "negotiation:message", {"sequence": 1})
    delivered = registry.publish("n-1", "negotiation:message", {"sequence": 2})

    assert delivered == 1
    assert slow.closed
    assert registry.members("n-1") == {healthy}
    assert healthy.queue.qsize() == 2


@pytest.mark.asyncio
async def test_subscriber_events_stop_on_close():
    subscriber = Subscriber("s")
    subscriber.offer({"event": "a", "data": {}})
    subscriber.close()

    received = [event async for event in subscriber.events()]

    assert received == []
    assert not subscriber.offer({"event": "b", "data": {}})


@pytest.mark.asyncio
async def test_ordered_serializes_per_negotiation():
    """Test that sections for one negotiation never interleave."""
    registry = NegotiationRoomRegistry()
    trace = []

    async def section(name):
        async with registry.ordered("n-1"):
            trace.append(f"{name}:start")
            await asyncio.sleep(0.01)
            trace.append(f"{name}:end")

    await asyncio.gather(section("a"), section("b"))

    assert trace == ["a:start", "a:end", "b:start", "b:end"]
    assert registry._locks == {}
