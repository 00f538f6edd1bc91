"""Negotiation room registry for real-time event fan-out."""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncGenerator, AsyncIterator, Dict, Optional, Set

from tradeflow.config import settings

logger = logging.getLogger(__name__)


class Subscriber:
    """
    One live connection's view of the registry.

    Events are buffered in a bounded queue; the connection's transport drains
    it. A subscriber that cannot keep up is marked closed and dropped.
    """

    def __init__(self, name: str = "", maxsize: Optional[int] = None):
        self.name = name
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize or settings.ROOM_QUEUE_SIZE)
        self.rooms: Set[str] = set()
        self.closed = False

    def offer(self, event: Dict[str, Any]) -> bool:
        """Enqueue without waiting. Returns False if the subscriber is unreachable."""
        if self.closed:
            return False
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.closed = True
            return False
        return True

    async def events(self) -> AsyncGenerator[Dict[str, Any], None]:
        """Yield queued events until the subscriber is closed."""
        while not self.closed:
            event = await self.queue.get()
            if event is None:
                break
            yield event

    def close(self) -> None:
        self.closed = True
        try:
            self.queue.put_nowait(None)
        except asyncio.QueueFull:
            pass

    def __repr__(self) -> str:
        return f"<Subscriber(name={self.name}, rooms={len(self.rooms)})>"


class NegotiationRoomRegistry:
    """
    Process-wide mapping of negotiation id to its subscribed connections.

    Clients must join a room explicitly and re-join after reconnecting;
    nothing is replayed. Delivery is best effort: ``publish`` never awaits a
    client, so a slow or dead connection cannot block the request that
    triggered the event.
    """

    def __init__(self):
        """Initialize the registry with no rooms."""
        self._rooms: Dict[str, Set[Subscriber]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    def join(self, negotiation_id: str, subscriber: Subscriber) -> None:
        self._rooms.setdefault(negotiation_id, set()).add(subscriber)
        subscriber.rooms.add(negotiation_id)
        logger.info(f"{subscriber.name or 'subscriber'} joined room negotiation_{negotiation_id}")

    def leave(self, negotiation_id: str, subscriber: Subscriber) -> None:
        members = self._rooms.get(negotiation_id)
        if members is not None:
            members.discard(subscriber)
            if not members:
                del self._rooms[negotiation_id]
        subscriber.rooms.discard(negotiation_id)

    def leave_all(self, subscriber: Subscriber) -> None:
        """Remove a connection from every room it joined (disconnect)."""
        for negotiation_id in list(subscriber.rooms):
            self.leave(negotiation_id, subscriber)

    def members(self, negotiation_id: str) -> Set[Subscriber]:
        return set(self._rooms.get(negotiation_id, ()))

    @asynccontextmanager
    async def ordered(self, negotiation_id: str) -> AsyncIterator[None]:
        """
        Serialize commit-and-publish for one negotiation.

        Holding this across "append, commit, publish" makes the broadcast order
        of a room match the order in which its messages were committed.
        """
        lock = self._locks.setdefault(negotiation_id, asyncio.Lock())
        self._lock_users[negotiation_id] = self._lock_users.get(negotiation_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_users[negotiation_id] - 1
            if remaining:
                self._lock_users[negotiation_id] = remaining
            else:
                del self._lock_users[negotiation_id]
                self._locks.pop(negotiation_id, None)

    def publish(self, negotiation_id: str, event_type: str, data: Dict[str, Any]) -> int:
        """
        Broadcast an event to every member of a negotiation's room.

        Args:
            negotiation_id: Room key
            event_type: Event name (e.g. "negotiation:message", "deal:accepted")
            data: Event payload, JSON-serializable

        Returns:
            Number of subscribers the event was delivered to
        """
        event = {
            "event": event_type,
            "data": data,
            "timestamp": datetime.utcnow().isoformat()
        }

        delivered = 0
        dead = []
        for subscriber in self.members(negotiation_id):
            if subscriber.offer(event):
                delivered += 1
            else:
                dead.append(subscriber)

        # Unreachable subscribers are dropped from every room
        for subscriber in dead:
            logger.warning(f"Dropping unreachable subscriber {subscriber.name or subscriber!r}")
            self.leave_all(subscriber)
            subscriber.close()

        return delivered


# Global registry instance
negotiation_rooms = NegotiationRoomRegistry()
