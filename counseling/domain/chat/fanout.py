"""
Realtime fan-out of appended chat messages.

The hub keeps, per room, the set of open subscriptions and pushes every
message the ledger commits to each of them. Pushes are best-effort: a
subscriber that drops out (or falls too far behind and is cut off) catches
up from the ledger with history(room_id, since_sequence) on reconnect.

Subscriber states follow the connection:
    DISCONNECTED -> SUBSCRIBING (registered, buffering pushes)
                 -> LIVE (history replayed, streaming)
                 -> DISCONNECTED (closed, errored, or overflowed)
"""

import asyncio
import logging
import threading
from typing import Optional

from ...config import REALTIME_QUEUE_SIZE, ROOM_LOCK_STRIPES

logger = logging.getLogger(__name__)


class SubscriberState:
    DISCONNECTED = "disconnected"
    SUBSCRIBING = "subscribing"
    LIVE = "live"


_CLOSED = object()


class Subscription:
    """One subscriber connection to one room"""

    def __init__(self, room_id: int, user_id: int, loop: asyncio.AbstractEventLoop, maxsize: int):
        self.room_id = room_id
        self.user_id = user_id
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.state = SubscriberState.SUBSCRIBING
        self.last_sequence = 0
        self.overflowed = False

    def _call_on_loop(self, callback, *args) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self.loop:
            callback(*args)
        elif not self.loop.is_closed():
            self.loop.call_soon_threadsafe(callback, *args)

    def push(self, payload: dict) -> None:
        """Queue a payload; safe to call from any thread"""
        self._call_on_loop(self._push, payload)

    def _push(self, payload) -> None:
        if self.state == SubscriberState.DISCONNECTED:
            return
        try:
            self.queue.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning(
                f"⚠️ Subscriber {self.user_id} on room {self.room_id} fell behind, disconnecting"
            )
            self.overflowed = True
            self._drain()
            self.state = SubscriberState.DISCONNECTED
            self.queue.put_nowait(_CLOSED)

    def _drain(self) -> None:
        while not self.queue.empty():
            self.queue.get_nowait()

    def mark_live(self, last_sequence: int) -> None:
        """Called once history up to last_sequence has been delivered"""
        self.last_sequence = max(self.last_sequence, last_sequence)
        if self.state == SubscriberState.SUBSCRIBING:
            self.state = SubscriberState.LIVE

    async def next(self) -> Optional[dict]:
        """
        Next payload not yet delivered on this connection, in sequence order.
        Returns None once the subscription is closed.
        """
        while True:
            payload = await self.queue.get()
            if payload is _CLOSED:
                return None
            sequence = payload["sequence"]
            if sequence <= self.last_sequence:
                # Already sent during history replay
                continue
            self.last_sequence = sequence
            return payload

    def close(self) -> None:
        self._call_on_loop(self._close)

    def _close(self) -> None:
        if self.state == SubscriberState.DISCONNECTED:
            return
        self.state = SubscriberState.DISCONNECTED
        self._drain()
        self.queue.put_nowait(_CLOSED)


class RealtimeHub:
    """In-process publish/subscribe keyed by room id"""

    def __init__(self, queue_size: int = REALTIME_QUEUE_SIZE, lock_stripes: int = ROOM_LOCK_STRIPES):
        self.queue_size = queue_size
        self._subscriptions: dict[int, set[Subscription]] = {}
        self._room_locks = [threading.Lock() for _ in range(max(lock_stripes, 1))]
        self._lock = threading.Lock()

    def room_lock(self, room_id: int) -> threading.Lock:
        """
        Lock serializing sequence assignment and publishing for one room.

        Rooms share a fixed pool of locks, picked by room_id modulo the pool size.
        """
        return self._room_locks[room_id % len(self._room_locks)]

    def subscribe(self, room_id: int, user_id: int) -> Subscription:
        """Register a subscriber; must be called from the event loop that will consume it"""
        subscription = Subscription(room_id, user_id, asyncio.get_running_loop(), self.queue_size)
        with self._lock:
            self._subscriptions.setdefault(room_id, set()).add(subscription)
        logger.info(f"📡 User {user_id} subscribed to room {room_id}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.close()
        with self._lock:
            subscribers = self._subscriptions.get(subscription.room_id)
            if subscribers is not None:
                subscribers.discard(subscription)
                if not subscribers:
                    del self._subscriptions[subscription.room_id]
        logger.info(f"🔌 User {subscription.user_id} left room {subscription.room_id}")

    def publish(self, room_id: int, payload: dict) -> int:
        """Push a committed message to every subscriber of the room"""
        with self._lock:
            subscribers = list(self._subscriptions.get(room_id, ()))
        for subscription in subscribers:
            subscription.push(payload)
        return len(subscribers)

    def subscriber_count(self, room_id: int) -> int:
        with self._lock:
            return len(self._subscriptions.get(room_id, ()))

    def close_all(self) -> None:
        with self._lock:
            subscriptions = [s for subs in self._subscriptions.values() for s in subs]
            self._subscriptions.clear()
        for subscription in subscriptions:
            subscription.close()
