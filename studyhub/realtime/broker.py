"""
In-process publish/subscribe used to push live updates to WebSocket clients.

Services publish after their writes commit (from request worker threads);
each Subscription belongs to exactly one connection and is registered only
while its ``async with`` block is open.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from collections import defaultdict
from typing import Any, AsyncIterator, Dict, Optional, Set

logger = logging.getLogger(__name__)


def notifications_topic(user_id: int) -> str:
    return f"notifications:{user_id}"


def chat_topic(space: str, conversation_id: str) -> str:
    return f"chats:{space}:{conversation_id}"


class Subscription:
    """Scoped handle on one topic; use as ``async with broker.subscribe(topic) as sub``."""

    def __init__(self, broker: "Broker", topic: str, max_pending: int = 256):
        self.broker = broker
        self.topic = topic
        self._max_pending = max_pending
        self._queue: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.closed = False

    async def __aenter__(self) -> "Subscription":
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=self._max_pending)
        self.broker._register(self)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.broker._unregister(self)

    @property
    def active(self) -> bool:
        return self._queue is not None and not self.closed

    def _deliver(self, event: Any) -> bool:
        """Hand an event to the owning loop. Safe to call from any thread."""
        if not self.active or self._loop is None or self._loop.is_closed():
            return False
        try:
            self._loop.call_soon_threadsafe(self._offer, event)
        except RuntimeError:
            # Loop shut down between the check and the call.
            return False
        return True

    def _offer(self, event: Any) -> None:
        if self._queue is None:
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Dropping event for slow subscriber on %s", self.topic)

    async def get(self) -> Any:
        if self._queue is None:
            raise RuntimeError("Subscription used outside of its 'async with' block")
        return await self._queue.get()

    async def __aiter__(self) -> AsyncIterator[Any]:
        while self.active:
            yield await self.get()


class Broker:
    def __init__(self) -> None:
        self._subscribers: Dict[str, Set[Subscription]] = defaultdict(set)
        self._lock = threading.Lock()

    def subscribe(self, topic: str, max_pending: int = 256) -> Subscription:
        return Subscription(self, topic, max_pending=max_pending)

    def publish(self, topic: str, event: Any) -> int:
        """Fan an event out to every open subscription on ``topic``; returns deliveries."""
        with self._lock:
            targets = list(self._subscribers.get(topic, ()))
        delivered = 0
        for subscription in targets:
            if subscription._deliver(event):
                delivered += 1
            else:
                self._unregister(subscription)
        logger.debug("Published to %s (%d subscribers)", topic, delivered)
        return delivered

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subscribers.get(topic, ()))

    def _register(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscribers[subscription.topic].add(subscription)
        logger.debug("Subscribed to %s", subscription.topic)

    def _unregister(self, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._subscribers.get(subscription.topic)
            if subscribers is None:
                return
            subscribers.discard(subscription)
            if not subscribers:
                del self._subscribers[subscription.topic]
        logger.debug("Released subscription on %s", subscription.topic)


broker = Broker()
