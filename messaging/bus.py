"""Event Broadcast Bus.

Fans events out to a dynamic set of observers. Each observer owns a
bounded queue; ``publish`` never awaits, so a stalled consumer can only
lose its own oldest events and never slows the publisher or its peers.
"""

import asyncio
from typing import Optional
import uuid

from loguru import logger

from .events import BroadcastEvent


class Subscription:
    """
    Handle for one observer.

    Async-iterable: ``async for event in subscription`` yields events in
    publish order until the subscription is closed.
    """

    def __init__(self, bus: "EventBus", maxsize: int):
        self.id = uuid.uuid4().hex[:8]
        self._bus = bus
        self._queue: asyncio.Queue[Optional[BroadcastEvent]] = asyncio.Queue(
            maxsize=maxsize
        )
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        return self._queue.qsize()

    def _deliver(self, event: BroadcastEvent) -> None:
        """Enqueue without blocking; drop the oldest event when full."""
        if self._closed:
            raise RuntimeError(f"subscription {self.id} is closed")
        while True:
            try:
                self._queue.put_nowait(event)
                return
            except asyncio.QueueFull:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                except asyncio.QueueEmpty:
                    pass

    async def get(self) -> BroadcastEvent:
        """Wait for the next event. Raises StopAsyncIteration once closed."""
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        event = await self._queue.get()
        if event is None:
            raise StopAsyncIteration
        return event

    def close(self) -> None:
        """Unsubscribe. Idempotent; wakes a pending ``get``."""
        if self._closed:
            return
        self._closed = True
        self._bus._remove(self)
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            self._queue.get_nowait()
            self._queue.put_nowait(None)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> BroadcastEvent:
        return await self.get()


class EventBus:
    """Process-wide fan-out channel. No replay: observers see only later events."""

    def __init__(self, buffer_size: int = 256):
        self._buffer_size = buffer_size
        self._subscriptions: set[Subscription] = set()

    def subscribe(self) -> Subscription:
        subscription = Subscription(self, self._buffer_size)
        self._subscriptions.add(subscription)
        logger.debug(
            f"Observer {subscription.id} subscribed ({len(self._subscriptions)} total)"
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.close()

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.discard(subscription)
            logger.debug(
                f"Observer {subscription.id} unsubscribed "
                f"({len(self._subscriptions)} remaining)"
            )

    @property
    def observer_count(self) -> int:
        return len(self._subscriptions)

    def publish(self, event: BroadcastEvent) -> int:
        """Deliver to every current observer. Returns the number reached."""
        delivered = 0
        for subscription in list(self._subscriptions):
            try:
                subscription._deliver(event)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping observer {subscription.id}: {e}")
                self._remove(subscription)
        return delivered

    def close_all(self) -> None:
        """Close every subscription, ending their streams."""
        for subscription in list(self._subscriptions):
            subscription.close()
