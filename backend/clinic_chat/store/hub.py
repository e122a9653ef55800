"""Live query subscriptions over the document store.

A :class:`Subscription` is a cancellable stream of full snapshots. The
hub delivers an initial snapshot on subscribe and a fresh one each time
its topic is published. A subscription holds at most one undelivered
snapshot: a newer one replaces it, so a slow consumer skips straight to
the latest state. Consumers iterate the subscription and must
cancel it (or leave its ``async with`` block) when their scope ends.

Usage:
    async with hub.subscribe(("messages", room_id), query) as sub:
        async for snapshot in sub:
            render(snapshot)

Thread Safety:
    Designed for a single event loop. ``publish`` runs the queries
    synchronously, so every snapshot reflects the store state right after
    the write that triggered it.
"""
import asyncio
import logging
from typing import Callable, Dict, Generic, Hashable, List, Set, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Topic for every room/membership change
ROOMS_TOPIC = "rooms"

_CLOSED = object()


def messages_topic(room_id: str) -> tuple:
    return ("messages", room_id)


class Subscription(Generic[T]):
    """Async iterator of snapshots with an explicit cancellation handle."""

    def __init__(self, hub: "ChangeHub", topic: Hashable, query: Callable[[], T]) -> None:
        self.topic = topic
        self._hub = hub
        self._query = query
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        """Number of snapshots delivered but not yet consumed (0 or 1)."""
        return self._queue.qsize()

    def refresh(self) -> None:
        """Re-run the query and replace any unconsumed snapshot with the result."""
        if self._closed:
            return
        try:
            snapshot = self._query()
        except Exception as e:
            logger.error(f"[Hub] Snapshot query failed for topic {self.topic}: {e}")
            return
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(snapshot)

    def cancel(self) -> None:
        """Stop delivery. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._hub._remove(self)
        # Drop undelivered snapshots and wake a waiting consumer
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "Subscription[T]":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.cancel()


class ChangeHub:
    """Registry of live subscriptions keyed by topic."""

    def __init__(self) -> None:
        self._subscriptions: Dict[Hashable, Set[Subscription]] = {}

    def subscribe(self, topic: Hashable, query: Callable[[], T]) -> Subscription[T]:
        subscription = Subscription(self, topic, query)
        self._subscriptions.setdefault(topic, set()).add(subscription)
        subscription.refresh()
        logger.debug(f"[Hub] Subscribed to {topic} ({self.subscriber_count(topic)} active)")
        return subscription

    def publish(self, topic: Hashable) -> None:
        """Push a fresh snapshot to every subscriber of ``topic``."""
        for subscription in list(self._subscriptions.get(topic, ())):
            subscription.refresh()

    def subscriber_count(self, topic: Hashable) -> int:
        return len(self._subscriptions.get(topic, ()))

    def active_topics(self) -> List[Hashable]:
        return [topic for topic, subs in self._subscriptions.items() if subs]

    def close_all(self) -> None:
        """Cancel every subscription (used on shutdown)."""
        for subs in list(self._subscriptions.values()):
            for subscription in list(subs):
                subscription.cancel()

    def _remove(self, subscription: Subscription) -> None:
        subs = self._subscriptions.get(subscription.topic)
        if subs is None:
            return
        subs.discard(subscription)
        if not subs:
            del self._subscriptions[subscription.topic]
