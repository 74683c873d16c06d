"""In-process broadcast of job events to push channel subscribers.

Each subscriber owns a bounded asyncio queue. ``publish`` only ever calls
``put_nowait`` so a slow or dead client can never stall the job supervisor.
A subscriber whose queue overflows is dropped: it stops receiving events and
its iterator ends, which keeps every delivered sequence a gap-free prefix of
the published order.
"""

import asyncio
import uuid
from typing import AsyncIterator, Dict, Optional

import structlog

from homedash.core.metrics import MetricsCollector
from homedash.models.job import JobEvent

logger = structlog.get_logger(__name__)

DEFAULT_QUEUE_SIZE = 1000

# Queue sentinel that ends a subscription's iteration
_CLOSED = object()


class Subscription:
    """Handle for one subscriber of the event bus.

    Iterate it with ``async for`` to receive events in publish order.
    """

    def __init__(self, max_queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self.subscriber_id = uuid.uuid4().hex[:12]
        # One extra slot is reserved for the close sentinel
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue_size + 1)
        self._max_queue_size = max_queue_size
        self._closed = False
        self.overflowed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        """Number of events waiting to be consumed."""
        return self._queue.qsize()

    def offer(self, event: JobEvent) -> bool:
        """Enqueue an event without waiting.

        Returns:
            False if the subscription is closed or its queue is full.
        """
        if self._closed:
            return False
        if self._queue.qsize() >= self._max_queue_size:
            return False
        self._queue.put_nowait(event)
        return True

    def close(self) -> None:
        """Stop delivery. Events already queued are still yielded."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def get(self) -> Optional[JobEvent]:
        """Wait for the next event; None once the subscription is closed."""
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item

    def __aiter__(self) -> AsyncIterator[JobEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[JobEvent]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event


class EventBus:
    """Broadcast channel for job lifecycle and log events.

    Any number of subscribers; each receives every event published after it
    subscribed, in publish order. Nothing is buffered for late subscribers.
    All methods must be called from the event loop thread.
    """

    def __init__(self, max_queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        """Initialize the event bus.

        Args:
            max_queue_size: Events a subscriber may fall behind before it is dropped.
        """
        self.max_queue_size = max_queue_size
        self._subscribers: Dict[str, Subscription] = {}

        logger.debug("event_bus_initialized", max_queue_size=max_queue_size)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        """Register a new subscriber."""
        subscription = Subscription(self.max_queue_size)
        self._subscribers[subscription.subscriber_id] = subscription
        MetricsCollector.update_subscriber_count(len(self._subscribers))

        logger.info(
            "event_bus_subscribed",
            subscriber_id=subscription.subscriber_id,
            subscribers=len(self._subscribers),
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscriber. Unknown or already removed handles are ignored."""
        removed = self._subscribers.pop(subscription.subscriber_id, None)
        subscription.close()
        if removed is None:
            return

        MetricsCollector.update_subscriber_count(len(self._subscribers))
        logger.info(
            "event_bus_unsubscribed",
            subscriber_id=subscription.subscriber_id,
            subscribers=len(self._subscribers),
        )

    def publish(self, event: JobEvent) -> int:
        """Deliver an event to every current subscriber.

        Never blocks. Subscribers whose queue is full are dropped.

        Args:
            event: The event to broadcast.

        Returns:
            Number of subscribers the event was delivered to.
        """
        delivered = 0
        dropped = []

        for subscription in list(self._subscribers.values()):
            if subscription.offer(event):
                delivered += 1
            else:
                dropped.append(subscription)

        for subscription in dropped:
            subscription.overflowed = True
            MetricsCollector.record_subscriber_dropped()
            logger.warning(
                "event_bus_subscriber_dropped",
                subscriber_id=subscription.subscriber_id,
                pending=subscription.pending(),
            )
            self.unsubscribe(subscription)

        MetricsCollector.record_event_published(event.name)
        return delivered

    def close(self) -> None:
        """Close every subscription (application shutdown)."""
        for subscription in list(self._subscribers.values()):
            self.unsubscribe(subscription)


# Global event bus instance
_event_bus: Optional[EventBus] = None


def configure_event_bus(max_queue_size: int = DEFAULT_QUEUE_SIZE) -> EventBus:
    """Configure and initialize the global event bus."""
    global _event_bus
    _event_bus = EventBus(max_queue_size=max_queue_size)
    return _event_bus


def get_event_bus() -> EventBus:
    """Get the global event bus instance.

    Raises:
        RuntimeError: If the event bus is not configured.
    """
    if _event_bus is None:
        raise RuntimeError("Event bus not configured. Call configure_event_bus() first.")
    return _event_bus
