"""
Event broadcaster.

Fans execution events out to any number of subscribers without knowing
their transport. Two subscriber shapes exist:

- queue subscribers, consumed by async iteration (push streams, sockets)
- callback subscribers, invoked synchronously (in-process listeners)

A subscriber whose queue is full or whose callback raises is dropped;
delivery to the rest continues.
"""
import asyncio
import time
import uuid
from typing import Callable, Optional

from agentscale.domain.events import BaseEvent, ConnectedEvent, KeepaliveEvent
from agentscale.infrastructure.observability.logging import get_logger
from agentscale.infrastructure.observability.metrics import (
    EVENT_SUBSCRIBERS,
    EVENTS_PUBLISHED,
    SUBSCRIBERS_DROPPED,
)

logger = get_logger(__name__)

EventCallback = Callable[[BaseEvent], None]

_CLOSED = object()


class Subscription:
    """
    Handle returned by ``EventBroadcaster.subscribe``.

    Iterate it with ``async for`` to receive events; iteration ends once
    the subscription is closed and its backlog is drained.
    """

    def __init__(
        self,
        agent_id: Optional[str],
        queue_size: int = 100,
        callback: Optional[EventCallback] = None,
    ):
        self.id = str(uuid.uuid4())
        self.agent_id = agent_id
        self.callback = callback
        self.last_delivery = time.monotonic()
        self._queue: Optional[asyncio.Queue] = None if callback else asyncio.Queue(maxsize=queue_size)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def matches(self, event: BaseEvent) -> bool:
        """Subscriptions without an agent id receive every agent's events."""
        return self.agent_id is None or self.agent_id == event.agent_id

    def deliver(self, event: BaseEvent) -> None:
        """Hand one event over. Raises asyncio.QueueFull or whatever the callback raises."""
        if self.callback is not None:
            self.callback(event)
        else:
            self._queue.put_nowait(event)
        self.last_delivery = time.monotonic()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._queue is not None:
            try:
                self._queue.put_nowait(_CLOSED)
            except asyncio.QueueFull:
                # Consumer drains the backlog and stops on the closed flag
                pass

    async def get(self, timeout: Optional[float] = None) -> Optional[BaseEvent]:
        """
        Next event, or None on timeout or once closed and drained.

        Args:
            timeout: Seconds to wait; None waits indefinitely
        """
        if self._queue is None:
            raise RuntimeError("Callback subscriptions are not consumable")
        if self._closed and self._queue.empty():
            return None
        try:
            item = await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None
        if item is _CLOSED:
            return None
        return item

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> BaseEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event


class EventBroadcaster:
    """
    Transport-agnostic fan-out of execution events.

    All methods run on the event loop thread; ``publish`` never awaits, so
    a slow subscriber cannot stall the publisher.
    """

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscriptions: dict[str, Subscription] = {}

    def subscribe(
        self,
        agent_id: Optional[str] = None,
        callback: Optional[EventCallback] = None,
    ) -> Subscription:
        """
        Register a subscriber.

        Queue subscribers receive a ``connected`` event first.

        Args:
            agent_id: Only receive this agent's events; None receives all
            callback: Invoke synchronously instead of queueing

        Returns:
            Subscription handle to iterate and later unsubscribe
        """
        subscription = Subscription(agent_id, queue_size=self.queue_size, callback=callback)
        self._subscriptions[subscription.id] = subscription
        if callback is None:
            subscription.deliver(ConnectedEvent(agent_id=agent_id))
        EVENT_SUBSCRIBERS.set(len(self._subscriptions))
        logger.info("subscriber_added", subscription_id=subscription.id, agent_id=agent_id)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscriber. Unknown or already removed handles are ignored."""
        if self._subscriptions.pop(subscription.id, None) is None:
            return
        subscription.close()
        EVENT_SUBSCRIBERS.set(len(self._subscriptions))
        logger.info("subscriber_removed", subscription_id=subscription.id, agent_id=subscription.agent_id)

    def close_all(self) -> None:
        """Unsubscribe everyone; open streams end once their backlog is drained."""
        for subscription in list(self._subscriptions.values()):
            self.unsubscribe(subscription)

    def publish(self, event: BaseEvent) -> int:
        """
        Deliver an event to every matching live subscriber.

        Args:
            event: Event to fan out

        Returns:
            Number of subscribers the event reached
        """
        EVENTS_PUBLISHED.labels(event_type=event.type).inc()
        delivered = 0
        for subscription in list(self._subscriptions.values()):
            if not subscription.matches(event):
                continue
            if self._deliver(subscription, event):
                delivered += 1
        return delivered

    def send_keepalives(self, idle_seconds: float) -> int:
        """
        Send a keepalive to every subscriber idle for at least ``idle_seconds``.

        Returns:
            Number of keepalives delivered
        """
        now = time.monotonic()
        sent = 0
        for subscription in list(self._subscriptions.values()):
            if now - subscription.last_delivery < idle_seconds:
                continue
            if self._deliver(subscription, KeepaliveEvent(agent_id=subscription.agent_id)):
                sent += 1
        return sent

    async def run_keepalive(self, interval: float) -> None:
        """Keepalive loop; runs until cancelled."""
        while True:
            await asyncio.sleep(interval)
            self.send_keepalives(interval)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def _deliver(self, subscription: Subscription, event: BaseEvent) -> bool:
        try:
            subscription.deliver(event)
            return True
        except asyncio.QueueFull:
            reason = "queue_full"
        except Exception as e:
            reason = "callback_error"
            logger.warning(
                "subscriber_callback_failed",
                subscription_id=subscription.id,
                error=str(e),
                error_type=type(e).__name__,
            )
        SUBSCRIBERS_DROPPED.labels(reason=reason).inc()
        logger.warning("subscriber_dropped", subscription_id=subscription.id, reason=reason)
        self.unsubscribe(subscription)
        return False
