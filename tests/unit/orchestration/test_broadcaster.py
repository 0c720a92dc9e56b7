# tests/unit/orchestration/test_broadcaster.py
"""Unit tests for the event broadcaster."""

import pytest

from agentscale.domain.events import ActionEvent, ConnectedEvent, KeepaliveEvent
from agentscale.orchestration.broadcaster import EventBroadcaster


def _action(agent_id: str, iteration: int = 1) -> ActionEvent:
    return ActionEvent(
        agent_id=agent_id,
        execution_id="e1",
        action={"type": "click", "x": 1, "y": 1},
        iteration=iteration,
    )


@pytest.mark.unit
class TestSubscribe:
    """Test subscription lifecycle."""

    async def test_first_event_is_connected(self):
        broadcaster = EventBroadcaster()
        subscription = broadcaster.subscribe("a1")

        event = await subscription.get(timeout=0.1)

        assert isinstance(event, ConnectedEvent)
        assert event.agent_id == "a1"

    async def test_callback_subscriber_gets_no_connected_event(self):
        broadcaster = EventBroadcaster()
        received = []
        broadcaster.subscribe("a1", callback=received.append)

        broadcaster.publish(_action("a1"))

        assert [e.type for e in received] == ["action"]

    async def test_unsubscribe_is_idempotent(self):
        broadcaster = EventBroadcaster()
        subscription = broadcaster.subscribe("a1")

        broadcaster.unsubscribe(subscription)
        broadcaster.unsubscribe(subscription)

        assert broadcaster.subscriber_count == 0
        assert broadcaster.publish(_action("a1")) == 0

    async def test_iteration_ends_after_unsubscribe(self):
        broadcaster = EventBroadcaster()
        subscription = broadcaster.subscribe("a1")
        broadcaster.publish(_action("a1"))
        broadcaster.unsubscribe(subscription)

        types = [event.type async for event in subscription]

        assert types == ["connected", "action"]

    async def test_close_all_ends_every_subscription(self):
        broadcaster = EventBroadcaster()
        first = broadcaster.subscribe("a1")
        second = broadcaster.subscribe()

        broadcaster.close_all()

        assert broadcaster.subscriber_count == 0
        assert first.closed and second.closed
        assert [event.type async for event in second] == ["connected"]


@pytest.mark.unit
class TestPublish:
    """Test fan-out semantics."""

    async def test_every_matching_subscriber_receives_each_event_once(self):
        broadcaster = EventBroadcaster()
        first = broadcaster.subscribe("a1")
        second = broadcaster.subscribe("a1")
        received = []
        broadcaster.subscribe("a1", callback=received.append)

        delivered = broadcaster.publish(_action("a1"))

        assert delivered == 3
        for subscription in (first, second):
            assert (await subscription.get(timeout=0.1)).type == "connected"
            assert (await subscription.get(timeout=0.1)).type == "action"
            assert await subscription.get(timeout=0.01) is None
        assert len(received) == 1

    async def test_agent_filter(self):
        broadcaster = EventBroadcaster()
        received = []
        broadcaster.subscribe("a1", callback=received.append)

        broadcaster.publish(_action("a2"))

        assert received == []

    async def test_wildcard_subscriber_receives_all_agents(self):
        broadcaster = EventBroadcaster()
        received = []
        broadcaster.subscribe(None, callback=received.append)

        broadcaster.publish(_action("a1"))
        broadcaster.publish(_action("a2"))

        assert [e.agent_id for e in received] == ["a1", "a2"]

    async def test_order_is_preserved(self):
        broadcaster = EventBroadcaster()
        received = []
        broadcaster.subscribe("a1", callback=received.append)

        for i in range(1, 6):
            broadcaster.publish(_action("a1", iteration=i))

        assert [e.iteration for e in received] == [1, 2, 3, 4, 5]

    async def test_failing_callback_is_dropped_without_affecting_others(self):
        broadcaster = EventBroadcaster()

        def broken(event):
            raise RuntimeError("socket gone")

        received = []
        broadcaster.subscribe("a1", callback=broken)
        broadcaster.subscribe("a1", callback=received.append)

        assert broadcaster.publish(_action("a1")) == 1
        assert broadcaster.subscriber_count == 1
        broadcaster.publish(_action("a1", iteration=2))
        assert len(received) == 2

    async def test_full_queue_subscriber_is_dropped(self):
        broadcaster = EventBroadcaster(queue_size=2)
        slow = broadcaster.subscribe("a1")  # holds "connected"
        received = []
        broadcaster.subscribe("a1", callback=received.append)

        broadcaster.publish(_action("a1", iteration=1))
        broadcaster.publish(_action("a1", iteration=2))

        assert slow.closed
        assert broadcaster.subscriber_count == 1
        assert len(received) == 2
        # the backlog delivered before the drop is still readable
        assert [event.type async for event in slow] == ["connected", "action"]


@pytest.mark.unit
class TestKeepalive:
    """Test keepalives for idle subscribers."""

    async def test_idle_subscribers_receive_keepalive(self):
        broadcaster = EventBroadcaster()
        received = []
        broadcaster.subscribe("a1", callback=received.append)

        assert broadcaster.send_keepalives(idle_seconds=0) == 1
        assert isinstance(received[0], KeepaliveEvent)
        assert received[0].agent_id == "a1"

    async def test_active_subscribers_are_skipped(self):
        broadcaster = EventBroadcaster()
        received = []
        broadcaster.subscribe("a1", callback=received.append)
        broadcaster.publish(_action("a1"))

        assert broadcaster.send_keepalives(idle_seconds=60) == 0
