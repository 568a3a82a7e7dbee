"""Tests for the event broadcast bus."""

import asyncio

import pytest

from messaging.bus import EventBus
from messaging.events import BulkDoneEvent, BulkStartEvent, QrEvent, StatusEvent


class TestEventBus:
    def test_publish_without_observers_is_noop(self):
        bus = EventBus()
        assert bus.publish(QrEvent()) == 0

    @pytest.mark.asyncio
    async def test_observer_receives_events_in_publish_order(self):
        bus = EventBus()
        sub = bus.subscribe()
        events = [StatusEvent(connection="open"), QrEvent(), BulkDoneEvent(1, "a@b")]
        for event in events:
            bus.publish(event)

        received = [await sub.get() for _ in events]
        assert received == events

    @pytest.mark.asyncio
    async def test_no_replay_for_late_subscribers(self):
        bus = EventBus()
        bus.publish(QrEvent())
        sub = bus.subscribe()
        assert sub.pending() == 0

    @pytest.mark.asyncio
    async def test_two_subscriptions_are_independent(self):
        bus = EventBus()
        first = bus.subscribe()
        second = bus.subscribe()

        bus.publish(BulkStartEvent(total=2, target="t"))
        first.close()
        bus.publish(BulkDoneEvent(total=2, target="t"))

        assert bus.observer_count == 1
        assert await second.get() == BulkStartEvent(total=2, target="t")
        assert await second.get() == BulkDoneEvent(total=2, target="t")
        assert second.pending() == 0

    @pytest.mark.asyncio
    async def test_same_event_instance_shared(self):
        bus = EventBus()
        a, b = bus.subscribe(), bus.subscribe()
        event = QrEvent()
        assert bus.publish(event) == 2
        assert (await a.get()) is event
        assert (await b.get()) is event

    @pytest.mark.asyncio
    async def test_slow_observer_drops_oldest(self):
        bus = EventBus(buffer_size=2)
        slow = bus.subscribe()
        for i in range(1, 5):
            bus.publish(BulkDoneEvent(total=i, target="t"))

        assert slow.dropped == 2
        assert (await slow.get()).total == 3
        assert (await slow.get()).total == 4

    @pytest.mark.asyncio
    async def test_failing_observer_is_removed_without_affecting_others(self):
        bus = EventBus()
        bad = bus.subscribe()
        good = bus.subscribe()

        def _boom(event):
            raise RuntimeError("write failed")

        bad._deliver = _boom
        assert bus.publish(QrEvent()) == 1
        assert bus.observer_count == 1
        assert await good.get() == QrEvent()

    @pytest.mark.asyncio
    async def test_unsubscribe_during_publish_is_safe(self):
        bus = EventBus()
        subs = [bus.subscribe() for _ in range(3)]

        original = subs[0]._deliver

        def _deliver_and_unsubscribe(event):
            original(event)
            subs[1].close()

        subs[0]._deliver = _deliver_and_unsubscribe
        bus.publish(QrEvent())
        assert bus.observer_count == 2

    @pytest.mark.asyncio
    async def test_close_ends_iteration(self):
        bus = EventBus()
        sub = bus.subscribe()
        bus.publish(QrEvent())

        async def _collect():
            return [event async for event in sub]

        task = asyncio.create_task(_collect())
        await asyncio.sleep(0)
        sub.close()
        assert await asyncio.wait_for(task, timeout=1) == [QrEvent()]

    @pytest.mark.asyncio
    async def test_close_all(self):
        bus = EventBus()
        subs = [bus.subscribe(), bus.subscribe()]
        bus.close_all()
        assert bus.observer_count == 0
        assert all(s.closed for s in subs)
        with pytest.raises(StopAsyncIteration):
            await subs[0].get()
