# tests/test_events.py
import pytest

from utils.events import CALENDAR_CHANGED, FRIENDS_CHANGED, EventBus


@pytest.mark.asyncio
async def test_sync_and_async_handlers_receive_payload():
    bus = EventBus()
    seen = []

    async def async_handler(payload):
        seen.append(("async", payload))

    bus.subscribe(FRIENDS_CHANGED, lambda payload: seen.append(("sync", payload)))
    bus.subscribe(FRIENDS_CHANGED, async_handler)

    delivered = await bus.publish(FRIENDS_CHANGED, {"n": 1})

    assert delivered == 2
    assert seen == [("sync", {"n": 1}), ("async", {"n": 1})]


@pytest.mark.asyncio
async def test_topics_are_isolated():
    bus = EventBus()
    seen = []
    bus.subscribe(CALENDAR_CHANGED, seen.append)

    assert await bus.publish(FRIENDS_CHANGED, "x") == 0
    assert seen == []


@pytest.mark.asyncio
async def test_failing_handler_does_not_stop_others():
    bus = EventBus()
    seen = []

    def broken(payload):
        raise RuntimeError("boom")

    bus.subscribe(CALENDAR_CHANGED, broken)
    bus.subscribe(CALENDAR_CHANGED, seen.append)

    assert await bus.publish(CALENDAR_CHANGED, 1) == 1
    assert seen == [1]


@pytest.mark.asyncio
async def test_unsubscribe():
    bus = EventBus()
    seen = []
    unsubscribe = bus.subscribe(FRIENDS_CHANGED, seen.append)

    unsubscribe()
    unsubscribe()

    assert await bus.publish(FRIENDS_CHANGED, 1) == 0
    assert seen == []
