import pytest

from condfx.events.bus import EventBus


def test_event_bus_emit_subscribe():
    bus = EventBus()
    received = {}

    def handler(sender, **kwargs):
        received.update(kwargs)

    bus.subscribe("test", handler)
    bus.emit("test", value=42, msg="hello")

    assert received["value"] == 42
    assert received["msg"] == "hello"


def test_unsubscribe_stops_delivery():
    bus = EventBus()
    calls = []

    def handler(sender, **kwargs):
        calls.append(kwargs)

    bus.subscribe("test", handler)
    bus.unsubscribe("test", handler)
    bus.emit("test", value=1)

    assert calls == []


@pytest.mark.asyncio
async def test_emit_async_awaits_coroutine_and_plain_handlers():
    bus = EventBus()
    order = []

    async def first(sender, **kwargs):
        order.append(("first", kwargs["value"]))

    def second(sender, **kwargs):
        order.append(("second", kwargs["value"]))

    bus.subscribe("test", first)
    bus.subscribe("test", second)
    await bus.emit_async("test", value=7)

    assert sorted(order) == [("first", 7), ("second", 7)]


@pytest.mark.asyncio
async def test_emit_async_without_subscribers_is_a_no_op():
    bus = EventBus()
    await bus.emit_async("nobody-listens", value=1)
