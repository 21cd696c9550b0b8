import asyncio

import pytest

from condfx.utils.attacker_cache import AttackerCache
from condfx.utils.coerce import coerce_float, coerce_int, round_half_up
from condfx.utils.debounce import Debouncer
from condfx.utils.drain import DrainState, KeyedDrainer


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def test_coercion_helpers():
    assert coerce_int("3") == 3
    assert coerce_int(None, 7) == 7
    assert coerce_float("1.5") == 1.5
    assert coerce_float("x", 2.0) == 2.0
    assert round_half_up(2.5) == 3
    assert round_half_up(16.66) == 17


@pytest.mark.asyncio
async def test_keyed_drainer_reruns_latest_queued_work_once():
    drainer = KeyedDrainer()
    gate = asyncio.Event()
    calls = []

    async def first():
        calls.append("first")
        await gate.wait()

    async def second():
        calls.append("second")

    async def third():
        calls.append("third")

    assert not drainer.mark_dirty("a")
    task = asyncio.ensure_future(drainer.run("a", first))
    await asyncio.sleep(0)
    assert drainer.state("a") is DrainState.RUNNING

    assert await drainer.run("a", second) is False
    assert await drainer.run("a", third) is False
    assert drainer.state("a") is DrainState.DIRTY

    gate.set()
    assert await task is True
    assert calls == ["first", "third"]
    assert drainer.passes["a"] == 2
    assert drainer.state("a") is DrainState.IDLE


@pytest.mark.asyncio
async def test_keyed_drainer_keys_are_independent():
    drainer = KeyedDrainer()
    seen = []

    async def work(name):
        seen.append(name)
        await asyncio.sleep(0)

    await asyncio.gather(drainer.run("a", lambda: work("a")), drainer.run("b", lambda: work("b")))

    assert sorted(seen) == ["a", "b"]
    assert drainer.passes == {"a": 1, "b": 1}

    drainer.forget("a")
    assert drainer.passes == {"b": 1}


@pytest.mark.asyncio
async def test_debouncer_coalesces_a_burst():
    fired = []

    async def callback():
        fired.append(True)

    debouncer = Debouncer(0.01, callback)
    for _ in range(5):
        debouncer.trigger()
    assert debouncer.pending

    await asyncio.sleep(0.1)
    assert fired == [True]
    assert debouncer.fired == 1
    assert not debouncer.pending


@pytest.mark.asyncio
async def test_debouncer_flush_and_cancel():
    fired = []

    async def callback():
        fired.append(True)

    debouncer = Debouncer(60, callback)
    debouncer.trigger()
    await debouncer.flush()
    assert fired == [True]

    debouncer.trigger()
    debouncer.cancel()
    await debouncer.flush()
    assert fired == [True]


def test_attacker_cache_returns_newest_fresh_entry():
    clock = FakeClock()
    cache = AttackerCache(window=10, clock=clock)

    cache.record(1, 100)
    clock.now = 3
    cache.record(1, 200)
    assert len(cache) == 2
    assert cache.peek(1) == 200

    assert cache.pop(1) == 200
    assert cache.pop(1) == 100
    assert cache.pop(1) is None


def test_attacker_cache_discards_stale_entries():
    clock = FakeClock()
    cache = AttackerCache(window=10, clock=clock)
    cache.record(1, 100)
    cache.record(2, 300)

    clock.now = 10
    assert cache.peek(1) == 100
    clock.now = 10.5
    assert cache.pop(1) is None
    assert len(cache) == 1

    cache.clear()
    assert cache.pop(2) is None
