"""Per-key serialisation with drain-to-quiescence.

A key moves IDLE -> RUNNING when work starts. A request arriving while it runs
moves it to DIRTY and replaces the queued work; when the running pass finishes
it loops on the queued work until nothing is queued, then returns to IDLE.
"""
from __future__ import annotations

from enum import Enum
from typing import Awaitable, Callable, Dict, Generic, Hashable, TypeVar

K = TypeVar("K", bound=Hashable)
Work = Callable[[], Awaitable[None]]


class DrainState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    DIRTY = "dirty"


class KeyedDrainer(Generic[K]):
    def __init__(self) -> None:
        self._states: Dict[K, DrainState] = {}
        self._queued: Dict[K, Work] = {}
        self.passes: Dict[K, int] = {}

    def state(self, key: K) -> DrainState:
        return self._states.get(key, DrainState.IDLE)

    def is_running(self, key: K) -> bool:
        return self.state(key) is not DrainState.IDLE

    def forget(self, key: K) -> None:
        """Drop the pass count of an idle key."""
        if not self.is_running(key):
            self.passes.pop(key, None)

    def mark_dirty(self, key: K, work: Work | None = None) -> bool:
        """Queue a rerun for a running key. Returns False when the key is idle."""
        if not self.is_running(key):
            return False
        self._states[key] = DrainState.DIRTY
        if work is not None:
            self._queued[key] = work
        return True

    async def run(self, key: K, work: Work) -> bool:
        """Run ``work`` for ``key`` now, or queue it behind the running pass.

        Returns True when this call performed (and drained) the work itself.
        """
        if self.is_running(key):
            self.mark_dirty(key, work)
            return False
        self._states[key] = DrainState.RUNNING
        current = work
        try:
            while True:
                self.passes[key] = self.passes.get(key, 0) + 1
                await current()
                if self._states.get(key) is not DrainState.DIRTY:
                    break
                self._states[key] = DrainState.RUNNING
                current = self._queued.pop(key, current)
        finally:
            self._states.pop(key, None)
            self._queued.pop(key, None)
        return True
