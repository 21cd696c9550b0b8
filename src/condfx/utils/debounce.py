from __future__ import annotations

import asyncio
from typing import Awaitable, Callable


class Debouncer:
    """Coalesce bursts of calls into one ``callback`` run after ``delay`` of quiet.

    ``spawn`` schedules the timer coroutine; the engine passes its own so that
    pending timers are visible to ``Engine.drain``.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], Awaitable[None]],
        spawn: Callable[[Awaitable[None]], asyncio.Task] | None = None,
    ) -> None:
        self.delay = max(0.0, float(delay))
        self.callback = callback
        self._spawn = spawn or asyncio.ensure_future
        self._timer: asyncio.Task | None = None
        self.fired = 0

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def trigger(self) -> None:
        if self.pending:
            self._timer.cancel()
        self._timer = self._spawn(self._wait_then_fire())

    def cancel(self) -> None:
        if self.pending:
            self._timer.cancel()
        self._timer = None

    async def flush(self) -> None:
        """Run a pending callback immediately instead of waiting out the delay."""
        if not self.pending:
            return
        self._timer.cancel()
        self._timer = None
        await self._fire()

    async def _wait_then_fire(self) -> None:
        await asyncio.sleep(self.delay)
        self._timer = None
        await self._fire()

    async def _fire(self) -> None:
        self.fired += 1
        await self.callback()
