from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List

from condfx.debug import DebugCategory, get_logger
from condfx.events.bus import EVENT_TARGETS_CHANGED, EVENT_TOKEN_UPDATED, EventBus
from condfx.host import TabletopHost
from condfx.systems.assignment import AssignmentResolver
from condfx.systems.reconciliation import ReconciliationSystem
from condfx.utils.debounce import Debouncer

logger = get_logger(DebugCategory.CONDITIONS)


class TokenWatchSystem:
    """Resyncs range-conditioned actors after tokens move or targets change.

    Bursts of movement collapse into a single rescan ``delay`` seconds after
    the last event.
    """

    def __init__(
        self,
        host: TabletopHost,
        event_bus: EventBus,
        resolver: AssignmentResolver,
        reconciliation: ReconciliationSystem,
        delay: float,
        spawn: Callable[[Awaitable[None]], asyncio.Task] | None = None,
    ) -> None:
        self.host = host
        self.event_bus = event_bus
        self.resolver = resolver
        self.reconciliation = reconciliation
        self.debouncer = Debouncer(delay, self.rescan, spawn=spawn)
        self.event_bus.subscribe(EVENT_TOKEN_UPDATED, self.on_canvas_changed)
        self.event_bus.subscribe(EVENT_TARGETS_CHANGED, self.on_canvas_changed)

    def on_canvas_changed(self, sender, **kwargs):
        self.debouncer.trigger()

    def watched_actors(self) -> List[int]:
        actors: List[int] = []
        for _, token in self.host.scene_tokens():
            actor = token.actor_entity
            if actor in actors or self.host.actor(actor) is None:
                continue
            if self.resolver.uses_range_conditions(actor):
                actors.append(actor)
        return actors

    async def rescan(self) -> None:
        try:
            actors = self.watched_actors()
            logger.debug("Token rescan: %d range-conditioned actor(s)", len(actors))
            for actor in actors:
                await self.reconciliation.sync_all(actor)
        except Exception:
            logger.exception("Token rescan failed")
