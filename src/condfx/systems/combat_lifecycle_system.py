from __future__ import annotations

from typing import Iterable, Set

import esper

from condfx.components.combat import Combat
from condfx.debug import DebugCategory, get_logger
from condfx.effects.model import TickEvent
from condfx.events.bus import EVENT_COMBAT_CREATED, EVENT_COMBAT_DELETED, EVENT_COMBAT_UPDATED, EventBus
from condfx.host import TabletopHost
from condfx.state.duration import DurationStore
from condfx.systems.assignment import AssignmentResolver
from condfx.systems.reconciliation import ReconciliationSystem

logger = get_logger(DebugCategory.CORE)


class CombatLifecycleSystem:
    """Keeps end-of-combat durations and round countdowns in step with encounters.

    Subscribes to EVENT_COMBAT_CREATED, EVENT_COMBAT_UPDATED and
    EVENT_COMBAT_DELETED.
    """

    def __init__(
        self,
        host: TabletopHost,
        event_bus: EventBus,
        resolver: AssignmentResolver,
        durations: DurationStore,
        reconciliation: ReconciliationSystem,
    ) -> None:
        self.host = host
        self.event_bus = event_bus
        self.resolver = resolver
        self.durations = durations
        self.reconciliation = reconciliation
        self.event_bus.subscribe(EVENT_COMBAT_CREATED, self.on_combat_created)
        self.event_bus.subscribe(EVENT_COMBAT_UPDATED, self.on_combat_updated)
        self.event_bus.subscribe(EVENT_COMBAT_DELETED, self.on_combat_deleted)

    async def on_combat_created(self, sender, **kwargs):
        try:
            logger.debug("Combat started; resyncing every actor")
            await self.reconciliation.sync_everyone()
        except Exception:
            logger.exception("Combat start handling failed")

    async def on_combat_updated(self, sender, **kwargs):
        combat_entity = kwargs.get("combat_entity")
        changes = kwargs.get("changes") or {}
        previous = kwargs.get("previous") or {}
        try:
            affected = await self.expire_all(self.host.active_combat_id())
            new_round = changes.get("round")
            old_round = previous.get("round")
            if new_round is not None and old_round is not None and int(new_round) > int(old_round):
                affected |= await self.tick_round(combat_entity)
            for actor in sorted(affected):
                await self.reconciliation.sync_all(actor)
        except Exception:
            logger.exception("Combat update handling failed")

    async def on_combat_deleted(self, sender, **kwargs):
        try:
            await self.expire_all(self.host.active_combat_id())
            await self.reconciliation.sync_everyone()
        except Exception:
            logger.exception("Combat end handling failed")

    async def expire_all(self, current_combat_id: str | None) -> Set[int]:
        """Delete end-of-combat entries bound elsewhere; returns the actors touched."""
        affected: Set[int] = set()
        for actor in self.host.all_actors():
            if await self.durations.expire_combat_entries(actor, current_combat_id):
                affected.add(actor)
        if affected:
            logger.debug("Expired end-of-combat entries on %d actor(s)", len(affected))
        return affected

    async def tick_round(self, combat_entity: int | None) -> Set[int]:
        ticked: Set[int] = set()
        for actor in self._combatants(combat_entity):
            if await self.durations.tick_countdown(
                actor, TickEvent.ROUND_START, self.resolver.resolve_in_scope(actor)
            ):
                ticked.add(actor)
        return ticked

    def _combatants(self, combat_entity: int | None) -> Iterable[int]:
        if combat_entity is None or not esper.entity_exists(combat_entity):
            return []
        combat = esper.try_component(combat_entity, Combat)
        if combat is None:
            return []
        return [actor for actor in combat.combatant_entities if self.host.actor(actor) is not None]
