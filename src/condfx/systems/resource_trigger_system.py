from __future__ import annotations

from typing import Dict

import esper

from condfx.components.resources import Resources
from condfx.constants import MODULE_ID
from condfx.debug import DebugCategory, get_logger
from condfx.effects.model import TRIGGER_ARMOR_SLOT_MARKED, TRIGGER_SPENT_HOPE
from condfx.events.bus import (
    EVENT_ACTOR_PRE_UPDATE,
    EVENT_ACTOR_UPDATED,
    EVENT_ITEM_PRE_UPDATE,
    EVENT_ITEM_UPDATED,
    EventBus,
)
from condfx.host import TabletopHost
from condfx.state.triggers import TriggerStore
from condfx.systems.reconciliation import ReconciliationSystem

logger = get_logger(DebugCategory.THRESHOLDS)

# Actor pools whose decrease means "spent" and whose increase means "marked".
SPENT_RESOURCES = {"hope": TRIGGER_SPENT_HOPE}
MARKED_RESOURCES = {"armor": TRIGGER_ARMOR_SLOT_MARKED}


class ResourceTriggerSystem:
    """Infers spend/mark triggers from before/after update snapshots.

    Snapshots are taken in the pre-update hook and dropped as soon as the
    paired post-update hook has compared them. Updates tagged with this
    module's own source are engine bookkeeping and never count as spending.
    """

    def __init__(
        self,
        host: TabletopHost,
        event_bus: EventBus,
        triggers: TriggerStore,
        reconciliation: ReconciliationSystem,
    ) -> None:
        self.host = host
        self.event_bus = event_bus
        self.triggers = triggers
        self.reconciliation = reconciliation
        self._actor_before: Dict[int, Dict[str, int]] = {}
        self._item_before: Dict[int, int] = {}
        self.event_bus.subscribe(EVENT_ACTOR_PRE_UPDATE, self.on_actor_pre_update)
        self.event_bus.subscribe(EVENT_ACTOR_UPDATED, self.on_actor_updated)
        self.event_bus.subscribe(EVENT_ITEM_PRE_UPDATE, self.on_item_pre_update)
        self.event_bus.subscribe(EVENT_ITEM_UPDATED, self.on_item_updated)

    # Actors -------------------------------------------------------------
    def on_actor_pre_update(self, sender, **kwargs):
        actor = kwargs.get("actor")
        changes = kwargs.get("changes") or {}
        if actor is None or not esper.entity_exists(actor):
            return
        resources = esper.try_component(actor, Resources)
        if resources is None:
            return
        watched = {**SPENT_RESOURCES, **MARKED_RESOURCES}
        snapshot = {key: resources.get(key).value for key in changes if key in watched}
        if snapshot:
            self._actor_before[actor] = snapshot

    async def on_actor_updated(self, sender, **kwargs):
        actor = kwargs.get("actor")
        before = self._actor_before.pop(actor, None)
        if before is None:
            return
        try:
            resources = esper.try_component(actor, Resources) if esper.entity_exists(actor) else None
            if resources is None:
                return
            marked = False
            for key, old_value in before.items():
                delta = resources.get(key).value - old_value
                if key in SPENT_RESOURCES and delta < 0 and kwargs.get("source") != MODULE_ID:
                    await self.triggers.mark(actor, SPENT_RESOURCES[key], amount=-delta)
                    marked = True
                elif key in MARKED_RESOURCES and delta > 0:
                    await self.triggers.mark(actor, MARKED_RESOURCES[key], amount=delta)
                    marked = True
            if marked:
                await self.reconciliation.sync_all(actor)
        except Exception:
            logger.exception("Resource trigger inference failed for %s", self.host.actor_name(actor))

    # Armor items --------------------------------------------------------
    def on_item_pre_update(self, sender, **kwargs):
        item_entity = kwargs.get("item")
        changes = kwargs.get("changes") or {}
        item = self.host.item(item_entity)
        if item is None or item.item_type != "armor" or "marks" not in changes:
            return
        self._item_before[item_entity] = item.marks

    async def on_item_updated(self, sender, **kwargs):
        item_entity = kwargs.get("item")
        before = self._item_before.pop(item_entity, None)
        if before is None:
            return
        item = self.host.item(item_entity)
        if item is None or item.owner_entity is None:
            return
        delta = item.marks - before
        if delta <= 0:
            return
        try:
            await self.triggers.mark(item.owner_entity, TRIGGER_ARMOR_SLOT_MARKED, amount=delta)
            await self.reconciliation.sync_all(item.owner_entity)
        except Exception:
            logger.exception("Armor mark inference failed for item %s", item.name)
