"""Host tabletop collaborator.

Read accessors are synchronous snapshots of the esper world. Write accessors
are coroutines: each one yields to the event loop before touching the world
(the document round trip) and then emits the matching host lifecycle event.
"""
from __future__ import annotations

import asyncio
import uuid
from typing import Any, Iterable

import esper

from condfx.components.actor import Actor
from condfx.components.applied_modifier import AppliedModifier, AppliedModifierList
from condfx.components.combat import Combat
from condfx.components.flags import Flags
from condfx.components.item import Inventory, Item
from condfx.components.resources import CombatStats, Resource, Resources, Traits
from condfx.components.scene import Scene, WorldSettings
from condfx.components.statuses import Statuses
from condfx.components.targeting import UserTargets
from condfx.components.token import Token
from condfx.constants import (
    CHANGE_MODE_ADD,
    KEY_DIFFICULTY,
    KEY_EVASION,
    KEY_PROFICIENCY,
    KEY_THRESHOLD_MAJOR,
    KEY_THRESHOLD_SEVERE,
)
from condfx.errors import StaleRecordError
from condfx.events.bus import (
    EVENT_ACTOR_DELETED,
    EVENT_ACTOR_PRE_UPDATE,
    EVENT_ACTOR_UPDATED,
    EVENT_COMBAT_CREATED,
    EVENT_COMBAT_DELETED,
    EVENT_COMBAT_UPDATED,
    EVENT_EFFECT_CREATED,
    EVENT_EFFECT_DELETED,
    EVENT_ITEM_PRE_UPDATE,
    EVENT_ITEM_UPDATED,
    EVENT_TARGETS_CHANGED,
    EVENT_TOKEN_UPDATED,
    EventBus,
)

_ITEM_FIELDS = ("equipped", "in_vault", "marks", "max_marks")


class TabletopHost:
    """Adapter over the esper world exposing the accessors the engine consumes."""

    def __init__(self, event_bus: EventBus) -> None:
        self.event_bus = event_bus

    # Read accessors -----------------------------------------------------
    @staticmethod
    def entity_exists(entity: int | None) -> bool:
        return entity is not None and esper.entity_exists(entity)

    @staticmethod
    def actor(entity: int | None) -> Actor | None:
        if entity is None:
            return None
        return esper.try_component(entity, Actor) if esper.entity_exists(entity) else None

    def actor_kind(self, entity: int | None) -> str | None:
        actor = self.actor(entity)
        return actor.kind if actor is not None else None

    def actor_name(self, entity: int | None) -> str:
        actor = self.actor(entity)
        return actor.name if actor is not None else f"#{entity}"

    @staticmethod
    def all_actors() -> list[int]:
        return [entity for entity, _ in esper.get_component(Actor)]

    def resource(self, entity: int, key: str) -> Resource | None:
        if key == "armor":
            armor_item = self.equipped_armor(entity)
            if armor_item is not None:
                item = esper.component_for_entity(armor_item, Item)
                return Resource(item.marks, item.max_marks)
        resources = esper.try_component(entity, Resources) if esper.entity_exists(entity) else None
        if resources is None:
            return None
        return resources.get(key)

    @staticmethod
    def trait(entity: int, name: str) -> int | None:
        traits = esper.try_component(entity, Traits) if esper.entity_exists(entity) else None
        if traits is None:
            return None
        return getattr(traits, name, None)

    @staticmethod
    def combat_stats(entity: int) -> CombatStats | None:
        if not esper.entity_exists(entity):
            return None
        return esper.try_component(entity, CombatStats)

    def base_value(self, entity: int, key: str) -> int | None:
        stats = self.combat_stats(entity)
        if stats is None:
            return None
        return {
            KEY_EVASION: stats.evasion,
            KEY_DIFFICULTY: stats.difficulty,
            KEY_PROFICIENCY: stats.proficiency,
            KEY_THRESHOLD_MAJOR: stats.major_threshold,
            KEY_THRESHOLD_SEVERE: stats.severe_threshold,
        }.get(key)

    def effective_value(self, entity: int, key: str) -> int | None:
        """Base value plus every additive change from live records."""
        base = self.base_value(entity, key)
        if base is None:
            return None
        total = base
        for _, record in self.records(entity):
            for change in record.changes:
                if change.key == key and change.mode == CHANGE_MODE_ADD:
                    total += change.value
        return total

    def statuses(self, entity: int | None) -> set[str]:
        if entity is None or not esper.entity_exists(entity):
            return set()
        active: set[str] = set()
        base = esper.try_component(entity, Statuses)
        if base is not None:
            active.update(base.active)
        for _, record in self.records(entity):
            active.update(record.statuses)
        return active

    def has_status(self, entity: int | None, status: str) -> bool:
        return status in self.statuses(entity)

    @staticmethod
    def item(entity: int | None) -> Item | None:
        if entity is None or not esper.entity_exists(entity):
            return None
        return esper.try_component(entity, Item)

    def items(self, actor: int) -> list[tuple[int, Item]]:
        if not esper.entity_exists(actor):
            return []
        inventory = esper.try_component(actor, Inventory)
        if inventory is None:
            return []
        carried: list[tuple[int, Item]] = []
        for item_entity in list(inventory.item_entities):
            item = self.item(item_entity)
            if item is None:
                inventory.item_entities.remove(item_entity)
                continue
            carried.append((item_entity, item))
        return carried

    def equipped_weapons(self, actor: int) -> list[int]:
        return [
            entity for entity, item in self.items(actor)
            if item.item_type == "weapon" and item.equipped
        ]

    def equipped_armor(self, actor: int) -> int | None:
        for entity, item in self.items(actor):
            if item.item_type == "armor" and item.equipped:
                return entity
        return None

    @staticmethod
    def records(actor: int, family: str | None = None) -> list[tuple[int, AppliedModifier]]:
        if not esper.entity_exists(actor):
            return []
        record_list = esper.try_component(actor, AppliedModifierList)
        if record_list is None:
            return []
        found: list[tuple[int, AppliedModifier]] = []
        for record_entity in list(record_list.record_entities):
            if not esper.entity_exists(record_entity):
                continue
            record = esper.try_component(record_entity, AppliedModifier)
            if record is None:
                continue
            if family is not None and record.family != family:
                continue
            found.append((record_entity, record))
        return found

    @staticmethod
    def active_scene() -> int | None:
        for entity, scene in esper.get_component(Scene):
            if scene.active:
                return entity
        return None

    @staticmethod
    def token(entity: int | None) -> Token | None:
        if entity is None or not esper.entity_exists(entity):
            return None
        return esper.try_component(entity, Token)

    def scene_tokens(self, scene: int | None = None) -> list[tuple[int, Token]]:
        if scene is None:
            scene = self.active_scene()
        if scene is None:
            return []
        return [
            (entity, token) for entity, token in esper.get_component(Token)
            if token.scene_entity == scene
        ]

    def token_for_actor(self, actor: int | None, scene: int | None = None) -> tuple[int, Token] | None:
        if actor is None:
            return None
        for entity, token in self.scene_tokens(scene):
            if token.actor_entity == actor:
                return entity, token
        return None

    def targeted_tokens(self) -> list[int]:
        for _, targets in esper.get_component(UserTargets):
            return [entity for entity in targets.token_entities if self.token(entity) is not None]
        return []

    def targeted_actors(self) -> list[int]:
        actors: list[int] = []
        for token_entity in self.targeted_tokens():
            token = self.token(token_entity)
            if token is not None and self.actor(token.actor_entity) is not None:
                actors.append(token.actor_entity)
        return actors

    @staticmethod
    def active_combat() -> tuple[int, Combat] | None:
        for entity, combat in esper.get_component(Combat):
            if combat.active:
                return entity, combat
        return None

    def active_combat_id(self) -> str | None:
        found = self.active_combat()
        return found[1].combat_id if found else None

    @staticmethod
    def world_settings_entity() -> int:
        for entity, _ in esper.get_component(WorldSettings):
            return entity
        return esper.create_entity(WorldSettings(), Flags())

    # Write accessors ----------------------------------------------------
    async def create_record(self, record: AppliedModifier) -> int:
        await asyncio.sleep(0)
        owner = record.owner_entity
        if not esper.entity_exists(owner):
            raise StaleRecordError(owner)
        record_entity = esper.create_entity(record)
        record_list = esper.try_component(owner, AppliedModifierList)
        if record_list is None:
            record_list = AppliedModifierList()
            esper.add_component(owner, record_list)
        record_list.record_entities.append(record_entity)
        await self.event_bus.emit_async(
            EVENT_EFFECT_CREATED,
            actor=owner,
            record_entity=record_entity,
            family=record.family,
            statuses=tuple(record.statuses),
        )
        return record_entity

    async def delete_record(self, record_entity: int) -> None:
        await asyncio.sleep(0)
        if not esper.entity_exists(record_entity):
            raise StaleRecordError(record_entity)
        record = esper.try_component(record_entity, AppliedModifier)
        esper.delete_entity(record_entity, immediate=True)
        if record is None:
            return
        owner = record.owner_entity
        if esper.entity_exists(owner):
            record_list = esper.try_component(owner, AppliedModifierList)
            if record_list is not None and record_entity in record_list.record_entities:
                record_list.record_entities.remove(record_entity)
        await self.event_bus.emit_async(
            EVENT_EFFECT_DELETED,
            actor=owner,
            record_entity=record_entity,
            family=record.family,
            statuses=tuple(record.statuses),
        )

    async def update_actor(self, actor: int, *, source: str | None = None, **values: int) -> None:
        """Set resource current values (``hope=2``, ``hitPoints=3`` ...)."""
        resources = esper.try_component(actor, Resources) if esper.entity_exists(actor) else None
        if resources is None:
            return
        changes = {key: int(value) for key, value in values.items() if resources.get(key) is not None}
        if not changes:
            return
        await self.event_bus.emit_async(EVENT_ACTOR_PRE_UPDATE, actor=actor, changes=dict(changes), source=source)
        await asyncio.sleep(0)
        for key, value in changes.items():
            pool = resources.get(key)
            pool.value = value
            pool.clamp()
        await self.event_bus.emit_async(EVENT_ACTOR_UPDATED, actor=actor, changes=dict(changes), source=source)

    async def update_item(self, item_entity: int, **changes: Any) -> None:
        item = self.item(item_entity)
        if item is None:
            return
        changes = {key: value for key, value in changes.items() if key in _ITEM_FIELDS}
        if not changes:
            return
        await self.event_bus.emit_async(EVENT_ITEM_PRE_UPDATE, item=item_entity, changes=dict(changes))
        await asyncio.sleep(0)
        for key, value in changes.items():
            setattr(item, key, value)
        await self.event_bus.emit_async(EVENT_ITEM_UPDATED, item=item_entity, changes=dict(changes))

    async def toggle_status(self, actor: int, status: str, *, active: bool = True) -> None:
        if not esper.entity_exists(actor):
            return
        statuses = esper.try_component(actor, Statuses)
        if statuses is None:
            statuses = Statuses()
            esper.add_component(actor, statuses)
        if active == (status in statuses.active):
            return
        await asyncio.sleep(0)
        if active:
            statuses.active.add(status)
            event_name = EVENT_EFFECT_CREATED
        else:
            statuses.active.discard(status)
            event_name = EVENT_EFFECT_DELETED
        await self.event_bus.emit_async(
            event_name, actor=actor, record_entity=None, family=None, statuses=(status,)
        )

    async def move_token(self, token_entity: int, x: float, y: float) -> None:
        token = self.token(token_entity)
        if token is None:
            return
        await asyncio.sleep(0)
        token.x = float(x)
        token.y = float(y)
        await self.event_bus.emit_async(EVENT_TOKEN_UPDATED, token=token_entity, changes={"x": x, "y": y})

    async def set_targets(self, token_entities: Iterable[int]) -> None:
        chosen = list(token_entities)
        found = list(esper.get_component(UserTargets))
        if found:
            found[0][1].token_entities = chosen
        else:
            esper.create_entity(UserTargets(token_entities=chosen))
        await self.event_bus.emit_async(EVENT_TARGETS_CHANGED, token_entities=tuple(chosen))

    async def start_combat(self, combatants: Iterable[int], combat_id: str | None = None) -> int:
        combat = Combat(combat_id=combat_id or uuid.uuid4().hex[:16], round=1, combatant_entities=list(combatants))
        await asyncio.sleep(0)
        combat_entity = esper.create_entity(combat)
        await self.event_bus.emit_async(EVENT_COMBAT_CREATED, combat_entity=combat_entity)
        return combat_entity

    async def update_combat(self, combat_entity: int, **changes: int) -> None:
        if not esper.entity_exists(combat_entity):
            return
        combat = esper.component_for_entity(combat_entity, Combat)
        previous = {"round": combat.round, "turn": combat.turn}
        await asyncio.sleep(0)
        for key in ("round", "turn"):
            if key in changes:
                setattr(combat, key, int(changes[key]))
        await self.event_bus.emit_async(
            EVENT_COMBAT_UPDATED, combat_entity=combat_entity, changes=dict(changes), previous=previous
        )

    async def end_combat(self, combat_entity: int) -> None:
        if not esper.entity_exists(combat_entity):
            return
        combat = esper.component_for_entity(combat_entity, Combat)
        await asyncio.sleep(0)
        esper.delete_entity(combat_entity, immediate=True)
        await self.event_bus.emit_async(EVENT_COMBAT_DELETED, combat_entity=combat_entity, combat_id=combat.combat_id)

    async def delete_actor(self, actor: int) -> None:
        """Delete an actor together with the records it owns."""
        if not esper.entity_exists(actor):
            return
        await asyncio.sleep(0)
        for record_entity, _ in self.records(actor):
            esper.delete_entity(record_entity, immediate=True)
        for token_entity, token in list(esper.get_component(Token)):
            if token.actor_entity == actor:
                esper.delete_entity(token_entity, immediate=True)
        esper.delete_entity(actor, immediate=True)
        await self.event_bus.emit_async(EVENT_ACTOR_DELETED, actor=actor)
