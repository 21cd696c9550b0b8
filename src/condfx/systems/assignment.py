from __future__ import annotations

from typing import Any, Dict, List, Set

import esper

from condfx.components.item import Item
from condfx.constants import (
    ACTOR_ADVERSARY,
    ACTOR_CHARACTER,
    APPLICABLE_ITEM_TYPES,
    FLAG_ACTOR,
    FLAG_ASSIGNED,
    FLAG_NPC_TOGGLES,
    FLAG_PC_TOGGLES,
    FLAG_SCENE_OFF,
    SCENE_FLAG,
)
from condfx.debug import DebugCategory, get_logger
from condfx.effects.model import EffectDefinition
from condfx.effects.registry import EffectCatalog
from condfx.host import TabletopHost
from condfx.state.flags import FlagStore

logger = get_logger(DebugCategory.CORE)


def _id_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item) for item in value if item]


def _toggled(ids: List[str], definition_id: str, enabled: bool) -> List[str]:
    ids = [existing for existing in ids if existing != definition_id]
    if enabled:
        ids.append(definition_id)
    return ids


class SceneOverrides:
    """Scene-wide switches on the active scene.

    ``sceneDisabled`` wins over everything. ``pcToggles``/``npcToggles`` turn a
    definition on for every actor of that class. The legacy ``sceneOverrides``
    map is honoured only while neither toggle list exists.
    """

    def __init__(self, host: TabletopHost, flags: FlagStore) -> None:
        self.host = host
        self.flags = flags

    @property
    def scene(self) -> int | None:
        return self.host.active_scene()

    def disabled(self) -> List[str]:
        return _id_list(self.flags.get(self.scene, FLAG_SCENE_OFF, []))

    def pc_toggles(self) -> List[str]:
        return _id_list(self.flags.get(self.scene, FLAG_PC_TOGGLES, []))

    def npc_toggles(self) -> List[str]:
        return _id_list(self.flags.get(self.scene, FLAG_NPC_TOGGLES, []))

    def toggles_for(self, actor_kind: str | None) -> List[str]:
        if actor_kind == ACTOR_CHARACTER:
            return self.pc_toggles()
        if actor_kind == ACTOR_ADVERSARY:
            return self.npc_toggles()
        return []

    def has_toggle_lists(self) -> bool:
        scene = self.scene
        return self.flags.has(scene, FLAG_PC_TOGGLES) or self.flags.has(scene, FLAG_NPC_TOGGLES)

    def legacy_overrides(self) -> Dict[str, bool]:
        stored = self.flags.get(self.scene, SCENE_FLAG, {})
        if not isinstance(stored, dict):
            return {}
        return {str(key): bool(value) for key, value in stored.items()}

    # Writes -------------------------------------------------------------
    async def _toggle(self, key: str, definition_id: str, enabled: bool) -> bool:
        scene = self.scene
        if scene is None:
            return False
        await self.flags.modify(
            scene, key, lambda current: _toggled(_id_list(current), definition_id, enabled), []
        )
        return True

    async def set_disabled(self, definition_id: str, disabled: bool) -> bool:
        return await self._toggle(FLAG_SCENE_OFF, definition_id, disabled)

    async def set_pc_toggle(self, definition_id: str, enabled: bool) -> bool:
        return await self._toggle(FLAG_PC_TOGGLES, definition_id, enabled)

    async def set_npc_toggle(self, definition_id: str, enabled: bool) -> bool:
        return await self._toggle(FLAG_NPC_TOGGLES, definition_id, enabled)

    async def set_legacy_override(self, definition_id: str, value: bool | None) -> bool:
        scene = self.scene
        if scene is None:
            return False

        def apply(current: Any) -> Dict[str, bool]:
            overrides = dict(current) if isinstance(current, dict) else {}
            if value is None:
                overrides.pop(definition_id, None)
            else:
                overrides[definition_id] = bool(value)
            return overrides

        await self.flags.modify(scene, SCENE_FLAG, apply, {})
        return True

    async def migrate_legacy(self) -> bool:
        """Fold the legacy on/off map into the toggle and disabled lists."""
        scene = self.scene
        if scene is None:
            return False
        migrated = False

        def build(read):
            nonlocal migrated
            legacy = read(SCENE_FLAG, None)
            if not isinstance(legacy, dict):
                return {}, ()
            pcs = _id_list(read(FLAG_PC_TOGGLES, []))
            npcs = _id_list(read(FLAG_NPC_TOGGLES, []))
            disabled = _id_list(read(FLAG_SCENE_OFF, []))
            for definition_id, enabled in legacy.items():
                if enabled:
                    pcs = _toggled(pcs, definition_id, True)
                    npcs = _toggled(npcs, definition_id, True)
                else:
                    disabled = _toggled(disabled, definition_id, True)
            migrated = True
            values = {FLAG_PC_TOGGLES: pcs, FLAG_NPC_TOGGLES: npcs, FLAG_SCENE_OFF: disabled}
            return values, (SCENE_FLAG,)

        await self.flags.transact(scene, build)
        if migrated:
            logger.info("Migrated legacy scene overrides on scene %s", scene)
        return migrated

    async def clear(self) -> bool:
        scene = self.scene
        if scene is None:
            return False
        await self.flags.update(
            scene, remove=(SCENE_FLAG, FLAG_SCENE_OFF, FLAG_PC_TOGGLES, FLAG_NPC_TOGGLES)
        )
        return True


class AssignmentResolver:
    """Narrows the catalog to the definitions in scope for an actor."""

    def __init__(self, host: TabletopHost, flags: FlagStore, catalog: EffectCatalog) -> None:
        self.host = host
        self.flags = flags
        self.catalog = catalog
        self.scene_overrides = SceneOverrides(host, flags)

    @staticmethod
    def is_item_active(item: Item) -> bool:
        if item.item_type in ("weapon", "armor"):
            return item.equipped
        if item.item_type == "domainCard":
            return not item.in_vault
        return item.item_type == "feature"

    def is_definition_active(self, definition: EffectDefinition) -> bool:
        if definition.id in self.scene_overrides.disabled():
            return False
        if not self.scene_overrides.has_toggle_lists():
            legacy = self.scene_overrides.legacy_overrides()
            if definition.id in legacy:
                return legacy[definition.id]
        return definition.enabled

    def assigned_ids(self, actor: int) -> Set[str]:
        """Every id reachable from the actor's class toggles, active items and own flag."""
        ids: Set[str] = set(self.scene_overrides.toggles_for(self.host.actor_kind(actor)))
        for item_entity, item in self.host.items(actor):
            if item.item_type not in APPLICABLE_ITEM_TYPES or not self.is_item_active(item):
                continue
            ids.update(_id_list(self.flags.get(item_entity, FLAG_ASSIGNED, [])))
        ids.update(_id_list(self.flags.get(actor, FLAG_ACTOR, [])))
        return ids

    def resolve_in_scope(self, actor: int | None) -> List[EffectDefinition]:
        if actor is None or self.host.actor(actor) is None:
            return []
        assigned = self.assigned_ids(actor)
        if not assigned:
            return []
        return [
            definition
            for definition in self.catalog.get_many(assigned)
            if self.is_definition_active(definition)
        ]

    def uses_range_conditions(self, actor: int) -> bool:
        return any(
            definition.condition.kind == "range"
            for definition in self.resolve_in_scope(actor)
        )

    # Assignment ---------------------------------------------------------
    def _carrier_key(self, carrier: int) -> str:
        return FLAG_ASSIGNED if esper.has_component(carrier, Item) else FLAG_ACTOR

    def assignments(self, carrier: int) -> List[str]:
        return _id_list(self.flags.get(carrier, self._carrier_key(carrier), []))

    async def assign(self, carrier: int, definition_id: str) -> bool:
        if not self.host.entity_exists(carrier):
            return False
        key = self._carrier_key(carrier)
        added = False

        def add(current: Any) -> List[str]:
            nonlocal added
            ids = _id_list(current)
            if definition_id not in ids:
                ids.append(definition_id)
                added = True
            return ids

        await self.flags.modify(carrier, key, add, [])
        if not added:
            logger.debug("Effect %s is already assigned to %s", definition_id, carrier)
        return added

    async def unassign(self, carrier: int, definition_id: str) -> bool:
        if not self.host.entity_exists(carrier):
            return False
        key = self._carrier_key(carrier)
        removed = False

        def drop(current: Any) -> List[str]:
            nonlocal removed
            ids = _id_list(current)
            removed = definition_id in ids
            return [existing for existing in ids if existing != definition_id]

        await self.flags.modify(carrier, key, drop, [])
        return removed
