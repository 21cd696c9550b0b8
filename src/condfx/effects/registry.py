from __future__ import annotations

import copy
import uuid
from typing import Any, Dict, Iterable, List, Mapping

from condfx.constants import SETTINGS_KEY
from condfx.debug import DebugCategory, get_logger
from condfx.effects.model import EffectDefinition
from condfx.host import TabletopHost
from condfx.state.flags import FlagStore

logger = get_logger(DebugCategory.CORE)


def default_definition_data() -> Dict[str, Any]:
    """Template every new definition is merged over."""
    return {
        "id": _random_id(),
        "name": "New Conditional Effect",
        "description": "",
        "enabled": True,
        "duration": {
            "mode": "permanent",
            "uses": 1,
            "countdownTicks": 3,
            "countdownTickOn": "round_start",
        },
        "condition": {
            "type": "always",
            "subject": "target",
            "status": "vulnerable",
            "attribute": "hope",
            "operator": ">=",
            "value": 1,
            "range": "close",
            "rangeMode": "within",
            "rangeSubject": "target",
            "rangeCount": 1,
            "weaponSlot": "any",
            "incomingDamageType": "any",
            "threshold": "major",
        },
        "effect": {
            "type": "damage_bonus",
            "applyTo": "self",
            "damageType": "physical",
            "incomingDamageType": "any",
            "dice": "",
            "bonus": 0,
            "rollBonus": 0,
            "thresholdMajor": 0,
            "thresholdSevere": 0,
            "defenseBonus": 0,
            "statusToApply": "vulnerable",
            "applyStatus": "vulnerable",
            "damageMultiplier": 2,
            "traitFilter": "any",
            "actionTypeFilter": "any",
            "proficiencyBonus": 1,
            "stressAmount": 1,
            "chainEffectIds": [],
        },
    }


def _random_id() -> str:
    return uuid.uuid4().hex[:16]


def deep_merge(base: Mapping[str, Any], changes: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge ``changes`` into a copy of ``base``; nested dicts merge, everything else replaces."""
    merged = copy.deepcopy(dict(base))
    for key, value in (changes or {}).items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class EffectCatalog:
    """World-scoped list of effect definitions.

    The whole list is stored as one world setting; every mutation rewrites it.
    """

    def __init__(self, host: TabletopHost, flags: FlagStore) -> None:
        self.host = host
        self.flags = flags

    # Lookup -------------------------------------------------------------
    def raw_definitions(self) -> List[Dict[str, Any]]:
        stored = self.flags.get(self.host.world_settings_entity(), SETTINGS_KEY, [])
        return [entry for entry in stored or [] if isinstance(entry, dict)]

    def list_definitions(self) -> List[EffectDefinition]:
        return [EffectDefinition.from_dict(entry) for entry in self.raw_definitions()]

    def get_definition(self, definition_id: str | None) -> EffectDefinition | None:
        if not definition_id:
            return None
        for entry in self.raw_definitions():
            if entry.get("id") == definition_id:
                return EffectDefinition.from_dict(entry)
        return None

    def get_many(self, definition_ids: Iterable[str]) -> List[EffectDefinition]:
        wanted = set(definition_ids)
        if not wanted:
            return []
        return [definition for definition in self.list_definitions() if definition.id in wanted]

    # Mutation -----------------------------------------------------------
    async def save_all(self, entries: Iterable[Mapping[str, Any]]) -> None:
        await self.flags.set(
            self.host.world_settings_entity(),
            SETTINGS_KEY,
            [dict(entry) for entry in entries],
        )

    async def create(self, data: Mapping[str, Any] | None = None) -> EffectDefinition:
        entry = deep_merge(default_definition_data(), data or {})
        entry["id"] = _random_id()
        entries = self.raw_definitions()
        entries.append(entry)
        await self.save_all(entries)
        logger.debug("Created effect definition %s (%s)", entry["id"], entry.get("name"))
        return EffectDefinition.from_dict(entry)

    async def update(self, definition_id: str, changes: Mapping[str, Any]) -> EffectDefinition | None:
        entries = self.raw_definitions()
        for index, entry in enumerate(entries):
            if entry.get("id") != definition_id:
                continue
            updated = deep_merge(entry, changes)
            updated["id"] = definition_id
            entries[index] = updated
            await self.save_all(entries)
            return EffectDefinition.from_dict(updated)
        return None

    async def delete(self, definition_id: str) -> bool:
        entries = self.raw_definitions()
        remaining = [entry for entry in entries if entry.get("id") != definition_id]
        if len(remaining) == len(entries):
            return False
        await self.save_all(remaining)
        return True
