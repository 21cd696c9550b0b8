"""Per-actor duration counters for non-permanent effects.

Entries live under the actor's ``durations`` flag keyed by definition id.
They are created lazily on first consumption and only ever count down; the
only way back up is deleting the entry (re-arm, scope loss, combat end).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping

from condfx.conditions.attributes import NUDGEABLE_RESOURCES, nudge_value
from condfx.constants import FLAG_DURATIONS, MODULE_ID
from condfx.debug import DebugCategory, get_logger
from condfx.effects.model import (
    ApplicationKind,
    ApplyStatus,
    AttributeCondition,
    Countdown,
    EffectDefinition,
    EndOfCombat,
    NextDamage,
    NextRoll,
    Once,
    Permanent,
    SUBJECT_SELF,
    TickEvent,
    Uses,
    initial_remaining,
)
from condfx.errors import FlagWriteError
from condfx.events.bus import EVENT_DURATION_CONSUMED, EventBus
from condfx.host import TabletopHost
from condfx.state.flags import FlagStore
from condfx.utils.coerce import coerce_int

logger = get_logger(DebugCategory.CORE)

REUSABLE_DURATIONS = (Once, Uses, NextRoll, NextDamage)


@dataclass(slots=True)
class DurationEntry:
    mode: str
    remaining: int | None = None
    combat_id: str | None = None

    @property
    def exhausted(self) -> bool:
        return self.remaining is not None and self.remaining <= 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"mode": self.mode}
        if self.remaining is not None:
            data["remaining"] = self.remaining
        if self.combat_id is not None:
            data["combatId"] = self.combat_id
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DurationEntry":
        remaining = data.get("remaining")
        return cls(
            mode=str(data.get("mode") or ""),
            remaining=None if remaining is None else max(0, coerce_int(remaining, 0)),
            combat_id=data.get("combatId"),
        )


class DurationStore:
    def __init__(self, host: TabletopHost, flags: FlagStore, event_bus: EventBus) -> None:
        self.host = host
        self.flags = flags
        self.event_bus = event_bus

    # Raw entries --------------------------------------------------------
    def entries(self, actor: int | None) -> Dict[str, DurationEntry]:
        stored = self.flags.get(actor, FLAG_DURATIONS, {})
        if not isinstance(stored, dict):
            return {}
        return {
            definition_id: DurationEntry.from_dict(data)
            for definition_id, data in stored.items()
            if isinstance(data, dict)
        }

    def get(self, actor: int | None, definition_id: str) -> DurationEntry | None:
        data = self.flags.get(actor, f"{FLAG_DURATIONS}.{definition_id}")
        if not isinstance(data, dict):
            return None
        return DurationEntry.from_dict(data)

    async def set(self, actor: int, definition_id: str, entry: DurationEntry) -> bool:
        try:
            await self.flags.set(actor, f"{FLAG_DURATIONS}.{definition_id}", entry.to_dict())
        except FlagWriteError as exc:
            logger.error("Could not write duration for %s on %s: %s", definition_id, actor, exc)
            return False
        return True

    async def delete(self, actor: int, *definition_ids: str) -> bool:
        if not definition_ids:
            return False
        try:
            await self.flags.update(actor, remove=[f"{FLAG_DURATIONS}.{i}" for i in definition_ids])
        except FlagWriteError as exc:
            logger.error("Could not delete durations %s on %s: %s", definition_ids, actor, exc)
            return False
        logger.debug("Deleted duration entries %s on %s", definition_ids, actor)
        return True

    # Gates --------------------------------------------------------------
    def can_apply(self, actor: int, definition: EffectDefinition) -> bool:
        duration = definition.duration
        if isinstance(duration, Permanent):
            return True
        entry = self.get(actor, definition.id)
        if isinstance(duration, EndOfCombat):
            # Unbound entries apply and bind lazily once a combat is running.
            if entry is None or entry.combat_id is None:
                return True
            return entry.combat_id == self.host.active_combat_id()
        if entry is None:
            return True
        return not entry.exhausted

    # Consumption --------------------------------------------------------
    async def consume(
        self,
        actor: int,
        definition: EffectDefinition,
        kind: ApplicationKind,
    ) -> None:
        duration = definition.duration
        if isinstance(duration, Permanent) or isinstance(definition.modifier, ApplyStatus):
            return
        if isinstance(duration, EndOfCombat):
            await self.bind_combat(actor, definition)
            return
        if isinstance(duration, Countdown):
            return
        if isinstance(duration, NextRoll) and kind != ApplicationKind.ROLL:
            return
        if isinstance(duration, NextDamage) and kind != ApplicationKind.DAMAGE:
            return
        if await self._nudge(actor, definition):
            return
        entry = self.get(actor, definition.id)
        if entry is None:
            entry = DurationEntry(mode=duration.mode, remaining=initial_remaining(duration))
        if entry.remaining is None:
            entry.remaining = initial_remaining(duration) or 0
        entry.remaining = max(0, entry.remaining - 1)
        if await self.set(actor, definition.id, entry):
            logger.debug("Consumed %s on %s, %s remaining", definition.id, actor, entry.remaining)
            self.event_bus.emit(
                EVENT_DURATION_CONSUMED, actor=actor, definition_id=definition.id, remaining=entry.remaining
            )

    async def _nudge(self, actor: int, definition: EffectDefinition) -> bool:
        condition = definition.condition
        if not isinstance(condition, AttributeCondition) or condition.subject != SUBJECT_SELF:
            return False
        value = nudge_value(self.host, actor, condition.attribute, condition.operator, condition.value)
        if value is None:
            return False
        resource_key = NUDGEABLE_RESOURCES[condition.attribute]
        await self.host.update_actor(actor, source=MODULE_ID, **{resource_key: value})
        logger.debug("Consumed %s on %s by nudging %s to %s", definition.id, actor, resource_key, value)
        self.event_bus.emit(EVENT_DURATION_CONSUMED, actor=actor, definition_id=definition.id, remaining=None)
        return True

    async def bind_combat(self, actor: int, definition: EffectDefinition) -> bool:
        """Stamp the active combat onto an end-of-combat entry that has none yet."""
        if not isinstance(definition.duration, EndOfCombat):
            return False
        combat_id = self.host.active_combat_id()
        if combat_id is None:
            return False
        entry = self.get(actor, definition.id)
        if entry is not None and entry.combat_id is not None:
            return False
        return await self.set(actor, definition.id, DurationEntry(mode=EndOfCombat.mode, combat_id=combat_id))

    async def tick_countdown(
        self,
        actor: int,
        tick_event: TickEvent,
        definitions: Iterable[EffectDefinition],
    ) -> List[str]:
        ticked: List[str] = []
        for definition in definitions:
            duration = definition.duration
            if not isinstance(duration, Countdown) or duration.tick_on != tick_event:
                continue
            entry = self.get(actor, definition.id)
            if entry is None or entry.remaining is None:
                entry = DurationEntry(mode=Countdown.mode, remaining=duration.ticks)
            if entry.remaining <= 0:
                continue
            entry.remaining -= 1
            if await self.set(actor, definition.id, entry):
                ticked.append(definition.id)
                logger.debug("Countdown %s on %s ticked to %s", definition.id, actor, entry.remaining)
        return ticked

    # Re-arm and cleanup -------------------------------------------------
    async def rearm(
        self,
        actor: int,
        definition: EffectDefinition,
        *,
        condition_met: bool,
        has_live_record: bool,
        previously_met: bool | None = None,
        in_scope: bool = True,
    ) -> bool:
        """Delete an exhausted reusable entry so the effect can fire again.

        Re-arms when the definition left scope, its condition is false, its
        condition just turned true, or it holds with no live record left.
        """
        if not isinstance(definition.duration, REUSABLE_DURATIONS):
            return False
        entry = self.get(actor, definition.id)
        if entry is None or not entry.exhausted:
            return False
        transitioned = previously_met is False and condition_met
        if in_scope and condition_met and has_live_record and not transitioned:
            return False
        return await self.delete(actor, definition.id)

    async def prune_out_of_scope(self, actor: int, in_scope_ids: Iterable[str]) -> List[str]:
        keep = set(in_scope_ids)
        stale = [definition_id for definition_id in self.entries(actor) if definition_id not in keep]
        if stale and await self.delete(actor, *stale):
            return stale
        return []

    async def expire_combat_entries(self, actor: int, current_combat_id: str | None) -> List[str]:
        """Drop end-of-combat entries bound to a combat that is no longer current."""
        expired = [
            definition_id
            for definition_id, entry in self.entries(actor).items()
            if entry.mode == EndOfCombat.mode
            and (current_combat_id is None or (entry.combat_id is not None and entry.combat_id != current_combat_id))
        ]
        if expired and await self.delete(actor, *expired):
            return expired
        return []
