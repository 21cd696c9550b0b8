"""Incremental reconciliation of persistent modifier records.

One sync loop runs per (actor, family). Each pass re-derives the desired set
from scope, condition and duration state, diffs it against the live records
and issues only the deletes and creates needed to close the gap.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Hashable, List, Tuple, Type

from condfx.components.applied_modifier import AppliedModifier, Change
from condfx.conditions.context import EvaluationContext
from condfx.conditions.evaluator import ConditionEvaluator
from condfx.constants import (
    CHANGE_MODE_ADD,
    KEY_DIFFICULTY,
    KEY_EVASION,
    KEY_PROFICIENCY,
    KEY_THRESHOLD_MAJOR,
    KEY_THRESHOLD_SEVERE,
)
from condfx.debug import DebugCategory, get_logger
from condfx.effects.model import (
    ApplyStatus,
    ApplyTo,
    DefenseBonus,
    EffectDefinition,
    EndOfCombat,
    Modifier,
    ProficiencyBonus,
    ThresholdBonus,
)
from condfx.errors import StaleRecordError
from condfx.events.bus import EVENT_SYNC_COMPLETED, EventBus
from condfx.host import TabletopHost
from condfx.state.duration import DurationStore
from condfx.systems.assignment import AssignmentResolver
from condfx.utils.drain import KeyedDrainer


class ModifierFamily:
    DEFENSE = "defense"
    THRESHOLD = "threshold"
    PROFICIENCY = "proficiency"
    STATUS = "status"

    ALL = (DEFENSE, THRESHOLD, PROFICIENCY, STATUS)


_MODIFIER_TYPES: Dict[str, Type[Modifier]] = {
    ModifierFamily.DEFENSE: DefenseBonus,
    ModifierFamily.THRESHOLD: ThresholdBonus,
    ModifierFamily.PROFICIENCY: ProficiencyBonus,
    ModifierFamily.STATUS: ApplyStatus,
}

_LOGGERS = {
    ModifierFamily.DEFENSE: get_logger(DebugCategory.DEFENSE),
    ModifierFamily.THRESHOLD: get_logger(DebugCategory.THRESHOLDS),
    ModifierFamily.PROFICIENCY: get_logger(DebugCategory.CORE),
    ModifierFamily.STATUS: get_logger(DebugCategory.STATUS),
}


def family_of(definition: EffectDefinition) -> str | None:
    for family, modifier_type in _MODIFIER_TYPES.items():
        if isinstance(definition.modifier, modifier_type):
            return family
    return None


def magnitude_of(modifier: Modifier) -> Any:
    """Payload a record stores; falsy means "nothing to apply"."""
    if isinstance(modifier, (DefenseBonus, ProficiencyBonus)):
        return modifier.bonus
    if isinstance(modifier, ThresholdBonus):
        if not modifier.major and not modifier.severe:
            return None
        return (modifier.major, modifier.severe)
    if isinstance(modifier, ApplyStatus):
        return modifier.status or None
    return None


@dataclass(slots=True)
class SyncPlan:
    """Result of the pure half of a sync pass."""

    candidates: List[EffectDefinition]
    condition_met: Dict[str, bool]
    desired: Dict[str, Tuple[EffectDefinition, Any]]


class ReconciliationSystem:
    def __init__(
        self,
        host: TabletopHost,
        event_bus: EventBus,
        resolver: AssignmentResolver,
        evaluator: ConditionEvaluator,
        durations: DurationStore,
    ) -> None:
        self.host = host
        self.event_bus = event_bus
        self.resolver = resolver
        self.evaluator = evaluator
        self.durations = durations
        self.drainer: KeyedDrainer[Tuple[int, str]] = KeyedDrainer()
        self._previous: Dict[Hashable, Dict[str, bool]] = {}

    # Public API ---------------------------------------------------------
    async def sync(self, actor: int, family: str, attacker: int | None = None) -> None:
        """Reconcile one family; overlapping calls for the same key fold into one drain."""
        key = (actor, family)
        await self.drainer.run(key, lambda: self._sync_once(actor, family, attacker))

    async def sync_all(self, actor: int, attacker: int | None = None) -> None:
        if not self.host.entity_exists(actor):
            return
        if attacker is None:
            in_scope = [definition.id for definition in self.resolver.resolve_in_scope(actor)]
            await self.durations.prune_out_of_scope(actor, in_scope)
        for family in ModifierFamily.ALL:
            await self.sync(actor, family, attacker)

    async def sync_everyone(self) -> None:
        for actor in self.host.all_actors():
            await self.sync_all(actor)

    def desired_definitions(self, actor: int, family: str, attacker: int | None = None) -> Dict[str, Any]:
        """Definition id -> magnitude that a pass would leave live right now."""
        plan = self.plan(actor, family, attacker)
        return {definition_id: magnitude for definition_id, (_, magnitude) in plan.desired.items()}

    def defense_delta(self, actor: int, attacker: int | None = None) -> int:
        """Desired defense bonus minus what live records already contribute."""
        desired = sum(self.desired_definitions(actor, ModifierFamily.DEFENSE, attacker).values())
        live = sum(
            record.magnitude or 0 for _, record in self.host.records(actor, ModifierFamily.DEFENSE)
        )
        return desired - live

    def plan(self, actor: int, family: str, attacker: int | None = None) -> SyncPlan:
        modifier_type = _MODIFIER_TYPES[family]
        ctx = EvaluationContext(self_actor=actor, target=attacker, attacker=attacker)
        candidates = [
            definition
            for definition in self.resolver.resolve_in_scope(actor)
            if isinstance(definition.modifier, modifier_type)
            and (
                definition.apply_to == ApplyTo.SELF
                or (attacker is not None and definition.apply_to == ApplyTo.INCOMING)
            )
        ]
        condition_met = {
            definition.id: self.evaluator.evaluate(definition.condition, ctx) for definition in candidates
        }
        desired: Dict[str, Tuple[EffectDefinition, Any]] = {}
        for definition in candidates:
            if not condition_met[definition.id]:
                continue
            if not self.durations.can_apply(actor, definition):
                continue
            magnitude = magnitude_of(definition.modifier)
            if not magnitude:
                continue
            desired[definition.id] = (definition, magnitude)
        return SyncPlan(candidates=candidates, condition_met=condition_met, desired=desired)

    # Sync pass ----------------------------------------------------------
    async def _sync_once(self, actor: int, family: str, attacker: int | None) -> None:
        if self.host.actor(actor) is None:
            return
        logger = _LOGGERS[family]
        key = (actor, family)
        plan = self.plan(actor, family, attacker)
        existing = self._existing_by_source(actor, family)

        previous = self._previous.get(key, {})
        rearmed = False
        for definition in plan.candidates:
            rearmed |= await self.durations.rearm(
                actor,
                definition,
                condition_met=plan.condition_met[definition.id],
                has_live_record=definition.id in existing,
                previously_met=previous.get(definition.id),
            )
        if rearmed:
            plan = self.plan(actor, family, attacker)

        to_delete: List[int] = []
        to_create: List[Tuple[EffectDefinition, Any]] = []
        for source_id, records in existing.items():
            wanted = plan.desired.get(source_id)
            keep = None
            if wanted is not None:
                for record_entity, record in records:
                    if keep is None and record.magnitude == wanted[1]:
                        keep = record_entity
            to_delete.extend(entity for entity, _ in records if entity != keep)
            if wanted is not None and keep is None:
                to_create.append(wanted)
        for definition_id, wanted in plan.desired.items():
            if definition_id not in existing:
                to_create.append(wanted)

        deleted = 0
        for record_entity in to_delete:
            try:
                await self.host.delete_record(record_entity)
                deleted += 1
            except StaleRecordError as exc:
                logger.warning("%s; resyncing %s %s", exc, self.host.actor_name(actor), family)
                self.drainer.mark_dirty(key)
        created = 0
        for definition, magnitude in to_create:
            if self.host.actor(actor) is None:
                break
            await self.host.create_record(self._build_record(actor, family, definition, magnitude))
            created += 1

        if self.host.active_combat() is not None:
            for definition, _ in plan.desired.values():
                if isinstance(definition.duration, EndOfCombat) and self.durations.get(actor, definition.id) is None:
                    await self.durations.bind_combat(actor, definition)

        if self.host.actor(actor) is not None:
            self._previous[key] = dict(plan.condition_met)
        if created or deleted:
            logger.debug(
                "Synced %s for %s: +%d -%d (desired %s)",
                family, self.host.actor_name(actor), created, deleted, sorted(plan.desired),
            )
        self.event_bus.emit(EVENT_SYNC_COMPLETED, actor=actor, family=family, created=created, deleted=deleted)

    def _existing_by_source(self, actor: int, family: str) -> Dict[str, List[Tuple[int, AppliedModifier]]]:
        grouped: Dict[str, List[Tuple[int, AppliedModifier]]] = {}
        for record_entity, record in self.host.records(actor, family):
            grouped.setdefault(record.source_definition_id, []).append((record_entity, record))
        return grouped

    def _build_record(self, actor: int, family: str, definition: EffectDefinition, magnitude: Any) -> AppliedModifier:
        changes: Tuple[Change, ...] = ()
        statuses: Tuple[str, ...] = ()
        if family == ModifierFamily.DEFENSE:
            changes = (Change(self._defense_key(actor), CHANGE_MODE_ADD, int(magnitude)),)
        elif family == ModifierFamily.THRESHOLD:
            major, severe = magnitude
            changes = tuple(
                Change(key, CHANGE_MODE_ADD, value)
                for key, value in ((KEY_THRESHOLD_MAJOR, major), (KEY_THRESHOLD_SEVERE, severe))
                if value
            )
        elif family == ModifierFamily.PROFICIENCY:
            changes = (Change(KEY_PROFICIENCY, CHANGE_MODE_ADD, int(magnitude)),)
        elif family == ModifierFamily.STATUS:
            statuses = (str(magnitude),)
        return AppliedModifier(
            owner_entity=actor,
            family=family,
            source_definition_id=definition.id,
            label=definition.name,
            changes=changes,
            statuses=statuses,
            magnitude=magnitude,
        )

    def _defense_key(self, actor: int) -> str:
        stats = self.host.combat_stats(actor)
        if stats is not None and stats.evasion is None and stats.difficulty is not None:
            return KEY_DIFFICULTY
        return KEY_EVASION

    def forget(self, actor: int) -> None:
        """Drop per-actor bookkeeping once the actor is gone."""
        for family in ModifierFamily.ALL:
            self._previous.pop((actor, family), None)
            self.drainer.forget((actor, family))

