from __future__ import annotations

from typing import List, Tuple

from condfx.conditions.context import EvaluationContext
from condfx.conditions.evaluator import ConditionEvaluator
from condfx.debug import DebugCategory, get_logger
from condfx.effects.model import (
    PERSISTENT_MODIFIER_TYPES,
    ROLL_MODIFIER_TYPES,
    TRIGGER_ROLLED_CRITICAL,
    TRIGGER_ROLLED_FEAR,
    ApplicationKind,
    ApplyTo,
    DefenseBonus,
    EffectDefinition,
    TickEvent,
)
from condfx.events.bus import EVENT_POST_ROLL, EVENT_PRE_ROLL, EventBus
from condfx.host import TabletopHost
from condfx.snapshots import RollConfig
from condfx.state.duration import DurationStore
from condfx.state.triggers import TriggerStore
from condfx.systems.appliers import apply_roll_modifier, roll_filters_match
from condfx.systems.assignment import AssignmentResolver
from condfx.systems.chain_processor import ChainProcessor, ChainTargets
from condfx.systems.reconciliation import ModifierFamily, ReconciliationSystem

logger = get_logger(DebugCategory.HOOKS)


class RollHookSystem:
    """Applies roll modifiers before a check and marks roll triggers after it.

    Subscribes to EVENT_PRE_ROLL and EVENT_POST_ROLL. Targets of an attack are
    resynced with the attacker in context for the duration of the roll, then
    reverted to attacker-less evaluation once the outcome is known.
    """

    def __init__(
        self,
        host: TabletopHost,
        event_bus: EventBus,
        resolver: AssignmentResolver,
        evaluator: ConditionEvaluator,
        durations: DurationStore,
        triggers: TriggerStore,
        reconciliation: ReconciliationSystem,
        chains: ChainProcessor,
    ) -> None:
        self.host = host
        self.event_bus = event_bus
        self.resolver = resolver
        self.evaluator = evaluator
        self.durations = durations
        self.triggers = triggers
        self.reconciliation = reconciliation
        self.chains = chains
        self.event_bus.subscribe(EVENT_PRE_ROLL, self.on_pre_roll)
        self.event_bus.subscribe(EVENT_POST_ROLL, self.on_post_roll)

    async def on_pre_roll(self, sender, **kwargs):
        roll = kwargs.get("roll")
        if roll is None or roll.source_actor is None:
            return
        try:
            await self.pre_roll(roll)
        except Exception:
            logger.exception("Pre-roll handling failed for roll %s", roll.roll_id)

    async def on_post_roll(self, sender, **kwargs):
        roll = kwargs.get("roll")
        if roll is None or roll.source_actor is None:
            return
        try:
            await self.post_roll(roll)
        except Exception:
            logger.exception("Post-roll handling failed for roll %s", roll.roll_id)

    # Pre-roll -----------------------------------------------------------
    async def pre_roll(self, roll: RollConfig) -> None:
        actor = roll.source_actor
        targets = roll.target_actors()
        ctx = EvaluationContext(
            self_actor=actor,
            target=targets[0] if targets else None,
            item=roll.item,
            action=roll.action,
        )
        chain_targets = ChainTargets(roll=roll)

        applied: List[Tuple[int, EffectDefinition, EvaluationContext]] = []
        chain_parents: List[Tuple[int, EffectDefinition, EvaluationContext]] = []
        for definition in self.resolver.resolve_in_scope(actor):
            if definition.apply_to != ApplyTo.SELF:
                continue
            self._collect(actor, definition, ctx, roll, applied, chain_parents)
        for target in targets:
            target_ctx = EvaluationContext(
                self_actor=actor, target=target, item=roll.item, action=roll.action
            ).swapped()
            for definition in self.resolver.resolve_in_scope(target):
                if definition.apply_to != ApplyTo.INCOMING:
                    continue
                if not isinstance(definition.modifier, ROLL_MODIFIER_TYPES):
                    continue
                self._collect(target, definition, target_ctx, roll, applied, chain_parents)

        for owner, definition, owner_ctx in applied:
            await self.durations.consume(owner, definition, ApplicationKind.ROLL)
            await self.triggers.clear_for_condition(definition.condition, owner_ctx)
        for owner, definition, owner_ctx in applied + chain_parents:
            await self.chains.process_chains(owner, definition, owner_ctx, ApplicationKind.ROLL, 0, chain_targets)

        if roll.is_attack and targets:
            await self._sync_targets_for_attack(roll, actor, targets)

    def _collect(
        self,
        owner: int,
        definition: EffectDefinition,
        ctx: EvaluationContext,
        roll: RollConfig,
        applied: list,
        chain_parents: list,
    ) -> None:
        modifier = definition.modifier
        if isinstance(modifier, ROLL_MODIFIER_TYPES):
            if not roll_filters_match(modifier, roll):
                return
            if not self.durations.can_apply(owner, definition):
                return
            if not self.evaluator.evaluate(definition.condition, ctx):
                return
            if apply_roll_modifier(roll, definition):
                applied.append((owner, definition, ctx))
            return
        if not definition.chain_effect_ids or not isinstance(modifier, PERSISTENT_MODIFIER_TYPES):
            return
        if self.durations.can_apply(owner, definition) and self.evaluator.evaluate(definition.condition, ctx):
            chain_parents.append((owner, definition, ctx))

    async def _sync_targets_for_attack(self, roll: RollConfig, attacker: int, targets: List[int]) -> None:
        # Deltas must be read before the resync lands any records.
        for target_snapshot in roll.targets:
            if target_snapshot.actor is None or target_snapshot.defense is None:
                continue
            delta = self.reconciliation.defense_delta(target_snapshot.actor, attacker)
            if delta:
                target_snapshot.defense += delta
                logger.debug(
                    "Patched defense of %s by %+d for roll %s",
                    self.host.actor_name(target_snapshot.actor), delta, roll.roll_id,
                )
        gates: List[Tuple[int, EffectDefinition]] = []
        for target in targets:
            desired = self.reconciliation.desired_definitions(target, ModifierFamily.DEFENSE, attacker)
            for definition_id in desired:
                definition = self.resolver.catalog.get_definition(definition_id)
                if definition is not None and isinstance(definition.modifier, DefenseBonus):
                    gates.append((target, definition))
            await self.reconciliation.sync_all(target, attacker=attacker)
        roll.synced_targets = list(targets)
        roll.pending_defense_gates = gates

    # Post-roll ----------------------------------------------------------
    async def post_roll(self, roll: RollConfig) -> None:
        actor = roll.source_actor
        outcome = roll.outcome
        if outcome is not None:
            if outcome.with_fear:
                await self.triggers.mark(actor, TRIGGER_ROLLED_FEAR)
            if outcome.critical:
                await self.triggers.mark(actor, TRIGGER_ROLLED_CRITICAL)

        gates = roll.pending_defense_gates or []
        synced = roll.synced_targets or []
        roll.pending_defense_gates = roll.synced_targets = None
        for owner, definition in gates:
            await self.durations.consume(owner, definition, ApplicationKind.ROLL)
        for target in synced:
            await self.reconciliation.sync_all(target)

        ticked = await self.durations.tick_countdown(
            actor, TickEvent.ON_ROLL, self.resolver.resolve_in_scope(actor)
        )
        if ticked:
            await self.reconciliation.sync_all(actor)
