from __future__ import annotations

from typing import List, Tuple

from condfx.conditions.context import EvaluationContext
from condfx.conditions.evaluator import ConditionEvaluator
from condfx.debug import DebugCategory, get_logger
from condfx.effects.model import (
    TRIGGER_INFLICTED_THRESHOLD,
    TRIGGER_TOOK_THRESHOLD,
    ApplicationKind,
    ApplyTo,
    DamageBonus,
    DamageMultiplier,
    EffectDefinition,
    TickEvent,
)
from condfx.events.bus import (
    EVENT_POST_TAKE_DAMAGE,
    EVENT_PRE_DAMAGE_ACTION,
    EVENT_PRE_ROLL_DAMAGE,
    EVENT_PRE_TAKE_DAMAGE,
    EventBus,
)
from condfx.host import TabletopHost
from condfx.settings import EngineSettings
from condfx.snapshots import DamageConfig, TakeDamageConfig
from condfx.state.duration import DurationStore
from condfx.state.triggers import TriggerStore
from condfx.systems.appliers import apply_damage_bonus, multiplier_matches, multiply_total
from condfx.systems.assignment import AssignmentResolver
from condfx.systems.chain_processor import ChainProcessor, ChainTargets
from condfx.systems.reconciliation import ModifierFamily, ReconciliationSystem
from condfx.utils.attacker_cache import AttackerCache

logger = get_logger(DebugCategory.DAMAGE)
threshold_logger = get_logger(DebugCategory.THRESHOLDS)


def threshold_tier(loss: int, tiers: dict) -> str | None:
    """Largest tier whose starting HP loss ``loss`` reaches."""
    reached = None
    for tier, start in sorted(tiers.items(), key=lambda item: item[1]):
        if loss >= start:
            reached = tier
    return reached


class DamageHookSystem:
    """Damage formula bonuses, incoming multipliers and threshold triggers.

    Both formula hooks may fire for one damage roll; definitions already
    applied are remembered on ``DamageConfig.pending_definition_ids`` so the
    second hook skips them.
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
        attacker_cache: AttackerCache,
        settings: EngineSettings,
    ) -> None:
        self.host = host
        self.event_bus = event_bus
        self.resolver = resolver
        self.evaluator = evaluator
        self.durations = durations
        self.triggers = triggers
        self.reconciliation = reconciliation
        self.chains = chains
        self.attacker_cache = attacker_cache
        self.settings = settings
        self.event_bus.subscribe(EVENT_PRE_DAMAGE_ACTION, self.on_pre_damage)
        self.event_bus.subscribe(EVENT_PRE_ROLL_DAMAGE, self.on_pre_damage)
        self.event_bus.subscribe(EVENT_PRE_TAKE_DAMAGE, self.on_pre_take_damage)
        self.event_bus.subscribe(EVENT_POST_TAKE_DAMAGE, self.on_post_take_damage)

    async def on_pre_damage(self, sender, **kwargs):
        config = kwargs.get("config")
        if config is None or config.source_actor is None:
            return
        try:
            await self.assemble_damage(config)
        except Exception:
            logger.exception("Damage formula assembly failed")

    async def on_pre_take_damage(self, sender, **kwargs):
        config = kwargs.get("config")
        if config is None:
            return
        try:
            await self.apply_multipliers(config)
        except Exception:
            logger.exception("Incoming damage handling failed")

    async def on_post_take_damage(self, sender, **kwargs):
        actor = kwargs.get("actor")
        if actor is None:
            return
        try:
            await self.record_damage_taken(actor, kwargs.get("hp_before", 0), kwargs.get("hp_after", 0))
        except Exception:
            logger.exception("Damage-taken handling failed")

    # Formula assembly ---------------------------------------------------
    async def assemble_damage(self, config: DamageConfig) -> List[str]:
        actor = config.source_actor
        targets = config.target_actors()
        ctx = EvaluationContext(
            self_actor=actor,
            target=targets[0] if targets else None,
            item=config.item,
            action=config.action,
        )
        declared = config.declared_damage_types()
        done = set(config.pending_definition_ids or ())

        applied: List[Tuple[int, EffectDefinition, EvaluationContext]] = []
        self._apply_bonuses(actor, ApplyTo.SELF, ctx, config, done, applied)
        for target in targets:
            target_ctx = EvaluationContext(
                self_actor=actor, target=target, item=config.item, action=config.action
            ).swapped()
            if declared:
                target_ctx = target_ctx.with_damage_types(declared)
            self._apply_bonuses(target, ApplyTo.INCOMING, target_ctx, config, done, applied)

        proficiency: List[EffectDefinition] = []
        for definition_id in self.reconciliation.desired_definitions(actor, ModifierFamily.PROFICIENCY):
            if definition_id in done:
                continue
            definition = self.resolver.catalog.get_definition(definition_id)
            if definition is not None:
                proficiency.append(definition)
                done.add(definition_id)
        config.pending_definition_ids = sorted(done)

        for owner, definition, owner_ctx in applied:
            await self.durations.consume(owner, definition, ApplicationKind.DAMAGE)
            await self.triggers.clear_for_condition(definition.condition, owner_ctx)
        for definition in proficiency:
            await self.durations.consume(actor, definition, ApplicationKind.DAMAGE)
        for owner, definition, owner_ctx in applied:
            await self.chains.process_chains(
                owner, definition, owner_ctx, ApplicationKind.DAMAGE, 0, ChainTargets(damage=config)
            )
        if proficiency:
            await self.reconciliation.sync(actor, ModifierFamily.PROFICIENCY)
        return [definition.id for _, definition, _ in applied]

    def _apply_bonuses(
        self,
        owner: int,
        apply_to: ApplyTo,
        ctx: EvaluationContext,
        config: DamageConfig,
        done: set,
        applied: list,
    ) -> None:
        for definition in self.resolver.resolve_in_scope(owner):
            if definition.apply_to != apply_to or not isinstance(definition.modifier, DamageBonus):
                continue
            if definition.id in done:
                continue
            if not self.durations.can_apply(owner, definition):
                continue
            if not self.evaluator.evaluate(definition.condition, ctx):
                continue
            if apply_damage_bonus(config, definition):
                done.add(definition.id)
                applied.append((owner, definition, ctx))

    # Incoming damage ----------------------------------------------------
    async def apply_multipliers(self, config: TakeDamageConfig) -> List[str]:
        defender = config.target_actor
        attacker = config.source_actor
        base_ctx = EvaluationContext(self_actor=defender, target=attacker, attacker=attacker)
        applied: List[str] = []
        for definition in self.resolver.resolve_in_scope(defender):
            modifier = definition.modifier
            if not isinstance(modifier, DamageMultiplier):
                continue
            if not self.durations.can_apply(defender, definition):
                continue
            matched_types: set = set()
            touched = False
            for part in config.parts:
                part_types = part.type_tags()
                part_ctx = base_ctx.with_damage_types(part_types)
                if not self.evaluator.evaluate(definition.condition, part_ctx):
                    continue
                if not multiplier_matches(modifier, part_types):
                    continue
                before = part.total
                part.total = multiply_total(part.total, modifier.multiplier)
                matched_types.update(part_types)
                touched = True
                logger.debug(
                    "'%s' multiplied %s damage %d -> %d",
                    definition.name, sorted(part_types) or "untyped", before, part.total,
                )
            if not touched:
                continue
            applied.append(definition.id)
            ctx = base_ctx.with_damage_types(matched_types)
            await self.durations.consume(defender, definition, ApplicationKind.DAMAGE)
            await self.triggers.clear_for_condition(definition.condition, ctx)
            await self.chains.process_chains(
                defender, definition, ctx, ApplicationKind.DAMAGE, 0, ChainTargets(take_damage=config)
            )
        return applied

    # Damage taken -------------------------------------------------------
    async def record_damage_taken(self, defender: int, hp_before: int, hp_after: int) -> str | None:
        loss = abs(int(hp_after) - int(hp_before))
        tier = threshold_tier(loss, self.settings.threshold_tiers) if loss else None
        attacker = None
        if tier is not None:
            await self.triggers.mark(defender, TRIGGER_TOOK_THRESHOLD, tier=tier, amount=loss)
            attacker = self.attacker_cache.pop(defender)
            if attacker is not None and self.host.actor(attacker) is not None:
                await self.triggers.mark(attacker, TRIGGER_INFLICTED_THRESHOLD, tier=tier, amount=loss)
                threshold_logger.debug(
                    "%s inflicted %s damage on %s",
                    self.host.actor_name(attacker), tier, self.host.actor_name(defender),
                )
            else:
                attacker = None

        for definition_id in self.reconciliation.desired_definitions(defender, ModifierFamily.THRESHOLD):
            definition = self.resolver.catalog.get_definition(definition_id)
            if definition is not None and definition.apply_to == ApplyTo.SELF:
                await self.durations.consume(defender, definition, ApplicationKind.DAMAGE)

        in_scope = self.resolver.resolve_in_scope(defender)
        await self.durations.tick_countdown(defender, TickEvent.ON_DAMAGE, in_scope)
        await self.durations.tick_countdown(defender, TickEvent.ON_ATTACKED, in_scope)

        await self.reconciliation.sync_all(defender)
        if attacker is not None:
            await self.reconciliation.sync_all(attacker)
        return tier

