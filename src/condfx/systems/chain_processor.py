from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

from condfx.conditions.context import EvaluationContext
from condfx.conditions.evaluator import ConditionEvaluator
from condfx.debug import DebugCategory, get_logger
from condfx.effects.model import (
    ApplicationKind,
    DamageBonus,
    DamageMultiplier,
    EffectDefinition,
    ON_HIT_MODIFIER_TYPES,
    ROLL_MODIFIER_TYPES,
)
from condfx.effects.registry import EffectCatalog
from condfx.host import TabletopHost
from condfx.settings import EngineSettings
from condfx.snapshots import DamageConfig, RollConfig, TakeDamageConfig
from condfx.state.duration import DurationStore
from condfx.state.triggers import TriggerStore
from condfx.systems.appliers import (
    apply_damage_bonus,
    apply_on_hit,
    apply_roll_modifier,
    multiplier_matches,
    multiply_total,
    roll_filters_match,
)
from condfx.systems.assignment import AssignmentResolver

logger = get_logger(DebugCategory.CORE)


@dataclass(slots=True)
class ChainTargets:
    """Live computations a chained modifier may write into."""

    roll: RollConfig | None = None
    damage: DamageConfig | None = None
    take_damage: TakeDamageConfig | None = None
    hit_targets: Sequence[int] = field(default_factory=tuple)


class ChainProcessor:
    """Fires a definition's chained definitions against the same context.

    Chained applications skip confirmation prompts. Recursion stops once
    ``depth`` reaches the configured limit.
    """

    def __init__(
        self,
        host: TabletopHost,
        catalog: EffectCatalog,
        resolver: AssignmentResolver,
        evaluator: ConditionEvaluator,
        durations: DurationStore,
        triggers: TriggerStore,
        settings: EngineSettings,
    ) -> None:
        self.host = host
        self.catalog = catalog
        self.resolver = resolver
        self.evaluator = evaluator
        self.durations = durations
        self.triggers = triggers
        self.settings = settings

    async def process_chains(
        self,
        actor: int,
        parent: EffectDefinition,
        ctx: EvaluationContext,
        kind: ApplicationKind,
        depth: int = 0,
        targets: ChainTargets | None = None,
    ) -> List[str]:
        """Apply chained definitions; returns the ids applied at every level."""
        if depth >= self.settings.chain_depth_limit:
            if parent.chain_effect_ids:
                logger.debug("Chain from '%s' stopped at depth %d", parent.name, depth)
            return []
        targets = targets or ChainTargets()
        applied: List[str] = []
        for chain_id in parent.chain_effect_ids:
            definition = self.catalog.get_definition(chain_id)
            if definition is None or not self.resolver.is_definition_active(definition):
                continue
            if not self.durations.can_apply(actor, definition):
                continue
            if not self.evaluator.evaluate(definition.condition, ctx):
                continue
            if not await self._apply(definition, ctx, targets):
                continue
            applied.append(definition.id)
            logger.debug("Chained '%s' from '%s' at depth %d", definition.name, parent.name, depth + 1)
            await self.durations.consume(actor, definition, kind)
            await self.triggers.clear_for_condition(definition.condition, ctx)
            applied.extend(await self.process_chains(actor, definition, ctx, kind, depth + 1, targets))
        return applied

    async def _apply(self, definition: EffectDefinition, ctx: EvaluationContext, targets: ChainTargets) -> bool:
        modifier = definition.modifier
        if isinstance(modifier, ROLL_MODIFIER_TYPES):
            if targets.roll is None or not roll_filters_match(modifier, targets.roll):
                return False
            return apply_roll_modifier(targets.roll, definition)
        if isinstance(modifier, DamageBonus):
            return targets.damage is not None and apply_damage_bonus(targets.damage, definition)
        if isinstance(modifier, DamageMultiplier):
            if targets.take_damage is None:
                return False
            touched = False
            for part in targets.take_damage.parts:
                if multiplier_matches(modifier, part.type_tags()):
                    part.total = multiply_total(part.total, modifier.multiplier)
                    touched = True
            return touched
        if isinstance(modifier, ON_HIT_MODIFIER_TYPES):
            recipients = list(targets.hit_targets) or ([ctx.target] if ctx.target is not None else [])
            return bool(await apply_on_hit(self.host, definition, recipients))
        return False
