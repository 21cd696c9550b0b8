from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Tuple

from condfx.conditions.context import EvaluationContext
from condfx.conditions.evaluator import ConditionEvaluator
from condfx.debug import DebugCategory, get_logger
from condfx.effects.model import (
    ON_HIT_MODIFIER_TYPES,
    ApplicationKind,
    ApplyTo,
    EffectDefinition,
    StatusOnHit,
    StressOnHit,
)
from condfx.events.bus import EVENT_POST_APPLY_DAMAGE, EVENT_PRE_APPLY_DAMAGE, EventBus
from condfx.host import TabletopHost
from condfx.snapshots import DamageConfig
from condfx.state.duration import DurationStore
from condfx.state.triggers import TriggerStore
from condfx.systems.appliers import apply_on_hit
from condfx.systems.assignment import AssignmentResolver
from condfx.systems.chain_processor import ChainProcessor, ChainTargets
from condfx.systems.reconciliation import ReconciliationSystem
from condfx.utils.attacker_cache import AttackerCache

logger = get_logger(DebugCategory.ON_HIT)


@dataclass(frozen=True, slots=True)
class PromptRequest:
    """Question put to the attacking user before an on-hit effect lands."""

    actor: int
    definition: EffectDefinition
    targets: Tuple[int, ...]

    @property
    def title(self) -> str:
        return self.definition.name

    @property
    def message(self) -> str:
        modifier = self.definition.modifier
        if isinstance(modifier, StatusOnHit):
            return f"Apply '{modifier.status}' to {len(self.targets)} target(s)?"
        if isinstance(modifier, StressOnHit):
            return f"Apply {modifier.amount} stress to {len(self.targets)} target(s)?"
        return f"Apply '{self.definition.name}'?"


Prompter = Callable[[PromptRequest], Awaitable[bool]]


async def confirm_all(request: PromptRequest) -> bool:
    return True


class OnHitSystem:
    """Status and stress applied to hit targets once damage lands.

    Each damage application is resolved in its own task so a confirmation
    left open by one attacker never holds up the host or other attackers.
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
        spawn: Callable[[Awaitable[None]], asyncio.Task],
        prompter: Prompter | None = None,
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
        self.spawn = spawn
        self.prompter = prompter or confirm_all
        self.event_bus.subscribe(EVENT_PRE_APPLY_DAMAGE, self.on_pre_apply_damage)
        self.event_bus.subscribe(EVENT_POST_APPLY_DAMAGE, self.on_post_apply_damage)

    def on_pre_apply_damage(self, sender, **kwargs):
        config = kwargs.get("config")
        if config is None or config.source_actor is None:
            return
        for target in config.targets:
            if target.actor is None or target.hit is False:
                continue
            self.attacker_cache.record(target.actor, config.source_actor)

    def on_post_apply_damage(self, sender, **kwargs):
        config = kwargs.get("config")
        if config is None or config.source_actor is None:
            return
        if not config.hit_actors():
            return
        self.spawn(self._resolve_safely(config))

    async def _resolve_safely(self, config: DamageConfig) -> None:
        try:
            await self.resolve_on_hit(config)
        except Exception:
            logger.exception("On-hit resolution failed for %s", self.host.actor_name(config.source_actor))

    async def resolve_on_hit(self, config: DamageConfig) -> List[str]:
        attacker = config.source_actor
        hit = config.hit_actors()
        if attacker is None or not hit:
            return []
        ctx = EvaluationContext(self_actor=attacker, target=hit[0], item=config.item, action=config.action)
        applied: List[str] = []
        for definition in self.resolver.resolve_in_scope(attacker):
            modifier = definition.modifier
            if definition.apply_to != ApplyTo.SELF or not isinstance(modifier, ON_HIT_MODIFIER_TYPES):
                continue
            if isinstance(modifier, StatusOnHit) and not modifier.status:
                continue
            if isinstance(modifier, StressOnHit) and modifier.amount <= 0:
                continue
            if not self._eligible(attacker, definition, ctx):
                continue
            if not await self._confirm(PromptRequest(actor=attacker, definition=definition, targets=tuple(hit))):
                logger.debug("On-hit '%s' declined", definition.name)
                continue
            # The prompt may have been open across other applications.
            if not self._eligible(attacker, definition, ctx):
                continue
            recipients = await apply_on_hit(self.host, definition, hit)
            if not recipients:
                continue
            applied.append(definition.id)
            await self.durations.consume(attacker, definition, ApplicationKind.DAMAGE)
            await self.triggers.clear_for_condition(definition.condition, ctx)
            await self.chains.process_chains(
                attacker, definition, ctx, ApplicationKind.DAMAGE, 0, ChainTargets(hit_targets=tuple(recipients))
            )
        if applied:
            await self.reconciliation.sync_all(attacker)
        return applied

    def _eligible(self, actor: int, definition: EffectDefinition, ctx: EvaluationContext) -> bool:
        return self.durations.can_apply(actor, definition) and self.evaluator.evaluate(definition.condition, ctx)

    async def _confirm(self, request: PromptRequest) -> bool:
        try:
            return bool(await self.prompter(request))
        except Exception:
            logger.exception("Confirmation prompt for '%s' failed", request.title)
            return False
