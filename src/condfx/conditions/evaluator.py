from __future__ import annotations

from typing import Iterable, List

from condfx.components.token import Token
from condfx.conditions.attributes import compare, get_numeric_attribute
from condfx.conditions.context import EvaluationContext
from condfx.conditions.ranges import in_band, token_distance
from condfx.debug import DebugCategory, get_logger
from condfx.effects.model import (
    AlwaysCondition,
    AttributeCondition,
    Condition,
    DamageTypeCondition,
    NoDefenseRemainingCondition,
    RangeCondition,
    StatusCondition,
    TriggerCondition,
    WeaponCondition,
)
from condfx.host import TabletopHost
from condfx.settings import EngineSettings
from condfx.state.triggers import TriggerStore

__all__ = ["ConditionEvaluator", "EvaluationContext"]

logger = get_logger(DebugCategory.CONDITIONS)


class ConditionEvaluator:
    """Decides whether a condition holds for a context.

    Missing subjects, tokens or damage types are not errors: they resolve to a
    fixed answer so callers never need to guard.
    """

    def __init__(self, host: TabletopHost, triggers: TriggerStore, settings: EngineSettings) -> None:
        self.host = host
        self.triggers = triggers
        self.settings = settings

    def evaluate(self, condition: Condition, ctx: EvaluationContext) -> bool:
        if isinstance(condition, AlwaysCondition):
            return True
        if isinstance(condition, WeaponCondition):
            return self._weapon(condition, ctx)
        if isinstance(condition, DamageTypeCondition):
            return self._damage_type(condition, ctx)
        if isinstance(condition, RangeCondition):
            return self._range(condition, ctx)
        if isinstance(condition, StatusCondition):
            subject = ctx.subject(condition.subject)
            return subject is not None and self.host.has_status(subject, condition.status)
        if isinstance(condition, AttributeCondition):
            value = get_numeric_attribute(self.host, ctx.subject(condition.subject), condition.attribute)
            if value is None:
                return False
            return compare(value, condition.operator, condition.value)
        if isinstance(condition, TriggerCondition):
            subject = ctx.subject(condition.subject)
            if subject is None:
                return False
            return self.triggers.is_set(subject, condition.trigger, condition.threshold)
        if isinstance(condition, NoDefenseRemainingCondition):
            subject = ctx.subject(condition.subject)
            if subject is None:
                return False
            pool = self.host.resource(subject, "armor")
            return pool is not None and pool.max > 0 and pool.value >= pool.max
        logger.debug("Unknown condition %r evaluates to false", condition)
        return False

    # Variants -----------------------------------------------------------
    def _weapon(self, condition: WeaponCondition, ctx: EvaluationContext) -> bool:
        if condition.slot == "any" or ctx.item is None or ctx.self_actor is None:
            return True
        equipped = self.host.equipped_weapons(ctx.self_actor)
        slot = equipped.index(ctx.item) if ctx.item in equipped else -1
        if condition.slot == "primary":
            return slot == 0
        if condition.slot == "secondary":
            return slot == 1
        return True

    @staticmethod
    def _damage_type(condition: DamageTypeCondition, ctx: EvaluationContext) -> bool:
        if ctx.incoming_damage_types is None or condition.damage_type == "any":
            return True
        return condition.damage_type in ctx.incoming_damage_types

    def _range(self, condition: RangeCondition, ctx: EvaluationContext) -> bool:
        own = self.host.token_for_actor(ctx.self_actor)
        if own is None:
            return False
        own_entity, own_token = own
        thresholds = self.settings.range_thresholds

        def satisfied(token: Token) -> bool:
            distance = token_distance(own_token, token)
            return in_band(distance, condition.mode, condition.band, thresholds)

        if condition.range_subject in ("friends", "enemies"):
            wanted_same = condition.range_subject == "friends"
            found = 0
            for entity, token in self.host.scene_tokens(own_token.scene_entity):
                if entity == own_entity or token.actor_entity == ctx.self_actor:
                    continue
                if (token.disposition == own_token.disposition) != wanted_same:
                    continue
                if satisfied(token):
                    found += 1
                    if found >= condition.count:
                        return True
            return False

        candidates = self._candidate_tokens(condition.range_subject, ctx, own_entity)
        if not candidates:
            return False
        return all(satisfied(token) for token in candidates)

    def _candidate_tokens(self, range_subject: str, ctx: EvaluationContext, own_entity: int) -> List[Token]:
        if range_subject == "attacker":
            return self._tokens_for((ctx.attacker,))
        if range_subject != "target":
            return []
        targeted: List[Token] = []
        for entity in self.host.targeted_tokens():
            token = self.host.token(entity)
            if entity == own_entity or token is None or token.actor_entity == ctx.self_actor:
                continue
            targeted.append(token)
        if targeted:
            return targeted
        return self._tokens_for((ctx.target,))

    def _tokens_for(self, actors: Iterable[int | None]) -> List[Token]:
        tokens: List[Token] = []
        for actor in actors:
            found = self.host.token_for_actor(actor)
            if found is not None:
                tokens.append(found[1])
        return tokens
