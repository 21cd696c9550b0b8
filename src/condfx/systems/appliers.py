"""Direct application of transient modifiers to in-flight computations."""
from __future__ import annotations

import math
from fractions import Fraction
from typing import Iterable, List

from condfx.constants import BROAD_DAMAGE_TYPES, HIT_POINTS_PART, UNMERGED_DAMAGE_TYPES, AdvMode
from condfx.debug import DebugCategory, get_logger
from condfx.effects.model import (
    Advantage,
    DamageBonus,
    DamageMultiplier,
    Disadvantage,
    EffectDefinition,
    Modifier,
    RollBonus,
    StatusOnHit,
    StressOnHit,
)
from condfx.host import TabletopHost
from condfx.snapshots import DamageConfig, DamagePart, RollConfig, RollModifier

damage_logger = get_logger(DebugCategory.DAMAGE)
hit_logger = get_logger(DebugCategory.ON_HIT)
hooks_logger = get_logger(DebugCategory.HOOKS)


# Rolls --------------------------------------------------------------------
def roll_filters_match(modifier: Modifier, roll: RollConfig) -> bool:
    trait_filter = getattr(modifier, "trait_filter", "any")
    action_filter = getattr(modifier, "action_type_filter", "any")
    if trait_filter and trait_filter != "any" and trait_filter != roll.trait:
        return False
    if action_filter and action_filter != "any" and action_filter != roll.roll_kind:
        return False
    return True


def apply_roll_modifier(roll: RollConfig, definition: EffectDefinition) -> bool:
    """Mutate ``roll`` for one roll-type modifier. Advantage beats disadvantage."""
    modifier = definition.modifier
    if isinstance(modifier, Advantage):
        roll.advantage = AdvMode.ADVANTAGE
    elif isinstance(modifier, Disadvantage):
        if roll.advantage == AdvMode.ADVANTAGE:
            return False
        roll.advantage = AdvMode.DISADVANTAGE
    elif isinstance(modifier, RollBonus):
        if not modifier.bonus:
            return False
        roll.base_modifiers.append(RollModifier(label=definition.name, value=modifier.bonus))
    else:
        return False
    hooks_logger.debug("Applied %s from '%s' to roll %s", modifier.kind, definition.name, roll.roll_id)
    return True


# Damage formula -----------------------------------------------------------
def part_accepts(part: DamagePart, damage_type: str) -> bool:
    if part.apply_to != HIT_POINTS_PART:
        return False
    if damage_type in BROAD_DAMAGE_TYPES:
        return True
    tags = part.type_tags()
    return not tags or damage_type in tags


def merge_damage_type(part: DamagePart, damage_type: str) -> None:
    """Add ``damage_type`` to the part's tags, keeping the collection's shape."""
    if not damage_type or damage_type in UNMERGED_DAMAGE_TYPES:
        return
    if damage_type in part.type_tags():
        return
    current = part.damage_types
    if isinstance(current, set):
        current.add(damage_type)
    elif isinstance(current, list):
        current.append(damage_type)
    elif isinstance(current, dict):
        current[damage_type] = damage_type
    elif isinstance(current, (frozenset, tuple)):
        part.damage_types = type(current)((*current, damage_type))
    else:
        part.damage_types = [damage_type]


def apply_damage_bonus(config: DamageConfig, definition: EffectDefinition) -> bool:
    """Append the bonus formula to every compatible part. True if any part took it."""
    modifier = definition.modifier
    if not isinstance(modifier, DamageBonus):
        return False
    formula = modifier.formula
    if not formula:
        return False
    touched = False
    for part in config.parts:
        if not part_accepts(part, modifier.damage_type):
            continue
        merge_damage_type(part, modifier.damage_type)
        part.extra_formula = f"{part.extra_formula} + {formula}" if part.extra_formula else formula
        touched = True
    if touched:
        damage_logger.debug("Damage bonus '%s' from '%s'", formula, definition.name)
    return touched


# Damage taken -------------------------------------------------------------
def multiplier_matches(modifier: DamageMultiplier, part_types: Iterable[str]) -> bool:
    if modifier.incoming_damage_type in ("any", ""):
        return True
    return modifier.incoming_damage_type in set(part_types)


def multiply_total(total: int, multiplier: float) -> int:
    # Through str() 1.1 stays 11/10 instead of its binary float.
    return math.ceil(total * Fraction(str(multiplier)))


# On hit -------------------------------------------------------------------
async def apply_on_hit(host: TabletopHost, definition: EffectDefinition, targets: Iterable[int]) -> List[int]:
    """Apply a status or stress on-hit modifier to each target; returns who received it."""
    modifier = definition.modifier
    applied: List[int] = []
    for target in targets:
        if host.actor(target) is None:
            continue
        if isinstance(modifier, StatusOnHit):
            if not modifier.status:
                return applied
            await host.toggle_status(target, modifier.status, active=True)
            hit_logger.debug("Applied status '%s' to %s", modifier.status, host.actor_name(target))
        elif isinstance(modifier, StressOnHit):
            if modifier.amount <= 0:
                return applied
            pool = host.resource(target, "stress")
            if pool is None:
                continue
            await host.update_actor(target, stress=pool.value + modifier.amount)
            hit_logger.debug("Applied %d stress to %s", modifier.amount, host.actor_name(target))
        else:
            return applied
        applied.append(target)
    return applied
