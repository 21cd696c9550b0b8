"""Closed variant types for effect definitions.

Stored definitions are plain camelCase dicts. ``EffectDefinition.from_dict``
parses each one into exactly one condition, one modifier and one duration
variant; anything unrecognised becomes ``UnknownCondition`` or
``UnknownModifier`` so a single malformed entry never breaks the others.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Mapping, Union

from condfx.utils.coerce import coerce_float, coerce_int


class ApplyTo(str, Enum):
    SELF = "self"
    INCOMING = "incoming"


class ApplicationKind(str, Enum):
    ROLL = "roll"
    DAMAGE = "damage"


class TickEvent(str, Enum):
    ROUND_START = "round_start"
    ON_ROLL = "on_roll"
    ON_ATTACKED = "on_attacked"
    ON_DAMAGE = "on_damage"


SUBJECT_SELF = "self"
SUBJECT_TARGET = "target"

TRIGGER_TOOK_THRESHOLD = "took_threshold"
TRIGGER_INFLICTED_THRESHOLD = "inflicted_threshold"
TRIGGER_ROLLED_FEAR = "rolled_fear"
TRIGGER_ROLLED_CRITICAL = "rolled_critical"
TRIGGER_SPENT_HOPE = "spent_hope"
TRIGGER_ARMOR_SLOT_MARKED = "armor_slot_marked"

TRIGGER_KINDS = (
    TRIGGER_TOOK_THRESHOLD,
    TRIGGER_INFLICTED_THRESHOLD,
    TRIGGER_ROLLED_FEAR,
    TRIGGER_ROLLED_CRITICAL,
    TRIGGER_SPENT_HOPE,
    TRIGGER_ARMOR_SLOT_MARKED,
)
TIERED_TRIGGER_KINDS = (TRIGGER_TOOK_THRESHOLD, TRIGGER_INFLICTED_THRESHOLD)


def _subject(value: Any) -> str:
    return SUBJECT_TARGET if value == SUBJECT_TARGET else SUBJECT_SELF


# Conditions ---------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AlwaysCondition:
    kind: ClassVar[str] = "always"


@dataclass(frozen=True, slots=True)
class StatusCondition:
    kind: ClassVar[str] = "status"
    subject: str
    status: str


@dataclass(frozen=True, slots=True)
class AttributeCondition:
    kind: ClassVar[str] = "attribute"
    subject: str
    attribute: str
    operator: str
    value: float


@dataclass(frozen=True, slots=True)
class RangeCondition:
    kind: ClassVar[str] = "range"
    band: str
    mode: str = "within"
    range_subject: str = "target"
    count: int = 1


@dataclass(frozen=True, slots=True)
class WeaponCondition:
    kind: ClassVar[str] = "weapon"
    slot: str = "any"


@dataclass(frozen=True, slots=True)
class DamageTypeCondition:
    kind: ClassVar[str] = "damage_type"
    damage_type: str = "any"


@dataclass(frozen=True, slots=True)
class TriggerCondition:
    """Reads a one-shot trigger flag; ``threshold`` is set for the tiered kinds."""

    kind: ClassVar[str] = "trigger"
    trigger: str
    subject: str = SUBJECT_SELF
    threshold: str | None = None


@dataclass(frozen=True, slots=True)
class NoDefenseRemainingCondition:
    kind: ClassVar[str] = "no_armor_remaining"
    subject: str = SUBJECT_SELF


@dataclass(frozen=True, slots=True)
class UnknownCondition:
    kind: ClassVar[str] = "unknown"
    type_name: str = ""


Condition = Union[
    AlwaysCondition,
    StatusCondition,
    AttributeCondition,
    RangeCondition,
    WeaponCondition,
    DamageTypeCondition,
    TriggerCondition,
    NoDefenseRemainingCondition,
    UnknownCondition,
]


def parse_condition(data: Mapping[str, Any] | None) -> Condition:
    data = data or {}
    type_name = str(data.get("type") or "always")
    subject = _subject(data.get("subject"))
    if type_name == "always":
        return AlwaysCondition()
    if type_name == "status":
        return StatusCondition(subject=subject, status=str(data.get("status") or ""))
    if type_name == "attribute":
        return AttributeCondition(
            subject=subject,
            attribute=str(data.get("attribute") or ""),
            operator=str(data.get("operator") or ">="),
            value=coerce_float(data.get("value"), 0.0),
        )
    if type_name == "range":
        return RangeCondition(
            band=str(data.get("range") or "close"),
            mode=str(data.get("rangeMode") or "within"),
            range_subject=str(data.get("rangeSubject") or "target"),
            count=max(1, coerce_int(data.get("rangeCount"), 1)),
        )
    if type_name == "weapon":
        return WeaponCondition(slot=str(data.get("weaponSlot") or "any"))
    if type_name == "damage_type":
        return DamageTypeCondition(damage_type=str(data.get("incomingDamageType") or "any"))
    if type_name in TRIGGER_KINDS:
        threshold = None
        if type_name in TIERED_TRIGGER_KINDS:
            threshold = str(data.get("threshold") or "major")
        return TriggerCondition(trigger=type_name, subject=subject, threshold=threshold)
    if type_name == "no_armor_remaining":
        return NoDefenseRemainingCondition(subject=subject)
    return UnknownCondition(type_name=type_name)


# Modifiers ----------------------------------------------------------------
@dataclass(frozen=True, slots=True, kw_only=True)
class Modifier:
    kind: ClassVar[str] = "unknown"
    apply_to: ApplyTo = ApplyTo.SELF
    chain_effect_ids: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class DamageBonus(Modifier):
    kind: ClassVar[str] = "damage_bonus"
    damage_type: str = "physical"
    dice: str = ""
    bonus: int = 0

    @property
    def formula(self) -> str:
        parts: list[str] = []
        dice = self.dice.strip()
        if dice:
            parts.append(dice)
        if self.bonus:
            parts.append(str(self.bonus))
        return " + ".join(parts)


@dataclass(frozen=True, slots=True, kw_only=True)
class DamageMultiplier(Modifier):
    kind: ClassVar[str] = "damage_multiplier"
    multiplier: float = 2.0
    incoming_damage_type: str = "any"


@dataclass(frozen=True, slots=True, kw_only=True)
class ThresholdBonus(Modifier):
    kind: ClassVar[str] = "damage_reduction"
    major: int = 0
    severe: int = 0


@dataclass(frozen=True, slots=True, kw_only=True)
class DefenseBonus(Modifier):
    kind: ClassVar[str] = "defense_bonus"
    bonus: int = 0


@dataclass(frozen=True, slots=True, kw_only=True)
class ProficiencyBonus(Modifier):
    kind: ClassVar[str] = "proficiency_bonus"
    bonus: int = 1


@dataclass(frozen=True, slots=True, kw_only=True)
class StatusOnHit(Modifier):
    kind: ClassVar[str] = "status_on_hit"
    status: str = ""


@dataclass(frozen=True, slots=True, kw_only=True)
class StressOnHit(Modifier):
    kind: ClassVar[str] = "stress_on_hit"
    amount: int = 1


@dataclass(frozen=True, slots=True, kw_only=True)
class ApplyStatus(Modifier):
    kind: ClassVar[str] = "apply_status"
    status: str = ""


@dataclass(frozen=True, slots=True, kw_only=True)
class RollBonus(Modifier):
    kind: ClassVar[str] = "roll_bonus"
    bonus: int = 0
    trait_filter: str = "any"
    action_type_filter: str = "any"


@dataclass(frozen=True, slots=True, kw_only=True)
class Advantage(Modifier):
    kind: ClassVar[str] = "advantage"
    trait_filter: str = "any"
    action_type_filter: str = "any"


@dataclass(frozen=True, slots=True, kw_only=True)
class Disadvantage(Modifier):
    kind: ClassVar[str] = "disadvantage"
    trait_filter: str = "any"
    action_type_filter: str = "any"


@dataclass(frozen=True, slots=True, kw_only=True)
class UnknownModifier(Modifier):
    type_name: str = ""


ROLL_MODIFIER_TYPES = (RollBonus, Advantage, Disadvantage)
ON_HIT_MODIFIER_TYPES = (StatusOnHit, StressOnHit)
PERSISTENT_MODIFIER_TYPES = (DefenseBonus, ThresholdBonus, ProficiencyBonus, ApplyStatus)
# Families that default to ``self`` when a stored definition predates ``applyTo``.
LEGACY_SELF_TYPES = ("defense_bonus", "damage_reduction", "proficiency_bonus")


def resolve_apply_to(data: Mapping[str, Any]) -> ApplyTo:
    """Read ``applyTo``, falling back to the legacy ``beneficial`` flag."""
    effect = data.get("effect") or {}
    value = effect.get("applyTo")
    if value in (ApplyTo.SELF.value, ApplyTo.INCOMING.value):
        return ApplyTo(value)
    if effect.get("type") in LEGACY_SELF_TYPES:
        return ApplyTo.SELF
    return ApplyTo.SELF if data.get("beneficial") is not False else ApplyTo.INCOMING


def parse_modifier(data: Mapping[str, Any]) -> Modifier:
    effect = data.get("effect") or {}
    common = {
        "apply_to": resolve_apply_to(data),
        "chain_effect_ids": tuple(str(i) for i in (effect.get("chainEffectIds") or ()) if i),
    }
    type_name = str(effect.get("type") or "")
    if type_name == "damage_bonus":
        return DamageBonus(
            damage_type=str(effect.get("damageType") or "physical"),
            dice=str(effect.get("dice") or ""),
            bonus=coerce_int(effect.get("bonus"), 0),
            **common,
        )
    if type_name == "damage_multiplier":
        return DamageMultiplier(
            multiplier=coerce_float(effect.get("damageMultiplier"), 2.0),
            incoming_damage_type=str(effect.get("incomingDamageType") or "any"),
            **common,
        )
    if type_name == "damage_reduction":
        return ThresholdBonus(
            major=coerce_int(effect.get("thresholdMajor"), 0),
            severe=coerce_int(effect.get("thresholdSevere"), 0),
            **common,
        )
    if type_name == "defense_bonus":
        return DefenseBonus(bonus=coerce_int(effect.get("defenseBonus"), 0), **common)
    if type_name == "proficiency_bonus":
        return ProficiencyBonus(bonus=coerce_int(effect.get("proficiencyBonus"), 1), **common)
    if type_name == "status_on_hit":
        return StatusOnHit(status=str(effect.get("statusToApply") or ""), **common)
    if type_name == "stress_on_hit":
        return StressOnHit(amount=coerce_int(effect.get("stressAmount"), 1), **common)
    if type_name == "apply_status":
        return ApplyStatus(status=str(effect.get("applyStatus") or ""), **common)
    filters = {
        "trait_filter": str(effect.get("traitFilter") or "any"),
        "action_type_filter": str(effect.get("actionTypeFilter") or "any"),
    }
    if type_name == "roll_bonus":
        return RollBonus(bonus=coerce_int(effect.get("rollBonus"), 0), **filters, **common)
    if type_name == "advantage":
        return Advantage(**filters, **common)
    if type_name == "disadvantage":
        return Disadvantage(**filters, **common)
    return UnknownModifier(type_name=type_name, **common)


# Durations ----------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Permanent:
    mode: ClassVar[str] = "permanent"


@dataclass(frozen=True, slots=True)
class Once:
    mode: ClassVar[str] = "once"


@dataclass(frozen=True, slots=True)
class Uses:
    mode: ClassVar[str] = "uses"
    uses: int = 1


@dataclass(frozen=True, slots=True)
class NextRoll:
    mode: ClassVar[str] = "next_roll"


@dataclass(frozen=True, slots=True)
class NextDamage:
    mode: ClassVar[str] = "next_damage"


@dataclass(frozen=True, slots=True)
class EndOfCombat:
    mode: ClassVar[str] = "end_of_combat"


@dataclass(frozen=True, slots=True)
class Countdown:
    mode: ClassVar[str] = "countdown"
    ticks: int = 3
    tick_on: TickEvent = TickEvent.ROUND_START


Duration = Union[Permanent, Once, Uses, NextRoll, NextDamage, EndOfCombat, Countdown]

# Modes whose counter starts full and only decreases.
COUNTED_DURATIONS = (Once, Uses, NextRoll, NextDamage, Countdown)


def initial_remaining(duration: Duration) -> int | None:
    if isinstance(duration, Uses):
        return duration.uses
    if isinstance(duration, Countdown):
        return duration.ticks
    if isinstance(duration, (Once, NextRoll, NextDamage)):
        return 1
    return None


def parse_duration(data: Mapping[str, Any] | None) -> Duration:
    data = data or {}
    mode = str(data.get("mode") or "permanent")
    if mode == "once":
        return Once()
    if mode == "uses":
        return Uses(uses=max(1, coerce_int(data.get("uses"), 1)))
    if mode == "next_roll":
        return NextRoll()
    if mode == "next_damage":
        return NextDamage()
    if mode == "end_of_combat":
        return EndOfCombat()
    if mode == "countdown":
        try:
            tick_on = TickEvent(data.get("countdownTickOn") or TickEvent.ROUND_START.value)
        except ValueError:
            tick_on = TickEvent.ROUND_START
        return Countdown(ticks=max(1, coerce_int(data.get("countdownTicks"), 3)), tick_on=tick_on)
    return Permanent()


# Definition ---------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class EffectDefinition:
    """Parsed catalog entry. ``data`` keeps the stored dict for round trips."""

    id: str
    name: str
    condition: Condition
    modifier: Modifier
    duration: Duration
    description: str = ""
    enabled: bool = True
    data: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def effect_type(self) -> str:
        if isinstance(self.modifier, UnknownModifier):
            return self.modifier.type_name
        return self.modifier.kind

    @property
    def apply_to(self) -> ApplyTo:
        return self.modifier.apply_to

    @property
    def chain_effect_ids(self) -> tuple[str, ...]:
        return self.modifier.chain_effect_ids

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EffectDefinition":
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            enabled=data.get("enabled", True) is not False,
            condition=parse_condition(data.get("condition")),
            modifier=parse_modifier(data),
            duration=parse_duration(data.get("duration")),
            data=copy.deepcopy(dict(data)),
        )

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(dict(self.data))
