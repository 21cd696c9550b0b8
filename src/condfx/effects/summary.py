"""Short display text for conditions and modifiers, as shown on sheets."""
from __future__ import annotations

from condfx.constants import (
    ATTRIBUTES,
    DAMAGE_TYPE_LABELS,
    RANGE_LABELS,
    STATUSES,
    TRAIT_NAMES,
)
from condfx.effects.model import (
    Advantage,
    AlwaysCondition,
    ApplyStatus,
    AttributeCondition,
    Condition,
    DamageBonus,
    DamageMultiplier,
    DamageTypeCondition,
    DefenseBonus,
    Disadvantage,
    Modifier,
    NoDefenseRemainingCondition,
    ProficiencyBonus,
    RangeCondition,
    RollBonus,
    StatusCondition,
    StatusOnHit,
    StressOnHit,
    ThresholdBonus,
    TRIGGER_ARMOR_SLOT_MARKED,
    TRIGGER_INFLICTED_THRESHOLD,
    TRIGGER_ROLLED_CRITICAL,
    TRIGGER_ROLLED_FEAR,
    TRIGGER_SPENT_HOPE,
    TRIGGER_TOOK_THRESHOLD,
    TriggerCondition,
    WeaponCondition,
    SUBJECT_TARGET,
)

DASH = "—"
PLACEHOLDER = DASH

_RANGE_MODE_LABELS = {
    "within": "Within Range (at or closer)",
    "at": "At Range (exact band)",
    "beyond": "Further Than",
}
_INCOMING_LABELS = {"physical": "Physical", "magical": "Magical", "any": "Any"}
_WEAPON_SLOT_LABELS = {"primary": "Primary", "secondary": "Secondary", "any": "Any"}
_ACTION_TYPE_LABELS = {"action": "Action Roll", "reaction": "Reaction Roll"}
_TRIGGER_TEXT = {
    TRIGGER_ROLLED_FEAR: "Rolled with Fear",
    TRIGGER_ROLLED_CRITICAL: "Rolled Critical",
    TRIGGER_SPENT_HOPE: "Spent Hope",
    TRIGGER_ARMOR_SLOT_MARKED: "Marked Armor Slot",
}


def _subject_label(subject: str) -> str:
    return "Target" if subject == SUBJECT_TARGET else "Self"


def _signed(value: int) -> str:
    return f"+{value}" if value >= 0 else str(value)


def _number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def summarize_condition(condition: Condition | None) -> str:
    if condition is None:
        return PLACEHOLDER
    if isinstance(condition, AlwaysCondition):
        return "Always"
    if isinstance(condition, StatusCondition):
        label = STATUSES.get(condition.status, condition.status)
        return f"{_subject_label(condition.subject)}: {label}"
    if isinstance(condition, AttributeCondition):
        label = ATTRIBUTES.get(condition.attribute, condition.attribute)
        return f"{_subject_label(condition.subject)} {label} {condition.operator} {_number(condition.value)}"
    if isinstance(condition, RangeCondition):
        mode = _RANGE_MODE_LABELS.get(condition.mode, condition.mode)
        band = RANGE_LABELS.get(condition.band, condition.band)
        if condition.range_subject == "target":
            return f"{mode}: {band} {DASH} Target"
        if condition.range_subject == "attacker":
            return f"{mode}: {band} {DASH} Attacker"
        who = "Friends" if condition.range_subject == "friends" else "Enemies"
        return f"{mode}: {band} {DASH} {condition.count}+ {who}"
    if isinstance(condition, DamageTypeCondition):
        label = _INCOMING_LABELS.get(condition.damage_type, condition.damage_type)
        return f"Incoming: {label} damage"
    if isinstance(condition, WeaponCondition):
        return f"Slot: {_WEAPON_SLOT_LABELS.get(condition.slot, condition.slot)}"
    if isinstance(condition, TriggerCondition):
        subject = _subject_label(condition.subject)
        tier = (condition.threshold or "").capitalize()
        if condition.trigger == TRIGGER_TOOK_THRESHOLD:
            return f"{subject}: Took {tier} damage"
        if condition.trigger == TRIGGER_INFLICTED_THRESHOLD:
            return f"{subject}: Inflicted {tier} damage"
        return f"{subject}: {_TRIGGER_TEXT.get(condition.trigger, condition.trigger)}"
    if isinstance(condition, NoDefenseRemainingCondition):
        return f"{_subject_label(condition.subject)}: No Armor Remaining"
    return PLACEHOLDER


def _roll_qualifiers(modifier: RollBonus | Advantage | Disadvantage) -> list[str]:
    qualifiers: list[str] = []
    if modifier.trait_filter and modifier.trait_filter != "any":
        if modifier.trait_filter in TRAIT_NAMES:
            qualifiers.append(modifier.trait_filter.capitalize())
        else:
            qualifiers.append(modifier.trait_filter)
    if modifier.action_type_filter and modifier.action_type_filter != "any":
        qualifiers.append(_ACTION_TYPE_LABELS.get(modifier.action_type_filter, modifier.action_type_filter))
    return qualifiers


def summarize_effect(modifier: Modifier | None) -> str:
    if modifier is None:
        return PLACEHOLDER
    if isinstance(modifier, DamageBonus):
        parts: list[str] = []
        if modifier.dice.strip():
            parts.append(modifier.dice.strip())
        if modifier.bonus:
            parts.append(_signed(modifier.bonus))
        label = DAMAGE_TYPE_LABELS.get(modifier.damage_type, modifier.damage_type)
        return f"{''.join(parts) or '0'} {label} dmg"
    if isinstance(modifier, DamageMultiplier):
        label = _INCOMING_LABELS.get(modifier.incoming_damage_type, modifier.incoming_damage_type)
        return f"×{_number(modifier.multiplier)} {label} damage taken"
    if isinstance(modifier, ThresholdBonus):
        return f"Threshold +{modifier.major} major / +{modifier.severe} severe"
    if isinstance(modifier, DefenseBonus):
        return f"Evasion/Difficulty {_signed(modifier.bonus)}"
    if isinstance(modifier, StatusOnHit):
        return f"Apply: {STATUSES.get(modifier.status, modifier.status)}"
    if isinstance(modifier, ApplyStatus):
        return f"Status: {STATUSES.get(modifier.status, modifier.status)} (while active)"
    if isinstance(modifier, ProficiencyBonus):
        return f"Proficiency {_signed(modifier.bonus)}"
    if isinstance(modifier, StressOnHit):
        return f"Apply: {modifier.amount} Stress"
    if isinstance(modifier, (RollBonus, Advantage, Disadvantage)):
        if isinstance(modifier, RollBonus):
            base = f"Roll {_signed(modifier.bonus)}"
        elif isinstance(modifier, Advantage):
            base = "Advantage"
        else:
            base = "Disadvantage"
        qualifiers = _roll_qualifiers(modifier)
        return f"{base} ({', '.join(qualifiers)})" if qualifiers else base
    return PLACEHOLDER
