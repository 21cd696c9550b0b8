from condfx.effects.model import (
    Advantage,
    AlwaysCondition,
    ApplyTo,
    AttributeCondition,
    Countdown,
    DamageBonus,
    DamageMultiplier,
    DefenseBonus,
    EffectDefinition,
    Once,
    Permanent,
    RangeCondition,
    ThresholdBonus,
    TickEvent,
    TriggerCondition,
    UnknownCondition,
    UnknownModifier,
    Uses,
    initial_remaining,
    parse_condition,
    parse_duration,
)
from tests.helpers import effect


def test_from_dict_parses_condition_modifier_and_duration():
    definition = EffectDefinition.from_dict(
        effect(
            "low-hp",
            "damage_bonus",
            condition={"type": "attribute", "subject": "self", "attribute": "hitPoints_pct", "operator": "<=", "value": 25},
            duration={"mode": "uses", "uses": 2},
            dice="1d6",
            bonus=2,
        )
    )

    assert definition.id == "low-hp"
    assert definition.condition == AttributeCondition(
        subject="self", attribute="hitPoints_pct", operator="<=", value=25.0
    )
    assert isinstance(definition.modifier, DamageBonus)
    assert definition.modifier.formula == "1d6 + 2"
    assert definition.duration == Uses(uses=2)
    assert definition.effect_type == "damage_bonus"


def test_damage_bonus_formula_skips_empty_parts():
    assert DamageBonus(dice="", bonus=3).formula == "3"
    assert DamageBonus(dice=" 2d4 ", bonus=0).formula == "2d4"
    assert DamageBonus().formula == ""


def test_range_and_trigger_conditions():
    assert parse_condition(
        {"type": "range", "range": "close", "rangeMode": "at", "rangeSubject": "enemies", "rangeCount": 2}
    ) == RangeCondition(band="close", mode="at", range_subject="enemies", count=2)
    assert parse_condition({"type": "took_threshold", "threshold": "severe"}) == TriggerCondition(
        trigger="took_threshold", subject="self", threshold="severe"
    )
    assert parse_condition({"type": "rolled_fear", "subject": "target"}) == TriggerCondition(
        trigger="rolled_fear", subject="target", threshold=None
    )


def test_missing_condition_is_always_and_unknown_is_preserved():
    assert parse_condition(None) == AlwaysCondition()
    assert parse_condition({"type": "moon_phase"}) == UnknownCondition(type_name="moon_phase")


def test_unknown_modifier_keeps_its_type_name():
    definition = EffectDefinition.from_dict(effect("future", "teleport"))

    assert isinstance(definition.modifier, UnknownModifier)
    assert definition.effect_type == "teleport"


def test_apply_to_falls_back_to_legacy_beneficial_flag():
    incoming = effect("x", "damage_multiplier", damageMultiplier=1.5)
    incoming["beneficial"] = False
    assert EffectDefinition.from_dict(incoming).apply_to == ApplyTo.INCOMING

    legacy_defense = effect("y", "defense_bonus", defenseBonus=1)
    legacy_defense["beneficial"] = False
    assert EffectDefinition.from_dict(legacy_defense).apply_to == ApplyTo.SELF

    explicit = effect("z", "advantage", applyTo="incoming")
    explicit["beneficial"] = True
    assert EffectDefinition.from_dict(explicit).apply_to == ApplyTo.INCOMING


def test_modifier_fields_and_chains():
    threshold = EffectDefinition.from_dict(effect("t", "damage_reduction", thresholdMajor=2, thresholdSevere=3))
    assert threshold.modifier == ThresholdBonus(major=2, severe=3)

    multiplier = EffectDefinition.from_dict(
        effect("m", "damage_multiplier", damageMultiplier="1.5", incomingDamageType="magical")
    )
    assert multiplier.modifier == DamageMultiplier(multiplier=1.5, incoming_damage_type="magical")

    chained = EffectDefinition.from_dict(effect("c", "defense_bonus", defenseBonus=1, chainEffectIds=["a", "", "b"]))
    assert isinstance(chained.modifier, DefenseBonus)
    assert chained.chain_effect_ids == ("a", "b")

    advantage = EffectDefinition.from_dict(effect("a", "advantage", traitFilter="agility"))
    assert advantage.modifier == Advantage(trait_filter="agility", action_type_filter="any")


def test_durations_parse_with_safe_fallbacks():
    assert parse_duration(None) == Permanent()
    assert parse_duration({"mode": "once"}) == Once()
    assert parse_duration({"mode": "uses", "uses": 0}) == Uses(uses=1)
    assert parse_duration({"mode": "countdown", "countdownTicks": 2, "countdownTickOn": "on_roll"}) == Countdown(
        ticks=2, tick_on=TickEvent.ON_ROLL
    )
    assert parse_duration({"mode": "countdown", "countdownTickOn": "whenever"}) == Countdown(
        ticks=3, tick_on=TickEvent.ROUND_START
    )


def test_initial_remaining_per_mode():
    assert initial_remaining(Permanent()) is None
    assert initial_remaining(Once()) == 1
    assert initial_remaining(Uses(uses=4)) == 4
    assert initial_remaining(Countdown(ticks=5)) == 5


def test_to_dict_returns_an_independent_copy():
    data = effect("copy", "roll_bonus", rollBonus=2)
    definition = EffectDefinition.from_dict(data)
    exported = definition.to_dict()
    exported["effect"]["rollBonus"] = 99

    assert definition.to_dict()["effect"]["rollBonus"] == 2
    assert exported["id"] == "copy"
