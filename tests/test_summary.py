from condfx.effects.model import EffectDefinition, parse_condition
from condfx.effects.summary import summarize_condition, summarize_effect
from tests.helpers import effect


def summary_of(effect_type, **fields):
    return summarize_effect(EffectDefinition.from_dict(effect("s", effect_type, **fields)).modifier)


def test_condition_summaries():
    assert summarize_condition(parse_condition({"type": "always"})) == "Always"
    assert summarize_condition(
        parse_condition({"type": "attribute", "subject": "self", "attribute": "hitPoints_pct", "operator": "<=", "value": 25})
    ) == "Self Hit Points (% of max) <= 25"
    assert summarize_condition(parse_condition({"type": "status", "subject": "target", "status": "vulnerable"})) == (
        "Target: Vulnerable"
    )
    assert summarize_condition(
        parse_condition({"type": "range", "range": "close", "rangeSubject": "enemies", "rangeCount": 2})
    ) == "Within Range (at or closer): Close — 2+ Enemies"
    assert summarize_condition(parse_condition({"type": "took_threshold", "threshold": "major"})) == (
        "Self: Took Major damage"
    )
    assert summarize_condition(None) == "—"


def test_effect_summaries():
    assert summary_of("damage_bonus", dice="1d6", damageType="any") == "1d6 Any (physical + magical) dmg"
    assert summary_of("damage_bonus", dice="1d8", bonus=2, damageType="magical") == "1d8+2 Magical dmg"
    assert summary_of("damage_multiplier", damageMultiplier=1.5, incomingDamageType="any") == "×1.5 Any damage taken"
    assert summary_of("defense_bonus", defenseBonus=-1) == "Evasion/Difficulty -1"
    assert summary_of("stress_on_hit", stressAmount=2) == "Apply: 2 Stress"
    assert summary_of("roll_bonus", rollBonus=2, traitFilter="agility", actionTypeFilter="reaction") == (
        "Roll +2 (Agility, Reaction Roll)"
    )
    assert summary_of("disadvantage") == "Disadvantage"
    assert summary_of("teleport") == "—"
