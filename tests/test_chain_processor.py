import pytest

from condfx.conditions.context import EvaluationContext
from condfx.effects.model import ApplicationKind
from condfx.events.bus import EVENT_PRE_DAMAGE_ACTION, EVENT_PRE_ROLL, EVENT_PRE_TAKE_DAMAGE
from condfx.factories import create_adversary, create_character
from condfx.snapshots import DamageConfig, DamagePart, RollConfig, RollTarget, TakeDamageConfig
from condfx.systems.chain_processor import ChainTargets
from tests.helpers import build_engine, effect


def ladder(length):
    """roll_bonus definitions step1..stepN, each chaining to the next."""
    steps = []
    for index in range(1, length + 1):
        chain = [f"step{index + 1}"] if index < length else []
        steps.append(effect(f"step{index}", "roll_bonus", rollBonus=index, chainEffectIds=chain))
    return steps


async def pre_roll(engine, actor, *targets):
    roll = RollConfig(source_actor=actor, targets=[RollTarget(actor=target) for target in targets])
    await engine.event_bus.emit_async(EVENT_PRE_ROLL, roll=roll)
    return roll


@pytest.mark.asyncio
async def test_chains_resolve_three_levels_deep_and_stop_at_the_fourth():
    engine = await build_engine(*ladder(5))
    hero = create_character()
    await engine.assign(hero, "step1")
    await engine.drain()

    roll = await pre_roll(engine, hero)

    assert [modifier.value for modifier in roll.base_modifiers] == [1, 2, 3, 4]
    await engine.drain()


@pytest.mark.asyncio
async def test_depth_limit_is_configurable():
    engine = await build_engine(*ladder(3), settings={"chain_depth_limit": 1})
    hero = create_character()
    parent = engine.catalog.get_definition("step1")
    roll = RollConfig(source_actor=hero)

    applied = await engine.chains.process_chains(
        hero, parent, EvaluationContext(self_actor=hero), ApplicationKind.ROLL, 0, ChainTargets(roll=roll)
    )

    assert applied == ["step2"]
    assert [modifier.value for modifier in roll.base_modifiers] == [2]


@pytest.mark.asyncio
async def test_definition_without_chains_applies_nothing():
    engine = await build_engine(effect("plain", "roll_bonus", rollBonus=1))
    hero = create_character()

    applied = await engine.chains.process_chains(
        hero,
        engine.catalog.get_definition("plain"),
        EvaluationContext(self_actor=hero),
        ApplicationKind.ROLL,
        targets=ChainTargets(roll=RollConfig(source_actor=hero)),
    )

    assert applied == []


@pytest.mark.asyncio
async def test_missing_disabled_and_false_links_are_skipped():
    engine = await build_engine(
        effect("root", "roll_bonus", rollBonus=1, chainEffectIds=["ghost", "off", "hidden", "ok"]),
        effect("off", "roll_bonus", rollBonus=10, enabled=False),
        effect("hidden", "roll_bonus", rollBonus=20, condition={"type": "status", "status": "hidden"}),
        effect("ok", "roll_bonus", rollBonus=30),
    )
    hero = create_character()
    await engine.assign(hero, "root")
    await engine.drain()

    roll = await pre_roll(engine, hero)

    assert [modifier.value for modifier in roll.base_modifiers] == [1, 30]


@pytest.mark.asyncio
async def test_persistent_definition_with_a_true_condition_parents_a_roll_chain():
    engine = await build_engine(
        effect("guard", "defense_bonus", defenseBonus=1, chainEffectIds=["steady"]),
        effect("steady", "roll_bonus", rollBonus=2),
    )
    hero = create_character()
    await engine.assign(hero, "guard")
    await engine.drain()

    roll = await pre_roll(engine, hero)

    assert [modifier.value for modifier in roll.base_modifiers] == [2]


@pytest.mark.asyncio
async def test_damage_bonus_chains_stress_onto_the_target():
    engine = await build_engine(
        effect("cruel", "damage_bonus", bonus=1, chainEffectIds=["rattle"]),
        effect("rattle", "stress_on_hit", stressAmount=1),
    )
    hero = create_character()
    foe = create_adversary()
    await engine.assign(hero, "cruel")
    await engine.drain()

    config = DamageConfig(source_actor=hero, parts=[DamagePart(formula="1d8")], targets=[RollTarget(actor=foe)])
    await engine.event_bus.emit_async(EVENT_PRE_DAMAGE_ACTION, config=config)
    await engine.drain()

    assert config.parts[0].extra_formula == "1"
    assert engine.host.resource(foe, "stress").value == 1


@pytest.mark.asyncio
async def test_chained_multipliers_compound():
    engine = await build_engine(
        effect("soft", "damage_multiplier", damageMultiplier=1.5, chainEffectIds=["softer"]),
        effect("softer", "damage_multiplier", damageMultiplier=2),
    )
    foe = create_adversary()
    await engine.assign(foe, "soft")
    await engine.drain()
    config = TakeDamageConfig(target_actor=foe, parts=[DamagePart(total=3)])

    await engine.event_bus.emit_async(EVENT_PRE_TAKE_DAMAGE, config=config)

    assert config.total == 10
