import pytest

from condfx.constants import AdvMode
from condfx.events.bus import EVENT_POST_ROLL, EVENT_PRE_ROLL
from condfx.factories import create_adversary, create_character, create_scene, place_token
from condfx.snapshots import RollConfig, RollOutcome, RollTarget
from condfx.systems.reconciliation import ModifierFamily
from tests.helpers import build_engine, effect, record_sources


async def roll(engine, actor, *targets, trait="agility", roll_kind="action", defense=None):
    config = RollConfig(
        source_actor=actor,
        roll_id="roll",
        trait=trait,
        roll_kind=roll_kind,
        targets=[RollTarget(actor=target, defense=defense) for target in targets],
    )
    await engine.event_bus.emit_async(EVENT_PRE_ROLL, roll=config)
    return config


async def finish(engine, config, outcome=None):
    config.outcome = outcome or RollOutcome(total=12, with_hope=True)
    await engine.event_bus.emit_async(EVENT_POST_ROLL, roll=config)
    await engine.drain()


@pytest.mark.asyncio
async def test_advantage_when_enough_enemies_are_close():
    engine = await build_engine(
        effect(
            "swarmed",
            "advantage",
            condition={"type": "range", "range": "close", "rangeSubject": "enemies", "rangeCount": 3},
        )
    )
    scene = create_scene()
    hero = create_character()
    place_token(hero, scene, 0, 0)
    place_token(create_adversary("A"), scene, 10, 0)
    place_token(create_adversary("B"), scene, 0, 20)
    straggler = place_token(create_adversary("C"), scene, 80, 0)
    await engine.assign(hero, "swarmed")
    await engine.drain()

    first = await roll(engine, hero)
    assert first.advantage == AdvMode.NORMAL
    await finish(engine, first)

    await engine.host.move_token(straggler, 25, 0)
    await engine.drain()

    second = await roll(engine, hero)
    assert second.advantage == AdvMode.ADVANTAGE
    await finish(engine, second)


@pytest.mark.asyncio
async def test_advantage_beats_disadvantage():
    engine = await build_engine(effect("up", "advantage"), effect("down", "disadvantage"))
    hero = create_character()
    await engine.assign(hero, "down")
    await engine.assign(hero, "up")
    await engine.drain()

    config = await roll(engine, hero)

    assert config.advantage == AdvMode.ADVANTAGE
    await finish(engine, config)


@pytest.mark.asyncio
async def test_overridden_disadvantage_is_not_spent():
    engine = await build_engine(
        effect("up", "advantage"),
        effect("blur", "disadvantage", applyTo="incoming", duration={"mode": "once"}),
    )
    hero = create_character()
    foe = create_adversary()
    await engine.assign(hero, "up")
    await engine.assign(foe, "blur")
    await engine.drain()

    config = await roll(engine, hero, foe)

    assert config.advantage == AdvMode.ADVANTAGE
    assert engine.durations.get(foe, "blur") is None
    await finish(engine, config)

    lone = await roll(engine, create_character("Other"), foe)
    assert lone.advantage == AdvMode.DISADVANTAGE
    assert engine.durations.get(foe, "blur").exhausted
    await finish(engine, lone)


@pytest.mark.asyncio
async def test_roll_bonus_respects_trait_and_action_filters():
    engine = await build_engine(
        effect("nimble", "roll_bonus", name="Nimble", rollBonus=2, traitFilter="agility"),
        effect("quick", "roll_bonus", name="Quick", rollBonus=1, actionTypeFilter="reaction"),
    )
    hero = create_character()
    await engine.assign(hero, "nimble")
    await engine.assign(hero, "quick")
    await engine.drain()

    strength = await roll(engine, hero, trait="strength")
    assert strength.base_modifiers == []

    agility = await roll(engine, hero, trait="agility")
    assert [(m.label, m.value) for m in agility.base_modifiers] == [("Nimble", 2)]

    reaction = await roll(engine, hero, trait="agility", roll_kind="reaction")
    assert sorted((m.label, m.value) for m in reaction.base_modifiers) == [("Nimble", 2), ("Quick", 1)]
    await engine.drain()


@pytest.mark.asyncio
async def test_incoming_roll_modifier_on_the_target_applies_to_the_attacker():
    engine = await build_engine(effect("blur", "disadvantage", applyTo="incoming"))
    hero = create_character()
    foe = create_adversary()
    await engine.assign(foe, "blur")
    await engine.drain()

    config = await roll(engine, hero, foe)

    assert config.advantage == AdvMode.DISADVANTAGE
    await finish(engine, config)


@pytest.mark.asyncio
async def test_once_roll_bonus_is_spent_by_the_first_roll():
    engine = await build_engine(effect("focus", "roll_bonus", rollBonus=3, duration={"mode": "once"}))
    hero = create_character()
    await engine.assign(hero, "focus")
    await engine.drain()

    first = await roll(engine, hero)
    await finish(engine, first)
    second = await roll(engine, hero)

    assert [m.value for m in first.base_modifiers] == [3]
    assert second.base_modifiers == []
    await finish(engine, second)


@pytest.mark.asyncio
async def test_attacker_range_defense_patches_the_snapshot_and_reverts():
    engine = await build_engine(
        effect(
            "parry",
            "defense_bonus",
            condition={"type": "range", "range": "melee", "rangeSubject": "attacker"},
            defenseBonus=2,
        )
    )
    scene = create_scene()
    hero = create_character()
    foe = create_adversary(difficulty=12)
    place_token(hero, scene, 0, 0)
    place_token(foe, scene, 3, 0)
    await engine.assign(foe, "parry")
    await engine.drain()
    assert engine.host.records(foe) == []

    config = await roll(engine, hero, foe, defense=12)

    assert config.targets[0].defense == 14
    assert record_sources(engine, foe, ModifierFamily.DEFENSE) == ["parry"]
    assert config.synced_targets == [foe]

    await finish(engine, config)
    assert engine.host.records(foe) == []
    assert config.synced_targets is None
    assert config.pending_defense_gates is None


@pytest.mark.asyncio
async def test_defense_patch_skips_already_live_bonus():
    engine = await build_engine(effect("wall", "defense_bonus", defenseBonus=1))
    hero = create_character()
    foe = create_adversary(difficulty=12)
    await engine.assign(foe, "wall")
    await engine.drain()

    config = await roll(engine, hero, foe, defense=13)

    assert config.targets[0].defense == 13
    await finish(engine, config)
    assert record_sources(engine, foe, ModifierFamily.DEFENSE) == ["wall"]


@pytest.mark.asyncio
async def test_post_roll_marks_fear_and_critical():
    engine = await build_engine()
    hero = create_character()

    config = await roll(engine, hero)
    await finish(engine, config, RollOutcome(total=20, with_fear=True, critical=True))

    triggers = engine.get_triggers(hero)
    assert triggers["rolled_fear"]["set"] is True
    assert triggers["rolled_critical"]["set"] is True


@pytest.mark.asyncio
async def test_on_roll_countdown_expires_its_record():
    engine = await build_engine(
        effect(
            "brace",
            "defense_bonus",
            defenseBonus=1,
            duration={"mode": "countdown", "countdownTicks": 1, "countdownTickOn": "on_roll"},
        )
    )
    hero = create_character()
    await engine.assign(hero, "brace")
    await engine.drain()
    assert record_sources(engine, hero, ModifierFamily.DEFENSE) == ["brace"]

    config = await roll(engine, hero)
    await finish(engine, config)

    assert engine.durations.get(hero, "brace").remaining == 0
    assert engine.host.records(hero, ModifierFamily.DEFENSE) == []
