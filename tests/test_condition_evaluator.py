import pytest

from condfx.conditions.context import EvaluationContext
from condfx.conditions.ranges import in_band
from condfx.constants import DEFAULT_RANGE_THRESHOLDS, RANGE_BANDS
from condfx.factories import create_adversary, create_character, create_item, create_scene, place_token
from condfx.settings import EngineSettings
from tests.helpers import build_engine


def condition(**data):
    return data


@pytest.mark.parametrize("index", range(len(RANGE_BANDS) - 1))
def test_band_threshold_boundary(index):
    band = RANGE_BANDS[index]
    distance = DEFAULT_RANGE_THRESHOLDS[band]

    assert in_band(distance, "within", band, DEFAULT_RANGE_THRESHOLDS)
    assert in_band(distance, "at", band, DEFAULT_RANGE_THRESHOLDS)
    assert not in_band(distance, "beyond", band, DEFAULT_RANGE_THRESHOLDS)
    if index > 0:
        assert in_band(distance, "beyond", RANGE_BANDS[index - 1], DEFAULT_RANGE_THRESHOLDS)
    assert not in_band(distance, "at", RANGE_BANDS[index + 1], DEFAULT_RANGE_THRESHOLDS)


def test_very_far_is_unbounded():
    assert in_band(10_000, "within", "veryFar", DEFAULT_RANGE_THRESHOLDS)
    assert in_band(10_000, "at", "veryFar", DEFAULT_RANGE_THRESHOLDS)
    assert not in_band(10_000, "beyond", "veryFar", DEFAULT_RANGE_THRESHOLDS)
    assert not in_band(1, "within", "nowhere", DEFAULT_RANGE_THRESHOLDS)


@pytest.mark.asyncio
async def test_status_and_attribute_conditions():
    engine = await build_engine()
    hero = create_character(hit_points=(1, 6), statuses=("hidden",))
    foe = create_adversary(statuses=("vulnerable",))
    ctx = EvaluationContext(self_actor=hero, target=foe)

    assert engine.evaluate(condition(type="status", subject="self", status="hidden"), ctx)
    assert engine.evaluate(condition(type="status", subject="target", status="vulnerable"), ctx)
    assert not engine.evaluate(condition(type="status", subject="target", status="hidden"), ctx)
    low_hp = condition(type="attribute", subject="self", attribute="hitPoints_pct", operator="<=", value=25)
    assert engine.evaluate(low_hp, ctx)
    assert not engine.evaluate(low_hp, ctx.swapped())
    assert not engine.evaluate(condition(type="attribute", subject="target", attribute="nonsense", value=0), ctx)
    assert engine.evaluate(condition(type="attribute", subject="self", attribute="evasion", operator="==", value=10), ctx)


@pytest.mark.asyncio
async def test_missing_subject_is_false_and_unknown_type_is_false():
    engine = await build_engine()
    hero = create_character()
    ctx = EvaluationContext(self_actor=hero)

    assert not engine.evaluate(condition(type="status", subject="target", status="hidden"), ctx)
    assert not engine.evaluate(condition(type="moon_phase"), ctx)
    assert engine.evaluate(condition(type="always"), ctx)


@pytest.mark.asyncio
async def test_damage_type_defers_until_types_are_known():
    engine = await build_engine()
    hero = create_character()
    magical = condition(type="damage_type", incomingDamageType="magical")
    ctx = EvaluationContext(self_actor=hero)

    assert engine.evaluate(magical, ctx)
    assert engine.evaluate(magical, ctx.with_damage_types({"magical"}))
    assert not engine.evaluate(magical, ctx.with_damage_types({"physical"}))


@pytest.mark.asyncio
async def test_weapon_slot_follows_equipped_order():
    engine = await build_engine()
    hero = create_character()
    primary = create_item(hero, "Sword", "weapon", equipped=True)
    secondary = create_item(hero, "Dagger", "weapon", equipped=True)

    assert engine.evaluate(condition(type="weapon", weaponSlot="primary"), EvaluationContext(hero, item=primary))
    assert not engine.evaluate(condition(type="weapon", weaponSlot="primary"), EvaluationContext(hero, item=secondary))
    assert engine.evaluate(condition(type="weapon", weaponSlot="secondary"), EvaluationContext(hero, item=secondary))
    assert engine.evaluate(condition(type="weapon", weaponSlot="primary"), EvaluationContext(hero))


@pytest.mark.asyncio
async def test_trigger_conditions_match_exact_tier():
    engine = await build_engine()
    hero = create_character()
    ctx = EvaluationContext(self_actor=hero)
    took_major = condition(type="took_threshold", threshold="major")
    took_severe = condition(type="took_threshold", threshold="severe")

    assert not engine.evaluate(took_major, ctx)
    await engine.mark(hero, "took_threshold", tier="major", amount=2)
    assert engine.evaluate(took_major, ctx)
    assert not engine.evaluate(took_severe, ctx)

    await engine.clear(hero, "took_threshold")
    assert not engine.evaluate(took_major, ctx)


@pytest.mark.asyncio
async def test_no_armor_remaining_reads_the_equipped_armor():
    engine = await build_engine()
    hero = create_character()
    armor = create_item(hero, "Chain", "armor", equipped=True, marks=2, max_marks=3)
    ctx = EvaluationContext(self_actor=hero)
    spent = condition(type="no_armor_remaining")

    assert not engine.evaluate(spent, ctx)
    await engine.host.update_item(armor, marks=3)
    assert engine.evaluate(spent, ctx)
    await engine.drain()


@pytest.mark.asyncio
async def test_range_counts_friends_and_enemies():
    engine = await build_engine()
    scene = create_scene()
    hero = create_character()
    ally = create_character("Ally")
    place_token(hero, scene, 0, 0)
    place_token(ally, scene, 10, 0)
    for x in (20, 60):
        place_token(create_adversary(), scene, x, 0)
    ctx = EvaluationContext(self_actor=hero)

    assert engine.evaluate(condition(type="range", range="close", rangeSubject="friends"), ctx)
    assert engine.evaluate(condition(type="range", range="close", rangeSubject="enemies", rangeCount=1), ctx)
    assert not engine.evaluate(condition(type="range", range="close", rangeSubject="enemies", rangeCount=2), ctx)
    assert engine.evaluate(condition(type="range", range="far", rangeSubject="enemies", rangeCount=2), ctx)
    assert engine.evaluate(
        condition(type="range", range="close", rangeMode="beyond", rangeSubject="enemies", rangeCount=1), ctx
    )


@pytest.mark.asyncio
async def test_range_target_uses_targeted_tokens_then_context_target():
    engine = await build_engine()
    scene = create_scene()
    hero = create_character()
    near = create_adversary("Near")
    far = create_adversary("Far")
    place_token(hero, scene, 0, 0)
    place_token(near, scene, 3, 4)
    far_token = place_token(far, scene, 90, 0)
    melee = condition(type="range", range="melee", rangeSubject="target")

    assert engine.evaluate(melee, EvaluationContext(self_actor=hero, target=near))
    assert not engine.evaluate(melee, EvaluationContext(self_actor=hero))

    await engine.host.set_targets([far_token])
    assert not engine.evaluate(melee, EvaluationContext(self_actor=hero, target=near))
    await engine.drain()


@pytest.mark.asyncio
async def test_range_without_own_token_is_false():
    engine = await build_engine()
    create_scene()
    hero = create_character()

    assert not engine.evaluate(
        condition(type="range", range="veryFar", rangeSubject="enemies"), EvaluationContext(self_actor=hero)
    )


@pytest.mark.asyncio
async def test_custom_thresholds_change_the_bands():
    engine = await build_engine(settings=EngineSettings(range_thresholds={"melee": 10}))
    scene = create_scene()
    hero = create_character()
    foe = create_adversary()
    place_token(hero, scene, 0, 0)
    place_token(foe, scene, 8, 0)

    assert engine.evaluate(
        condition(type="range", range="melee", rangeSubject="attacker"),
        EvaluationContext(self_actor=hero, attacker=foe),
    )
