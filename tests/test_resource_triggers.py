import pytest

from condfx.constants import MODULE_ID
from condfx.factories import create_character, create_item
from condfx.systems.reconciliation import ModifierFamily
from tests.helpers import build_engine, effect, record_sources


@pytest.mark.asyncio
async def test_spending_hope_marks_the_trigger_with_the_amount():
    engine = await build_engine()
    hero = create_character(hope=(3, 6))

    await engine.host.update_actor(hero, hope=1)
    await engine.drain()

    marker = engine.get_triggers(hero)["spent_hope"]
    assert marker["set"] is True
    assert marker["amount"] == 2


@pytest.mark.asyncio
async def test_engine_sourced_and_gaining_updates_are_not_spending():
    engine = await build_engine()
    hero = create_character(hope=(3, 6))

    await engine.host.update_actor(hero, source=MODULE_ID, hope=2)
    await engine.host.update_actor(hero, hope=5)
    await engine.host.update_actor(hero, stress=2)
    await engine.drain()

    assert engine.get_triggers(hero) == {}
    assert engine.resource_triggers._actor_before == {}


@pytest.mark.asyncio
async def test_marking_armor_slots_marks_the_owner():
    engine = await build_engine()
    hero = create_character()
    armor = create_item(hero, "Leather", "armor", equipped=True, marks=0, max_marks=3)
    cloak = create_item(hero, "Cloak", "loot")

    await engine.host.update_item(armor, marks=2)
    await engine.host.update_item(cloak, marks=1)
    await engine.drain()
    assert engine.get_triggers(hero)["armor_slot_marked"]["amount"] == 2

    await engine.clear(hero, "armor_slot_marked")
    await engine.host.update_item(armor, marks=1)
    await engine.drain()
    assert "armor_slot_marked" not in engine.get_triggers(hero)


@pytest.mark.asyncio
async def test_spent_hope_condition_turns_a_record_on():
    engine = await build_engine(
        effect("inspired", "defense_bonus", condition={"type": "spent_hope"}, defenseBonus=1)
    )
    hero = create_character(hope=(2, 6))
    await engine.assign(hero, "inspired")
    await engine.drain()
    assert engine.host.records(hero) == []

    await engine.host.update_actor(hero, hope=1)
    await engine.drain()

    assert record_sources(engine, hero, ModifierFamily.DEFENSE) == ["inspired"]
