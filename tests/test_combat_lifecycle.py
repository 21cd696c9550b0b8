import pytest

from condfx.state.duration import DurationEntry
from condfx.systems.reconciliation import ModifierFamily
from condfx.factories import create_character
from tests.helpers import build_engine, effect, record_sources


@pytest.mark.asyncio
async def test_end_of_combat_entry_binds_on_start_and_clears_on_end():
    engine = await build_engine(effect("rally", "defense_bonus", defenseBonus=1, duration={"mode": "end_of_combat"}))
    hero = create_character()
    await engine.assign(hero, "rally")
    await engine.drain()
    assert record_sources(engine, hero, ModifierFamily.DEFENSE) == ["rally"]
    assert engine.durations.get(hero, "rally") is None

    combat = await engine.host.start_combat([hero], "c1")
    await engine.drain()
    assert record_sources(engine, hero, ModifierFamily.DEFENSE) == ["rally"]
    assert engine.durations.get(hero, "rally").combat_id == "c1"

    await engine.host.update_combat(combat, turn=1)
    await engine.drain()
    assert record_sources(engine, hero, ModifierFamily.DEFENSE) == ["rally"]
    assert engine.durations.get(hero, "rally").combat_id == "c1"

    await engine.host.end_combat(combat)
    await engine.drain()
    assert engine.durations.get(hero, "rally") is None
    assert record_sources(engine, hero, ModifierFamily.DEFENSE) == ["rally"]


@pytest.mark.asyncio
async def test_entries_bound_to_another_combat_expire_on_update():
    engine = await build_engine(effect("rally", "defense_bonus", defenseBonus=1, duration={"mode": "end_of_combat"}))
    hero = create_character()
    await engine.assign(hero, "rally")
    await engine.durations.set(hero, "rally", DurationEntry(mode="end_of_combat", combat_id="old"))
    await engine.drain()

    combat = await engine.host.start_combat([hero], "new")
    await engine.drain()
    assert engine.host.records(hero) == []

    await engine.host.update_combat(combat, turn=1)
    await engine.drain()
    assert record_sources(engine, hero, ModifierFamily.DEFENSE) == ["rally"]
    assert engine.durations.get(hero, "rally").combat_id == "new"
    await engine.host.end_combat(combat)
    await engine.drain()


@pytest.mark.asyncio
async def test_round_countdown_ticks_only_when_the_round_advances():
    engine = await build_engine(
        effect(
            "brace",
            "defense_bonus",
            defenseBonus=2,
            duration={"mode": "countdown", "countdownTicks": 2, "countdownTickOn": "round_start"},
        )
    )
    hero = create_character()
    bystander = create_character("Bystander")
    await engine.assign(hero, "brace")
    await engine.assign(bystander, "brace")
    combat = await engine.host.start_combat([hero], "c1")
    await engine.drain()
    assert record_sources(engine, hero, ModifierFamily.DEFENSE) == ["brace"]

    await engine.host.update_combat(combat, turn=2)
    await engine.drain()
    assert engine.durations.get(hero, "brace") is None

    await engine.host.update_combat(combat, round=2)
    await engine.drain()
    assert engine.durations.get(hero, "brace").remaining == 1
    assert record_sources(engine, hero, ModifierFamily.DEFENSE) == ["brace"]

    await engine.host.update_combat(combat, round=3)
    await engine.drain()
    assert engine.durations.get(hero, "brace").remaining == 0
    assert engine.host.records(hero) == []
    assert engine.durations.get(bystander, "brace") is None
    assert record_sources(engine, bystander, ModifierFamily.DEFENSE) == ["brace"]
    await engine.host.end_combat(combat)
    await engine.drain()
