import pytest

from condfx.constants import SETTINGS_KEY
from condfx.effects.model import AlwaysCondition, DamageBonus, StatusCondition
from condfx.effects.registry import EffectCatalog, deep_merge, default_definition_data
from condfx.events.bus import EVENT_FLAGS_CHANGED, EventBus
from condfx.host import TabletopHost
from condfx.state.flags import FlagStore
from tests.helpers import effect


def make_catalog():
    bus = EventBus()
    host = TabletopHost(bus)
    return EffectCatalog(host, FlagStore(bus)), bus


def test_deep_merge_merges_nested_dicts_only():
    merged = deep_merge({"a": {"b": 1, "c": 2}, "l": [1]}, {"a": {"c": 3}, "l": [2]})
    assert merged == {"a": {"b": 1, "c": 3}, "l": [2]}


def test_default_template_has_every_section():
    data = default_definition_data()
    assert {"id", "name", "condition", "effect", "duration"} <= set(data)
    assert data["duration"]["mode"] == "permanent"


@pytest.mark.asyncio
async def test_create_merges_over_defaults_with_fresh_id():
    catalog, _ = make_catalog()

    first = await catalog.create({"name": "Rage", "effect": {"dice": "1d6"}})
    second = await catalog.create({"id": "ignored"})

    assert first.id != second.id
    assert second.id != "ignored"
    assert len(first.id) == 16
    assert first.name == "Rage"
    assert isinstance(first.modifier, DamageBonus)
    assert first.modifier.formula == "1d6"
    assert first.condition == AlwaysCondition()
    assert [d.id for d in catalog.list_definitions()] == [first.id, second.id]


@pytest.mark.asyncio
async def test_update_and_delete():
    catalog, _ = make_catalog()
    await catalog.save_all([effect("a", "defense_bonus", defenseBonus=1)])

    updated = await catalog.update("a", {"condition": {"type": "status", "status": "hidden"}})
    assert updated.condition == StatusCondition(subject="self", status="hidden")
    assert catalog.get_definition("a").condition == updated.condition
    assert await catalog.update("missing", {"name": "x"}) is None

    assert await catalog.delete("a") is True
    assert await catalog.delete("a") is False
    assert catalog.get_definition("a") is None
    assert catalog.get_definition(None) is None


@pytest.mark.asyncio
async def test_save_announces_the_settings_key():
    catalog, bus = make_catalog()
    seen = []
    bus.subscribe(EVENT_FLAGS_CHANGED, lambda sender, **kw: seen.append(kw["keys"]))

    await catalog.save_all([effect("a", "advantage")])

    assert seen == [(SETTINGS_KEY,)]
    assert [d.id for d in catalog.get_many(["a", "b"])] == ["a"]
