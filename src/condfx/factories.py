from __future__ import annotations

from typing import Iterable, Mapping

import esper

from condfx.components.actor import Actor
from condfx.components.applied_modifier import AppliedModifierList
from condfx.components.combat import Combat
from condfx.components.flags import Flags
from condfx.components.item import Inventory, Item
from condfx.components.resources import CombatStats, Resource, Resources, Traits
from condfx.components.scene import Scene, WorldSettings
from condfx.components.statuses import Statuses
from condfx.components.token import DISPOSITION_FRIENDLY, DISPOSITION_HOSTILE, Token
from condfx.constants import ACTOR_ADVERSARY, ACTOR_CHARACTER


def _resources(
    hope: tuple[int, int] = (2, 6),
    stress: tuple[int, int] = (0, 6),
    hit_points: tuple[int, int] = (6, 6),
    armor: tuple[int, int] = (0, 0),
) -> Resources:
    return Resources(
        hope=Resource(*hope),
        stress=Resource(*stress),
        hit_points=Resource(*hit_points),
        armor=Resource(*armor),
    )


def create_character(
    name: str = "Hero",
    *,
    hope: tuple[int, int] = (2, 6),
    stress: tuple[int, int] = (0, 6),
    hit_points: tuple[int, int] = (6, 6),
    traits: Mapping[str, int] | None = None,
    evasion: int = 10,
    proficiency: int = 1,
    armor_score: int = 0,
    thresholds: tuple[int, int] = (5, 10),
    statuses: Iterable[str] = (),
) -> int:
    """Create a player character with the components the engine reads."""
    return esper.create_entity(
        Actor(name=name, kind=ACTOR_CHARACTER),
        _resources(hope=hope, stress=stress, hit_points=hit_points),
        Traits(**dict(traits or {})),
        CombatStats(
            evasion=evasion,
            difficulty=None,
            proficiency=proficiency,
            armor_score=armor_score,
            major_threshold=thresholds[0],
            severe_threshold=thresholds[1],
        ),
        Statuses(active=set(statuses)),
        Inventory(),
        AppliedModifierList(),
        Flags(),
    )


def create_adversary(
    name: str = "Adversary",
    *,
    difficulty: int = 12,
    stress: tuple[int, int] = (0, 3),
    hit_points: tuple[int, int] = (6, 6),
    thresholds: tuple[int, int] = (6, 12),
    statuses: Iterable[str] = (),
) -> int:
    """Adversaries have a difficulty instead of evasion and no hope pool."""
    return esper.create_entity(
        Actor(name=name, kind=ACTOR_ADVERSARY),
        _resources(hope=(0, 0), stress=stress, hit_points=hit_points),
        Traits(),
        CombatStats(
            evasion=None,
            difficulty=difficulty,
            proficiency=1,
            major_threshold=thresholds[0],
            severe_threshold=thresholds[1],
        ),
        Statuses(active=set(statuses)),
        Inventory(),
        AppliedModifierList(),
        Flags(),
    )


def create_item(
    owner: int | None,
    name: str,
    item_type: str,
    *,
    equipped: bool = False,
    in_vault: bool = False,
    marks: int = 0,
    max_marks: int = 0,
) -> int:
    item_entity = esper.create_entity(
        Item(
            name=name,
            item_type=item_type,
            owner_entity=owner,
            equipped=equipped,
            in_vault=in_vault,
            marks=marks,
            max_marks=max_marks,
        ),
        Flags(),
    )
    if owner is not None:
        try:
            inventory = esper.component_for_entity(owner, Inventory)
        except KeyError:
            inventory = Inventory()
            esper.add_component(owner, inventory)
        inventory.item_entities.append(item_entity)
    return item_entity


def create_scene(name: str = "Scene", *, active: bool = True) -> int:
    if active:
        for _, scene in esper.get_component(Scene):
            scene.active = False
    return esper.create_entity(Scene(name=name, active=active), Flags())


def create_world_settings() -> int:
    for entity, _ in esper.get_component(WorldSettings):
        return entity
    return esper.create_entity(WorldSettings(), Flags())


def place_token(
    actor: int,
    scene: int,
    x: float = 0.0,
    y: float = 0.0,
    *,
    disposition: int | None = None,
) -> int:
    """Drop a token for ``actor``; disposition defaults from the actor kind."""
    if disposition is None:
        try:
            kind = esper.component_for_entity(actor, Actor).kind
        except KeyError:
            kind = ACTOR_CHARACTER
        disposition = DISPOSITION_HOSTILE if kind == ACTOR_ADVERSARY else DISPOSITION_FRIENDLY
    return esper.create_entity(
        Token(actor_entity=actor, scene_entity=scene, x=float(x), y=float(y), disposition=disposition)
    )


def start_combat(combatants: Iterable[int], combat_id: str = "combat-1", *, round: int = 1) -> int:
    """Create an active combat directly, without emitting lifecycle events."""
    return esper.create_entity(
        Combat(combat_id=combat_id, round=round, combatant_entities=list(combatants))
    )
