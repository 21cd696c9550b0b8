"""Mutable in-flight computation objects the host passes into hooks by reference."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from condfx.constants import HIT_POINTS_PART, AdvMode


@dataclass(slots=True)
class RollModifier:
    label: str
    value: int


@dataclass(slots=True)
class RollTarget:
    """A resolved target of a roll.

    ``defense`` is the host's pre-snapshotted evasion/difficulty used for the
    hit check; ``hit`` is filled in once the check resolves.
    """

    actor: int | None
    token: int | None = None
    defense: int | None = None
    hit: bool | None = None


@dataclass(slots=True)
class RollOutcome:
    total: int = 0
    with_hope: bool = False
    with_fear: bool = False
    critical: bool = False


@dataclass(slots=True)
class RollConfig:
    """Duality/attack roll under construction."""

    source_actor: int | None
    roll_id: str = ""
    action: Any = None
    item: int | None = None
    trait: str | None = None
    roll_kind: str = "action"
    is_attack: bool = True
    advantage: AdvMode = AdvMode.NORMAL
    base_modifiers: list[RollModifier] = field(default_factory=list)
    targets: list[RollTarget] = field(default_factory=list)
    outcome: RollOutcome | None = None
    synced_targets: list[int] | None = None
    pending_defense_gates: list[tuple[int, Any]] | None = None

    def target_actors(self) -> list[int]:
        return [target.actor for target in self.targets if target.actor is not None]


@dataclass(slots=True)
class DamagePart:
    """One damage-roll part.

    ``damage_types`` keeps whatever collection shape the host gave it: a set,
    a list, or a keyed map whose values are the type tags.
    """

    formula: str = ""
    apply_to: str = HIT_POINTS_PART
    damage_types: Any = field(default_factory=set)
    extra_formula: str = ""
    total: int = 0

    def type_tags(self) -> list[str]:
        return damage_type_list(self.damage_types)


def damage_type_list(collection: Any) -> list[str]:
    if collection is None:
        return []
    if isinstance(collection, dict):
        return [str(value) for value in collection.values()]
    if isinstance(collection, str):
        return [collection] if collection else []
    if isinstance(collection, Iterable):
        return [str(value) for value in collection]
    return []


@dataclass(slots=True)
class DamageConfig:
    """Outgoing damage roll: formula assembly and, later, hit application."""

    source_actor: int | None
    action: Any = None
    item: int | None = None
    parts: list[DamagePart] = field(default_factory=list)
    targets: list[RollTarget] = field(default_factory=list)
    pending_definition_ids: list[str] | None = None

    def declared_damage_types(self) -> set[str]:
        declared: set[str] = set()
        for part in self.parts:
            declared.update(part.type_tags())
        return declared

    def target_actors(self) -> list[int]:
        return [target.actor for target in self.targets if target.actor is not None]

    def hit_actors(self) -> list[int]:
        return [target.actor for target in self.targets if target.hit and target.actor is not None]


@dataclass(slots=True)
class TakeDamageConfig:
    """Damage about to be applied to a single defender."""

    target_actor: int
    source_actor: int | None = None
    parts: list[DamagePart] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(part.total for part in self.parts)
