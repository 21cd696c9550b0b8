from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, FrozenSet

from condfx.effects.model import SUBJECT_TARGET


@dataclass(frozen=True, slots=True)
class EvaluationContext:
    """Who is acting and against whom.

    ``target`` is the opposing actor from ``self_actor``'s point of view.
    ``attacker`` is set only when an incoming attack is being resolved, and
    ``incoming_damage_types`` only once damage types are known; ``None`` there
    means "too early to tell".
    """

    self_actor: int | None
    target: int | None = None
    item: int | None = None
    action: Any = None
    attacker: int | None = None
    incoming_damage_types: FrozenSet[str] | None = None

    def subject(self, which: str) -> int | None:
        return self.target if which == SUBJECT_TARGET else self.self_actor

    def with_damage_types(self, damage_types) -> "EvaluationContext":
        return replace(self, incoming_damage_types=frozenset(damage_types))

    def swapped(self) -> "EvaluationContext":
        """Same event seen from the opposing actor."""
        return replace(self, self_actor=self.target, target=self.self_actor)
