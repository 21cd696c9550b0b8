from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class Combat:
    combat_id: str
    round: int = 0
    turn: int = 0
    active: bool = True
    combatant_entities: list[int] = field(default_factory=list)
