from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class Item:
    """A carried item. Armor items track marked slots in ``marks``."""

    name: str
    item_type: str
    owner_entity: int | None = None
    equipped: bool = False
    in_vault: bool = False
    marks: int = 0
    max_marks: int = 0


@dataclass(slots=True)
class Inventory:
    """Holds references to item entities carried by an actor, in sheet order."""

    item_entities: list[int] = field(default_factory=list)
