from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Change:
    """Additive change to a numeric key path on the owning actor."""

    key: str
    mode: str
    value: int


@dataclass(slots=True)
class AppliedModifier:
    """Reconciled record of a live persistent modifier.

    Records are created and deleted only by the reconciliation family named in
    ``family``; ``source_definition_id`` ties the record back to its definition.
    """

    owner_entity: int
    family: str
    source_definition_id: str
    label: str = ""
    changes: tuple[Change, ...] = ()
    statuses: tuple[str, ...] = ()
    magnitude: Any = None


@dataclass(slots=True)
class AppliedModifierList:
    """Holds references to record entities that currently influence an owner."""

    record_entities: list[int] = field(default_factory=list)
