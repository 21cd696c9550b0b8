"""Numeric attribute read adapter.

Every attribute id the condition grammar knows maps to exactly one typed read
against the host; nothing outside this module reads host state by name.
"""
from __future__ import annotations

from typing import Callable, Dict

from condfx.constants import KEY_EVASION, KEY_PROFICIENCY, TRAIT_NAMES
from condfx.host import TabletopHost
from condfx.utils.coerce import round_half_up

# Attributes that consumption may nudge, mapped to the resource they live on.
NUDGEABLE_RESOURCES: Dict[str, str] = {
    "hope": "hope",
    "hope_pct": "hope",
    "stress": "stress",
    "stress_pct": "stress",
    "hitPoints": "hitPoints",
    "hitPoints_pct": "hitPoints",
}


def _percent(value: int, maximum: int) -> int | None:
    if not maximum:
        return None
    return round_half_up(value / maximum * 100)


def _resource_value(host: TabletopHost, actor: int, key: str) -> int | None:
    pool = host.resource(actor, key)
    return pool.value if pool is not None else None


def _resource_max(host: TabletopHost, actor: int, key: str) -> int | None:
    pool = host.resource(actor, key)
    return pool.max if pool is not None else None


def _resource_percent(host: TabletopHost, actor: int, key: str) -> int | None:
    pool = host.resource(actor, key)
    return _percent(pool.value, pool.max) if pool is not None else None


def _armor_score(host: TabletopHost, actor: int) -> int | None:
    pool = host.resource(actor, "armor")
    if pool is not None and pool.max > 0:
        return pool.value
    stats = host.combat_stats(actor)
    return stats.armor_score if stats is not None else None


_READERS: Dict[str, Callable[[TabletopHost, int], int | None]] = {
    "hope": lambda host, actor: _resource_value(host, actor, "hope"),
    "hope_pct": lambda host, actor: _resource_percent(host, actor, "hope"),
    "stress": lambda host, actor: _resource_value(host, actor, "stress"),
    "stress_pct": lambda host, actor: _resource_percent(host, actor, "stress"),
    "hitPoints": lambda host, actor: _resource_value(host, actor, "hitPoints"),
    "hitPoints_max": lambda host, actor: _resource_max(host, actor, "hitPoints"),
    "hitPoints_pct": lambda host, actor: _resource_percent(host, actor, "hitPoints"),
    "evasion": lambda host, actor: host.effective_value(actor, KEY_EVASION),
    "proficiency": lambda host, actor: host.effective_value(actor, KEY_PROFICIENCY),
    "armorScore": _armor_score,
}
for _trait in TRAIT_NAMES:
    _READERS[_trait] = lambda host, actor, name=_trait: host.trait(actor, name)


def get_numeric_attribute(host: TabletopHost, actor: int | None, attribute_id: str) -> int | None:
    """Return the attribute value, or ``None`` when the actor does not carry it."""
    if actor is None or not host.entity_exists(actor):
        return None
    reader = _READERS.get(attribute_id)
    if reader is None:
        return None
    return reader(host, actor)


def compare(value: float, operator: str, threshold: float) -> bool:
    if operator == ">=":
        return value >= threshold
    if operator == "<=":
        return value <= threshold
    if operator == "==":
        return value == threshold
    if operator == ">":
        return value > threshold
    if operator == "<":
        return value < threshold
    return False


def nudge_value(
    host: TabletopHost,
    actor: int,
    attribute_id: str,
    operator: str,
    threshold: float,
) -> int | None:
    """Closest raw resource value in ``[0, max]`` that makes the comparison false.

    Returns ``None`` when the attribute cannot be nudged or no such value exists.
    """
    resource_key = NUDGEABLE_RESOURCES.get(attribute_id)
    if resource_key is None:
        return None
    pool = host.resource(actor, resource_key)
    if pool is None or pool.max <= 0:
        return None
    as_percent = attribute_id.endswith("_pct")

    def holds(raw: int) -> bool:
        measured = _percent(raw, pool.max) if as_percent else raw
        return measured is not None and compare(measured, operator, threshold)

    if not holds(pool.value):
        return None
    for distance in range(1, pool.max + 1):
        for candidate in (pool.value - distance, pool.value + distance):
            if 0 <= candidate <= pool.max and not holds(candidate):
                return candidate
    return None
