"""Namespaced key-value flags persisted on host documents.

Keys are dotted paths below the module namespace (``durations.<defId>``).
Every write yields once to the event loop, the same suspension point a real
document round trip would have, and then announces the touched top-level keys
through ``EVENT_FLAGS_CHANGED``.
"""
from __future__ import annotations

import asyncio
import copy
from typing import Any, Callable, Dict, Iterable, Mapping, Tuple

import esper

from condfx.components.flags import Flags
from condfx.constants import MODULE_ID
from condfx.errors import FlagWriteError
from condfx.events.bus import EVENT_FLAGS_CHANGED, EventBus

_MISSING = object()


def _split(key: str) -> list[str]:
    parts = [part for part in str(key).split(".") if part]
    if not parts:
        raise ValueError("Flag key must not be empty")
    return parts


class FlagStore:
    def __init__(self, event_bus: EventBus, namespace: str = MODULE_ID) -> None:
        self.event_bus = event_bus
        self.namespace = namespace

    # Reads --------------------------------------------------------------
    def get(self, entity: int | None, key: str, default: Any = None) -> Any:
        """Return a copy of the stored value, or ``default`` when absent."""
        if entity is None or not esper.entity_exists(entity):
            return default
        flags = esper.try_component(entity, Flags)
        if flags is None:
            return default
        node: Any = flags.values.get(self.namespace, {})
        for part in _split(key):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return copy.deepcopy(node)

    def has(self, entity: int | None, key: str) -> bool:
        return self.get(entity, key, _MISSING) is not _MISSING

    # Writes -------------------------------------------------------------
    async def set(self, entity: int, key: str, value: Any) -> None:
        await self.update(entity, {key: value})

    async def unset(self, entity: int, key: str) -> None:
        """Remove ``key`` outright; a merge write could never delete it."""
        await self.update(entity, remove=(key,))

    async def update(
        self,
        entity: int,
        values: Mapping[str, Any] | None = None,
        remove: Iterable[str] = (),
    ) -> None:
        """Apply several sets and removals as one write."""
        values = dict(values or {})
        removals = list(remove)
        if not values and not removals:
            return
        await self.transact(entity, lambda _read: (values, removals))

    async def modify(self, entity: int, key: str, fn: Callable[[Any], Any], default: Any = None) -> Any:
        """Replace ``key`` with ``fn(current)``, reading current at write time."""
        result: Dict[str, Any] = {}

        def build(read: Callable[[str, Any], Any]) -> Tuple[Mapping[str, Any], Iterable[str]]:
            result["value"] = fn(read(key, default))
            return {key: result["value"]}, ()

        await self.transact(entity, build)
        return result.get("value")

    async def transact(self, entity: int, build: Callable[..., Tuple[Mapping[str, Any], Iterable[str]]]) -> None:
        """Read-modify-write with nothing interleaved between the read and the write.

        ``build(read)`` runs after the suspension point and returns the
        ``(values, removals)`` to apply; ``read(key, default)`` sees current state.
        """
        await asyncio.sleep(0)
        values, removals = build(lambda key, default=None: self.get(entity, key, default))
        values = dict(values or {})
        removals = list(removals or ())
        if not values and not removals:
            return
        namespace = self._namespace_for_write(entity, next(iter(values), None) or removals[0])
        touched: list[str] = []
        for key in removals:
            parts = _split(key)
            self._remove_path(namespace, parts)
            touched.append(parts[0])
        for key, value in values.items():
            parts = _split(key)
            self._set_path(namespace, parts, copy.deepcopy(value))
            touched.append(parts[0])
        self.event_bus.emit(EVENT_FLAGS_CHANGED, entity=entity, keys=tuple(dict.fromkeys(touched)))

    # Internal helpers ---------------------------------------------------
    def _namespace_for_write(self, entity: int, key: str) -> Dict[str, Any]:
        if not esper.entity_exists(entity):
            raise FlagWriteError(entity, key, "document no longer exists")
        flags = esper.try_component(entity, Flags)
        if flags is None:
            flags = Flags()
            esper.add_component(entity, flags)
        return flags.values.setdefault(self.namespace, {})

    @staticmethod
    def _set_path(root: Dict[str, Any], parts: list[str], value: Any) -> None:
        node = root
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

    @staticmethod
    def _remove_path(root: Dict[str, Any], parts: list[str]) -> None:
        node: Any = root
        for part in parts[:-1]:
            node = node.get(part) if isinstance(node, dict) else None
            if node is None:
                return
        if isinstance(node, dict):
            node.pop(parts[-1], None)
