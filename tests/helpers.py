from __future__ import annotations

from typing import Any, Dict, List, Mapping

from condfx.engine import Engine, create_engine
from condfx.events.bus import EVENT_SYNC_COMPLETED


def effect(
    definition_id: str,
    effect_type: str,
    *,
    condition: Mapping[str, Any] | None = None,
    duration: Mapping[str, Any] | None = None,
    name: str | None = None,
    enabled: bool = True,
    **fields: Any,
) -> Dict[str, Any]:
    """Stored-definition dict in the catalog's camelCase shape."""
    return {
        "id": definition_id,
        "name": name or definition_id,
        "enabled": enabled,
        "condition": dict(condition or {"type": "always"}),
        "effect": {"type": effect_type, **fields},
        "duration": dict(duration or {"mode": "permanent"}),
    }


async def build_engine(*definitions: Mapping[str, Any], **kwargs: Any) -> Engine:
    """Engine with ``definitions`` saved to the catalog and settled."""
    engine = create_engine(**kwargs)
    if definitions:
        await engine.catalog.save_all(definitions)
    await engine.drain()
    return engine


def record_sources(engine: Engine, actor: int, family: str) -> List[str]:
    return sorted(record.source_definition_id for _, record in engine.host.records(actor, family))


class SyncRecorder:
    """Collects SYNC_COMPLETED payloads."""

    def __init__(self, engine: Engine) -> None:
        self.events: List[Dict[str, Any]] = []
        engine.event_bus.subscribe(EVENT_SYNC_COMPLETED, self.on_sync)

    def on_sync(self, sender, **kwargs):
        self.events.append(kwargs)

    def clear(self) -> None:
        self.events.clear()
