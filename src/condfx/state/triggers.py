from __future__ import annotations

from typing import Any, Callable, Dict

from condfx.conditions.context import EvaluationContext
from condfx.constants import FLAG_TRIGGERS
from condfx.debug import DebugCategory, get_logger
from condfx.effects.model import Condition, TriggerCondition
from condfx.errors import FlagWriteError
from condfx.events.bus import EVENT_TRIGGER_MARKED, EventBus
from condfx.state.flags import FlagStore

logger = get_logger(DebugCategory.THRESHOLDS)


class TriggerStore:
    """One-shot trigger markers per actor.

    A marker is set right after the event that raised it and cleared when a
    condition reading it is applied; there is no time-based expiry.
    """

    def __init__(self, flags: FlagStore, event_bus: EventBus, clock: Callable[[], float]) -> None:
        self.flags = flags
        self.event_bus = event_bus
        self.clock = clock

    def get_triggers(self, actor: int | None) -> Dict[str, Dict[str, Any]]:
        stored = self.flags.get(actor, FLAG_TRIGGERS, {})
        return stored if isinstance(stored, dict) else {}

    def is_set(self, actor: int | None, kind: str, tier: str | None = None) -> bool:
        marker = self.get_triggers(actor).get(kind)
        if not isinstance(marker, dict) or not marker.get("set"):
            return False
        if tier is not None and marker.get("tier") != tier:
            return False
        return True

    async def mark(self, actor: int, kind: str, tier: str | None = None, amount: int | None = None) -> None:
        marker: Dict[str, Any] = {"set": True, "at": self.clock()}
        if tier is not None:
            marker["tier"] = tier
        if amount is not None:
            marker["amount"] = int(amount)
        try:
            await self.flags.set(actor, f"{FLAG_TRIGGERS}.{kind}", marker)
        except FlagWriteError as exc:
            logger.error("Could not mark trigger %s on %s: %s", kind, actor, exc)
            return
        logger.debug("Marked trigger %s (tier=%s amount=%s) on %s", kind, tier, amount, actor)
        self.event_bus.emit(EVENT_TRIGGER_MARKED, actor=actor, kind=kind, tier=tier, amount=amount)

    async def clear(self, actor: int, kind: str) -> None:
        if kind not in self.get_triggers(actor):
            return
        try:
            await self.flags.unset(actor, f"{FLAG_TRIGGERS}.{kind}")
        except FlagWriteError as exc:
            logger.error("Could not clear trigger %s on %s: %s", kind, actor, exc)
            return
        logger.debug("Cleared trigger %s on %s", kind, actor)

    async def clear_for_condition(self, condition: Condition, ctx: EvaluationContext) -> None:
        """Consume the marker a trigger condition just read, if it read one."""
        if not isinstance(condition, TriggerCondition):
            return
        subject = ctx.subject(condition.subject)
        if subject is None:
            return
        await self.clear(subject, condition.trigger)
