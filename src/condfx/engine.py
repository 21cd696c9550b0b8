"""Engine wiring and the library surface exposed to authoring layers.

``create_engine`` builds every store and system around one ``EventBus`` and
returns an ``Engine``. Hosts drive it purely through bus events; tests and
tools can additionally ``await engine.drain()`` to let background resyncs and
debounced rescans settle.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, List, Mapping, Set

from condfx.conditions.context import EvaluationContext
from condfx.conditions.evaluator import ConditionEvaluator
from condfx.constants import ASSIGNMENT_KEYS, SCENE_KEYS, SETTINGS_KEY
from condfx.debug import DebugCategory, enable_debug, get_logger
from condfx.effects.model import (
    ApplicationKind,
    Condition,
    EffectDefinition,
    TickEvent,
    parse_condition,
)
from condfx.effects.registry import EffectCatalog
from condfx.events.bus import (
    EVENT_ACTOR_DELETED,
    EVENT_ACTOR_UPDATED,
    EVENT_EFFECT_CREATED,
    EVENT_EFFECT_DELETED,
    EVENT_FLAGS_CHANGED,
    EVENT_ITEM_UPDATED,
    EventBus,
)
from condfx.host import TabletopHost
from condfx.settings import EngineSettings
from condfx.state.duration import DurationStore
from condfx.state.flags import FlagStore
from condfx.state.triggers import TriggerStore
from condfx.systems.assignment import AssignmentResolver
from condfx.systems.chain_processor import ChainProcessor
from condfx.systems.combat_lifecycle_system import CombatLifecycleSystem
from condfx.systems.damage_hook_system import DamageHookSystem
from condfx.systems.on_hit_system import OnHitSystem, Prompter
from condfx.systems.reconciliation import ReconciliationSystem
from condfx.systems.resource_trigger_system import ResourceTriggerSystem
from condfx.systems.roll_hook_system import RollHookSystem
from condfx.systems.token_watch_system import TokenWatchSystem
from condfx.utils.attacker_cache import AttackerCache

logger = get_logger(DebugCategory.CORE)


class Engine:
    def __init__(
        self,
        event_bus: EventBus,
        settings: EngineSettings,
        prompter: Prompter | None = None,
    ) -> None:
        self.event_bus = event_bus
        self.settings = settings
        self._tasks: Set[asyncio.Task] = set()

        self.host = TabletopHost(event_bus)
        self.flags = FlagStore(event_bus)
        self.catalog = EffectCatalog(self.host, self.flags)
        self.resolver = AssignmentResolver(self.host, self.flags, self.catalog)
        self.triggers = TriggerStore(self.flags, event_bus, settings.clock)
        self.durations = DurationStore(self.host, self.flags, event_bus)
        self.evaluator = ConditionEvaluator(self.host, self.triggers, settings)
        self.attacker_cache = AttackerCache(window=settings.attacker_window, clock=settings.clock)

        self.reconciliation = ReconciliationSystem(
            self.host, event_bus, self.resolver, self.evaluator, self.durations
        )
        self.chains = ChainProcessor(
            self.host, self.catalog, self.resolver, self.evaluator, self.durations, self.triggers, settings
        )
        self.roll_hooks = RollHookSystem(
            self.host, event_bus, self.resolver, self.evaluator, self.durations,
            self.triggers, self.reconciliation, self.chains,
        )
        self.damage_hooks = DamageHookSystem(
            self.host, event_bus, self.resolver, self.evaluator, self.durations,
            self.triggers, self.reconciliation, self.chains, self.attacker_cache, settings,
        )
        self.on_hit = OnHitSystem(
            self.host, event_bus, self.resolver, self.evaluator, self.durations, self.triggers,
            self.reconciliation, self.chains, self.attacker_cache, self.spawn, prompter,
        )
        self.combat_lifecycle = CombatLifecycleSystem(
            self.host, event_bus, self.resolver, self.durations, self.reconciliation
        )
        self.resource_triggers = ResourceTriggerSystem(self.host, event_bus, self.triggers, self.reconciliation)
        self.token_watch = TokenWatchSystem(
            self.host, event_bus, self.resolver, self.reconciliation, settings.token_debounce, self.spawn
        )

        event_bus.subscribe(EVENT_FLAGS_CHANGED, self.on_flags_changed)
        event_bus.subscribe(EVENT_EFFECT_CREATED, self.on_host_effect_changed)
        event_bus.subscribe(EVENT_EFFECT_DELETED, self.on_host_effect_changed)
        event_bus.subscribe(EVENT_ITEM_UPDATED, self.on_item_updated)
        event_bus.subscribe(EVENT_ACTOR_UPDATED, self.on_actor_updated)
        event_bus.subscribe(EVENT_ACTOR_DELETED, self.on_actor_deleted)

    # Background work ----------------------------------------------------
    def spawn(self, coro: Awaitable[None]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task failed", exc_info=exc)

    @property
    def pending_tasks(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    async def drain(self) -> None:
        """Run until no background task or debounced rescan is outstanding."""
        while True:
            if self.token_watch.debouncer.pending:
                await self.token_watch.debouncer.flush()
            tasks = [task for task in self._tasks if not task.done()]
            if not tasks:
                if not self.token_watch.debouncer.pending:
                    return
                continue
            await asyncio.gather(*tasks, return_exceptions=True)

    async def close(self) -> None:
        self.token_watch.debouncer.cancel()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self.attacker_cache.clear()

    async def _resync(self, actor: int) -> None:
        try:
            await self.reconciliation.sync_all(actor)
        except Exception:
            logger.exception("Resync failed for %s", self.host.actor_name(actor))

    async def _resync_everyone(self) -> None:
        try:
            await self.reconciliation.sync_everyone()
        except Exception:
            logger.exception("Full resync failed")

    # Host event handlers ------------------------------------------------
    def on_flags_changed(self, sender, **kwargs):
        entity = kwargs.get("entity")
        keys = set(kwargs.get("keys") or ())
        if keys & SCENE_KEYS or SETTINGS_KEY in keys:
            self.spawn(self._resync_everyone())
            return
        if keys & ASSIGNMENT_KEYS:
            owner = entity
            item = self.host.item(entity)
            if item is not None:
                owner = item.owner_entity
            if self.host.actor(owner) is not None:
                self.spawn(self._resync(owner))

    def on_host_effect_changed(self, sender, **kwargs):
        # Records created by the sync loops carry a family; only host-side
        # status toggles arrive without one.
        if kwargs.get("family") is not None:
            return
        actor = kwargs.get("actor")
        if self.host.actor(actor) is not None:
            self.spawn(self._resync(actor))

    def on_item_updated(self, sender, **kwargs):
        item = self.host.item(kwargs.get("item"))
        if item is not None and self.host.actor(item.owner_entity) is not None:
            self.spawn(self._resync(item.owner_entity))

    def on_actor_updated(self, sender, **kwargs):
        actor = kwargs.get("actor")
        if self.host.actor(actor) is not None:
            self.spawn(self._resync(actor))

    def on_actor_deleted(self, sender, **kwargs):
        actor = kwargs.get("actor")
        if actor is not None:
            self.reconciliation.forget(actor)

    # Library API --------------------------------------------------------
    def resolve_in_scope(self, actor: int) -> List[EffectDefinition]:
        return self.resolver.resolve_in_scope(actor)

    def evaluate(self, condition: Condition | Mapping[str, Any], ctx: EvaluationContext) -> bool:
        if isinstance(condition, Mapping):
            condition = parse_condition(condition)
        return self.evaluator.evaluate(condition, ctx)

    def _definition(self, definition: EffectDefinition | str) -> EffectDefinition | None:
        if isinstance(definition, EffectDefinition):
            return definition
        return self.catalog.get_definition(definition)

    def can_apply(self, actor: int, definition: EffectDefinition | str) -> bool:
        found = self._definition(definition)
        return found is not None and self.durations.can_apply(actor, found)

    async def consume(
        self,
        actor: int,
        definition: EffectDefinition | str,
        kind: ApplicationKind | str = ApplicationKind.ROLL,
    ) -> None:
        found = self._definition(definition)
        if found is None:
            return
        await self.durations.consume(actor, found, ApplicationKind(kind))

    async def tick(self, actor: int, tick_event: TickEvent | str) -> List[str]:
        ticked = await self.durations.tick_countdown(actor, TickEvent(tick_event), self.resolve_in_scope(actor))
        if ticked:
            await self.reconciliation.sync_all(actor)
        return ticked

    def get_triggers(self, actor: int) -> dict:
        return self.triggers.get_triggers(actor)

    async def mark(self, actor: int, kind: str, tier: str | None = None, amount: int | None = None) -> None:
        await self.triggers.mark(actor, kind, tier=tier, amount=amount)

    async def clear(self, actor: int, kind: str) -> None:
        await self.triggers.clear(actor, kind)

    async def assign(self, carrier: int, definition_id: str) -> bool:
        return await self.resolver.assign(carrier, definition_id)

    async def unassign(self, carrier: int, definition_id: str) -> bool:
        return await self.resolver.unassign(carrier, definition_id)


def create_engine(
    event_bus: EventBus | None = None,
    settings: EngineSettings | Mapping[str, Any] | None = None,
    prompter: Prompter | None = None,
) -> Engine:
    if not isinstance(settings, EngineSettings):
        settings = EngineSettings.from_mapping(settings)
    if settings.debug_categories:
        enable_debug(*sorted(settings.debug_categories))
    return Engine(event_bus or EventBus(), settings, prompter)
