from blinker import Signal
from typing import Dict


def _as_coroutine(fn):
    async def runner(*args, **kwargs):
        return fn(*args, **kwargs)

    return runner


class EventBus:
    """Simple event bus leveraging blinker Signal objects.

    Host lifecycle events are dispatched with ``emit_async`` so coroutine
    handlers run to completion before the host resumes.
    """
    def __init__(self):
        self._signals: Dict[str, Signal] = {}

    def subscribe(self, name: str, fn):
        sig = self._signals.setdefault(name, Signal(name))
        # Use weak=False to retain strong reference to bound methods so systems not kept in a variable still receive events.
        sig.connect(fn, weak=False)

    def unsubscribe(self, name: str, fn):
        sig = self._signals.get(name)
        if sig:
            sig.disconnect(fn)

    def emit(self, name: str, **payload):
        sig = self._signals.get(name)
        if sig:
            sig.send(self, **payload)

    async def emit_async(self, name: str, **payload):
        sig = self._signals.get(name)
        if sig:
            await sig.send_async(self, _sync_wrapper=_as_coroutine, **payload)


# ============================================================================
# ROLLS
# ============================================================================
EVENT_PRE_ROLL = "pre_roll"                        # payload: roll=RollConfig
EVENT_POST_ROLL = "post_roll"                      # payload: roll=RollConfig (outcome set)


# ============================================================================
# DAMAGE
# ============================================================================
EVENT_PRE_DAMAGE_ACTION = "pre_damage_action"      # payload: config=DamageConfig
EVENT_PRE_ROLL_DAMAGE = "pre_roll_damage"          # payload: config=DamageConfig
EVENT_PRE_APPLY_DAMAGE = "pre_apply_damage"        # payload: config=DamageConfig (before hit points change)
EVENT_PRE_TAKE_DAMAGE = "pre_take_damage"          # payload: config=TakeDamageConfig
EVENT_POST_TAKE_DAMAGE = "post_take_damage"        # payload: actor=int, hp_before=int, hp_after=int
EVENT_POST_APPLY_DAMAGE = "post_apply_damage"      # payload: config=DamageConfig (targets carry hit)


# ============================================================================
# COMBAT
# ============================================================================
EVENT_COMBAT_CREATED = "combat_created"            # payload: combat_entity=int
EVENT_COMBAT_UPDATED = "combat_updated"            # payload: combat_entity=int, changes=dict
EVENT_COMBAT_DELETED = "combat_deleted"            # payload: combat_entity=int, combat_id=str


# ============================================================================
# DOCUMENT UPDATES
# ============================================================================
EVENT_ACTOR_PRE_UPDATE = "actor_pre_update"        # payload: actor=int, changes=dict, source=str|None
EVENT_ACTOR_UPDATED = "actor_updated"              # payload: actor=int, changes=dict, source=str|None
EVENT_ACTOR_DELETED = "actor_deleted"              # payload: actor=int
EVENT_ITEM_PRE_UPDATE = "item_pre_update"          # payload: item=int, changes=dict
EVENT_ITEM_UPDATED = "item_updated"                # payload: item=int, changes=dict
EVENT_EFFECT_CREATED = "effect_created"            # payload: actor=int, record_entity=int|None, family=str|None, statuses=tuple
EVENT_EFFECT_DELETED = "effect_deleted"            # payload: actor=int, record_entity=int|None, family=str|None, statuses=tuple
EVENT_FLAGS_CHANGED = "flags_changed"              # payload: entity=int, keys=tuple[str, ...]


# ============================================================================
# CANVAS
# ============================================================================
EVENT_TOKEN_UPDATED = "token_updated"              # payload: token=int, changes=dict
EVENT_TARGETS_CHANGED = "targets_changed"          # payload: token_entities=tuple[int, ...]


# ============================================================================
# ENGINE NOTIFICATIONS (synchronous receivers only)
# ============================================================================
EVENT_MODIFIER_APPLIED = "modifier_applied"        # payload: actor=int, definition_id=str, kind=str
EVENT_TRIGGER_MARKED = "trigger_marked"            # payload: actor=int, kind=str, tier=str|None, amount=int|None
EVENT_DURATION_CONSUMED = "duration_consumed"      # payload: actor=int, definition_id=str, remaining=int|None
EVENT_SYNC_COMPLETED = "sync_completed"            # payload: actor=int, family=str, created=int, deleted=int
