from __future__ import annotations

from dataclasses import dataclass, field
from time import monotonic
from typing import Callable, Dict, List, Tuple


@dataclass(slots=True)
class AttackerCache:
    """Best-effort memory of who just hit whom.

    Hit application records ``(defender -> attacker)``; the damage-taken hook
    pops the newest entry still inside ``window`` seconds. Older entries are
    discarded rather than matched, so a stale attack is never credited.
    """

    window: float = 10.0
    clock: Callable[[], float] | None = field(default=None, repr=False)

    _clock: Callable[[], float] = field(init=False, repr=False)
    _entries: Dict[int, List[Tuple[float, int]]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._clock = self.clock or monotonic
        self._entries = {}
        self.window = max(0.0, float(self.window))

    def record(self, defender: int, attacker: int) -> None:
        self._entries.setdefault(defender, []).append((self._clock(), attacker))

    def pop(self, defender: int) -> int | None:
        """Consume and return the newest fresh attacker for ``defender``."""
        self._prune(defender)
        entries = self._entries.get(defender)
        if not entries:
            return None
        _, attacker = entries.pop()
        if not entries:
            del self._entries[defender]
        return attacker

    def peek(self, defender: int) -> int | None:
        self._prune(defender)
        entries = self._entries.get(defender)
        return entries[-1][1] if entries else None

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())

    def _prune(self, defender: int) -> None:
        entries = self._entries.get(defender)
        if not entries:
            return
        cutoff = self._clock() - self.window
        fresh = [entry for entry in entries if entry[0] >= cutoff]
        if fresh:
            self._entries[defender] = fresh
        else:
            del self._entries[defender]
