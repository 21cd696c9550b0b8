from __future__ import annotations

from dataclasses import dataclass, field
from time import monotonic
from typing import Any, Callable, Dict, FrozenSet, Mapping

from condfx.constants import (
    DEFAULT_ATTACKER_WINDOW,
    DEFAULT_CHAIN_DEPTH_LIMIT,
    DEFAULT_RANGE_THRESHOLDS,
    DEFAULT_THRESHOLD_TIERS,
    DEFAULT_TOKEN_DEBOUNCE,
    RANGE_BANDS,
)
from condfx.utils.coerce import coerce_float, coerce_int


@dataclass(slots=True)
class EngineSettings:
    """Tunable knobs for the reconciliation engine.

    ``range_thresholds`` maps each distance band to its inclusive upper bound in
    scene units. Bands missing from an override keep their defaults, and
    ``veryFar`` is always unbounded.
    """

    range_thresholds: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_RANGE_THRESHOLDS))
    token_debounce: float = DEFAULT_TOKEN_DEBOUNCE
    attacker_window: float = DEFAULT_ATTACKER_WINDOW
    chain_depth_limit: int = DEFAULT_CHAIN_DEPTH_LIMIT
    threshold_tiers: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_THRESHOLD_TIERS))
    debug_categories: FrozenSet[str] = frozenset()
    clock: Callable[[], float] = field(default=monotonic, repr=False)

    def __post_init__(self) -> None:
        thresholds = dict(DEFAULT_RANGE_THRESHOLDS)
        for band, value in (self.range_thresholds or {}).items():
            if band in thresholds:
                thresholds[band] = max(0.0, coerce_float(value, thresholds[band]))
        thresholds["veryFar"] = float("inf")
        self.range_thresholds = {band: thresholds[band] for band in RANGE_BANDS}
        self.token_debounce = max(0.0, coerce_float(self.token_debounce, DEFAULT_TOKEN_DEBOUNCE))
        self.attacker_window = max(0.0, coerce_float(self.attacker_window, DEFAULT_ATTACKER_WINDOW))
        self.chain_depth_limit = max(0, coerce_int(self.chain_depth_limit, DEFAULT_CHAIN_DEPTH_LIMIT))
        tiers = dict(DEFAULT_THRESHOLD_TIERS)
        for tier, value in (self.threshold_tiers or {}).items():
            if tier in tiers:
                tiers[tier] = max(1, coerce_int(value, tiers[tier]))
        self.threshold_tiers = tiers
        self.debug_categories = frozenset(self.debug_categories or ())

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None) -> "EngineSettings":
        data = dict(mapping or {})
        kwargs: Dict[str, Any] = {}
        for name in (
            "range_thresholds",
            "token_debounce",
            "attacker_window",
            "chain_depth_limit",
            "threshold_tiers",
            "debug_categories",
        ):
            if name in data and data[name] is not None:
                kwargs[name] = data[name]
        return cls(**kwargs)

    def configure(self, **overrides: Any) -> None:
        for name, value in overrides.items():
            if name not in self.__dataclass_fields__:
                raise AttributeError(f"Unknown engine setting '{name}'")
            setattr(self, name, value)
        self.__post_init__()
