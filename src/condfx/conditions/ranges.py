from __future__ import annotations

import math
from typing import Mapping

from condfx.components.token import Token
from condfx.constants import DEFAULT_RANGE_THRESHOLDS, RANGE_BANDS

RANGE_MODES = ("within", "at", "beyond")


def band_threshold(thresholds: Mapping[str, float], band: str) -> float:
    if band == "veryFar":
        return math.inf
    return float(thresholds.get(band, DEFAULT_RANGE_THRESHOLDS.get(band, math.inf)))


def previous_band_threshold(thresholds: Mapping[str, float], band: str) -> float:
    """Upper bound of the next-closer band; melee has none."""
    try:
        index = RANGE_BANDS.index(band)
    except ValueError:
        return -math.inf
    if index == 0:
        return -math.inf
    return band_threshold(thresholds, RANGE_BANDS[index - 1])


def in_band(distance: float, mode: str, band: str, thresholds: Mapping[str, float]) -> bool:
    """Distance predicate for one candidate.

    ``within`` is at-or-closer, ``at`` is the exact band (beyond the next-closer
    bound, within this one) and ``beyond`` is strictly further than the bound.
    """
    if band not in RANGE_BANDS:
        return False
    limit = band_threshold(thresholds, band)
    if mode == "within":
        return distance <= limit
    if mode == "at":
        return previous_band_threshold(thresholds, band) < distance <= limit
    if mode == "beyond":
        return distance > limit
    return False


def token_distance(first: Token, second: Token) -> float:
    return math.hypot(first.x - second.x, first.y - second.y)
