"""Opt-in, per-category debug logging.

Each category is a standard ``logging`` logger named ``condfx.<category>``.
Enabling a category lowers that logger to ``DEBUG``; errors are always logged
regardless of which categories are switched on.
"""
from __future__ import annotations

import logging
from typing import Iterable


class DebugCategory:
    CORE = "core"
    HOOKS = "hooks"
    CONDITIONS = "conditions"
    THRESHOLDS = "thresholds"
    DEFENSE = "defense"
    STATUS = "status"
    DAMAGE = "damage"
    ON_HIT = "on_hit"

    ALL = (CORE, HOOKS, CONDITIONS, THRESHOLDS, DEFENSE, STATUS, DAMAGE, ON_HIT)


ROOT_LOGGER_NAME = "condfx"


def get_logger(category: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{category}")


def _resolve(categories: Iterable[str]) -> tuple[str, ...]:
    requested = tuple(categories)
    if not requested:
        return DebugCategory.ALL
    unknown = [name for name in requested if name not in DebugCategory.ALL]
    if unknown:
        raise ValueError(f"Unknown debug categories: {', '.join(unknown)}")
    return requested


def enable_debug(*categories: str) -> None:
    for category in _resolve(categories):
        get_logger(category).setLevel(logging.DEBUG)


def disable_debug(*categories: str) -> None:
    for category in _resolve(categories):
        get_logger(category).setLevel(logging.NOTSET)


def is_debug_enabled(category: str) -> bool:
    return get_logger(category).level == logging.DEBUG
