from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class Flags:
    """Namespaced persisted key-value flags carried by a document entity."""

    values: dict[str, dict[str, Any]] = field(default_factory=dict)
