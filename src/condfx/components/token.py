from dataclasses import dataclass

DISPOSITION_HOSTILE = -1
DISPOSITION_NEUTRAL = 0
DISPOSITION_FRIENDLY = 1


@dataclass(slots=True)
class Token:
    """On-board placement of an actor. Coordinates are scene units (feet)."""

    actor_entity: int
    scene_entity: int
    x: float = 0.0
    y: float = 0.0
    disposition: int = DISPOSITION_FRIENDLY
