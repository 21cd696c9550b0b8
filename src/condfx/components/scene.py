from dataclasses import dataclass


@dataclass(slots=True)
class Scene:
    name: str
    active: bool = False


@dataclass(slots=True)
class WorldSettings:
    """Marker for the single entity holding world-scoped settings flags."""

    title: str = "world"
