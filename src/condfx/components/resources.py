from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class Resource:
    value: int = 0
    max: int = 0

    def clamp(self) -> None:
        if self.value < 0:
            self.value = 0
        if self.max >= 0 and self.value > self.max:
            self.value = self.max


@dataclass(slots=True)
class Resources:
    """Tracked pools on an actor. ``armor`` counts marked slots against its max."""

    hope: Resource = field(default_factory=lambda: Resource(2, 6))
    stress: Resource = field(default_factory=lambda: Resource(0, 6))
    hit_points: Resource = field(default_factory=lambda: Resource(6, 6))
    armor: Resource = field(default_factory=lambda: Resource(0, 0))

    def get(self, key: str) -> Resource | None:
        return {
            "hope": self.hope,
            "stress": self.stress,
            "hitPoints": self.hit_points,
            "armor": self.armor,
        }.get(key)


@dataclass(slots=True)
class Traits:
    agility: int = 0
    strength: int = 0
    finesse: int = 0
    instinct: int = 0
    presence: int = 0
    knowledge: int = 0


@dataclass(slots=True)
class CombatStats:
    """Base combat numbers before applied modifier records are added."""

    evasion: int | None = 10
    difficulty: int | None = None
    proficiency: int = 1
    armor_score: int = 0
    major_threshold: int = 5
    severe_threshold: int = 10
