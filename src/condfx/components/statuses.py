from dataclasses import dataclass, field


@dataclass(slots=True)
class Statuses:
    """Status flags set directly on an actor (not via applied modifier records)."""

    active: set[str] = field(default_factory=set)
