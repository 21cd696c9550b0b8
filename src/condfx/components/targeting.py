from dataclasses import dataclass, field


@dataclass(slots=True)
class UserTargets:
    """Tokens currently targeted by the acting user."""

    token_entities: list[int] = field(default_factory=list)
