from dataclasses import dataclass


@dataclass(slots=True)
class Actor:
    """Identity of a character or adversary on the table.

    ``kind`` decides which scene-wide toggle bucket applies to the actor.
    """

    name: str
    kind: str = "character"
