class CondFxError(Exception):
    """Base class for engine errors."""


class StaleRecordError(CondFxError, KeyError):
    """An applied-modifier record vanished before it could be deleted."""

    def __init__(self, record_entity: int) -> None:
        super().__init__(record_entity)
        self.record_entity = record_entity

    def __str__(self) -> str:
        return f"Applied modifier record {self.record_entity} no longer exists"


class FlagWriteError(CondFxError):
    """A persisted flag write could not be completed."""

    def __init__(self, entity: int, key: str, reason: str = "") -> None:
        super().__init__(entity, key, reason)
        self.entity = entity
        self.key = key
        self.reason = reason

    def __str__(self) -> str:
        detail = f": {self.reason}" if self.reason else ""
        return f"Could not write flag '{self.key}' on entity {self.entity}{detail}"
