class EngineError(Exception):
    """Base class for every error raised by the offer and scheduling engine."""


class StoreUnavailable(EngineError):
    """The entity store could not be reached or failed mid-operation."""


class ConcurrentModification(EngineError):
    def __init__(self, entity_id: object) -> None:
        super().__init__(f"{entity_id} was modified concurrently")
        self.entity_id = entity_id
