from uuid import UUID

from src.base.errors import EngineError
from src.offer.models import OfferStatus


class InvalidTransition(EngineError):
    def __init__(self, current: OfferStatus, requested: OfferStatus) -> None:
        super().__init__(
            f"Cannot move offer from {current.value} to {requested.value}"
        )
        self.current = current
        self.requested = requested


class InvalidExtension(EngineError):
    """Validity can only move forward, and only on an open offer."""


class OfferNotFound(EngineError):
    def __init__(self, offer_id: UUID) -> None:
        super().__init__(f"Offer {offer_id} not found")
        self.offer_id = offer_id
