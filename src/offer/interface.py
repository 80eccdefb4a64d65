from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Sequence
from uuid import UUID

from src.offer.models import OPEN_STATUSES, OfferStatus
from src.offer.price import Currency, PriceBreakdown

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class StatusChange:
    """One OfferStatusHistory record."""

    status: OfferStatus
    timestamp: datetime
    changed_by: str
    reason: str | None = None


@dataclass(frozen=True)
class OfferSnapshot:
    """Point-in-time read of an offer, tagged with the version it was read at."""

    id: UUID
    version: int
    status: OfferStatus
    branch_id: str
    created_by: str
    customer_name: str
    title: str
    created_at: datetime
    valid_until: datetime
    sent_at: datetime | None = None
    responded_at: datetime | None = None
    follow_up_attempts: int = 0
    last_notified_at: datetime | None = None
    escalated_at: datetime | None = None
    customer_email: str | None = None
    currency: Currency = Currency.DKK
    pricing: PriceBreakdown | None = None
    history: tuple[StatusChange, ...] = ()

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    @property
    def last_change_at(self) -> datetime | None:
        return self.history[-1].timestamp if self.history else None

    def days_since_sent(self, now: datetime) -> int | None:
        if self.sent_at is None:
            return None
        return math.floor((now - self.sent_at) / ONE_DAY)


class OfferStore(ABC):
    """Typed access to Offer and OfferStatusHistory records."""

    @abstractmethod
    async def get_open_offers(self, now: datetime) -> Sequence[OfferSnapshot]:
        """Dispatched offers (sent at or before `now`) that are still open."""

    @abstractmethod
    async def get_offer(self, offer_id: UUID) -> OfferSnapshot:
        """Raises OfferNotFound for unknown ids."""

    @abstractmethod
    async def save_offer_transition(
        self,
        offer_id: UUID,
        expected_version: int,
        new_state: OfferSnapshot,
        history_entry: StatusChange | None,
    ) -> tuple[bool, int]:
        """Compare-and-swap write of the offer's mutable fields.

        Succeeds only while the stored version equals `expected_version`; the
        history entry (if any) is appended in the same unit. Returns whether
        the write happened and the version the offer now carries.
        """

    @abstractmethod
    async def add_offer(self, offer: OfferSnapshot) -> OfferSnapshot:
        """Persist a freshly dispatched offer together with its history."""
