import enum
from datetime import datetime
from uuid import UUID

from sqlalchemy import Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.base.models import BaseDbModel, UTCDateTime, VersionedMixin
from src.base.schemas import PydanticJSONB
from src.offer.price import Currency, PriceBreakdown

SYSTEM_ACTOR = "system"


class OfferStatus(enum.Enum):
    PENDING = "pending"
    AWAITING_RESPONSE = "awaiting_response"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


OPEN_STATUSES = frozenset({OfferStatus.PENDING, OfferStatus.AWAITING_RESPONSE})
RESPONDED_STATUSES = frozenset({OfferStatus.ACCEPTED, OfferStatus.REJECTED})


class Offer(VersionedMixin, BaseDbModel):
    __tablename__ = "offers"

    branch_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    created_by: Mapped[str] = mapped_column(String, nullable=False)
    customer_name: Mapped[str] = mapped_column(String, nullable=False)
    customer_email: Mapped[str | None] = mapped_column(String, nullable=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    currency: Mapped[Currency] = mapped_column(
        Enum(Currency), nullable=False, default=Currency.DKK
    )
    pricing: Mapped[PriceBreakdown | None] = mapped_column(
        PydanticJSONB(PriceBreakdown), nullable=True
    )

    # ── Lifecycle ──
    status: Mapped[OfferStatus] = mapped_column(
        Enum(OfferStatus), nullable=False, default=OfferStatus.PENDING, index=True
    )
    sent_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    responded_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    valid_until: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    # ── Follow-up automation ──
    follow_up_attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    last_notified_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    escalated_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )

    history: Mapped[list["OfferStatusHistory"]] = relationship(
        back_populates="offer",
        order_by="OfferStatusHistory.timestamp",
        cascade="all, delete-orphan",
    )


class OfferStatusHistory(BaseDbModel):
    """Append-only audit trail of an offer's lifecycle."""

    __tablename__ = "offer_status_history"

    offer_id: Mapped[UUID] = mapped_column(
        ForeignKey("offers.id"), nullable=False, index=True
    )
    status: Mapped[OfferStatus] = mapped_column(Enum(OfferStatus), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    changed_by: Mapped[str] = mapped_column(String, nullable=False)
    reason: Mapped[str | None] = mapped_column(String, nullable=True)

    offer: Mapped[Offer] = relationship(back_populates="history")
