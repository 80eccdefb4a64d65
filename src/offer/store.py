from __future__ import annotations

import logging
from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from src.base.session import store_session
from src.offer.errors import OfferNotFound
from src.offer.interface import OfferSnapshot, OfferStore, StatusChange
from src.offer.models import OPEN_STATUSES, Offer, OfferStatusHistory

logger = logging.getLogger(__name__)


def to_snapshot(offer: Offer) -> OfferSnapshot:
    return OfferSnapshot(
        id=offer.id,
        version=offer.version,
        status=offer.status,
        branch_id=offer.branch_id,
        created_by=offer.created_by,
        customer_name=offer.customer_name,
        customer_email=offer.customer_email,
        title=offer.title,
        created_at=offer.created_at,
        valid_until=offer.valid_until,
        sent_at=offer.sent_at,
        responded_at=offer.responded_at,
        follow_up_attempts=offer.follow_up_attempts,
        last_notified_at=offer.last_notified_at,
        escalated_at=offer.escalated_at,
        currency=offer.currency,
        pricing=offer.pricing,
        history=tuple(
            StatusChange(
                status=h.status,
                timestamp=h.timestamp,
                changed_by=h.changed_by,
                reason=h.reason,
            )
            for h in offer.history
        ),
    )


class SqlOfferStore(OfferStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_open_offers(self, now: datetime) -> Sequence[OfferSnapshot]:
        stmt = (
            select(Offer)
            .where(
                Offer.status.in_(OPEN_STATUSES),
                Offer.sent_at.is_not(None),
                Offer.sent_at <= now,
            )
            .options(selectinload(Offer.history))
            .order_by(Offer.sent_at)
        )
        async with store_session(self._session_factory) as session:
            offers = (await session.execute(stmt)).scalars().all()
            return [to_snapshot(o) for o in offers]

    async def get_offer(self, offer_id: UUID) -> OfferSnapshot:
        stmt = (
            select(Offer)
            .where(Offer.id == offer_id)
            .options(selectinload(Offer.history))
        )
        async with store_session(self._session_factory) as session:
            offer = (await session.execute(stmt)).scalar_one_or_none()
            if offer is None:
                raise OfferNotFound(offer_id)
            return to_snapshot(offer)

    async def save_offer_transition(
        self,
        offer_id: UUID,
        expected_version: int,
        new_state: OfferSnapshot,
        history_entry: StatusChange | None,
    ) -> tuple[bool, int]:
        stmt = (
            update(Offer)
            .where(Offer.id == offer_id, Offer.version == expected_version)
            .values(
                status=new_state.status,
                responded_at=new_state.responded_at,
                valid_until=new_state.valid_until,
                follow_up_attempts=new_state.follow_up_attempts,
                last_notified_at=new_state.last_notified_at,
                escalated_at=new_state.escalated_at,
                version=expected_version + 1,
            )
            .execution_options(synchronize_session=False)
        )

        async with store_session(self._session_factory) as session:
            async with session.begin():
                result = await session.execute(stmt)
                if result.rowcount != 1:
                    logger.debug(
                        "CAS miss on offer %s at version %d", offer_id, expected_version
                    )
                    return False, expected_version

                if history_entry is not None:
                    session.add(
                        OfferStatusHistory(
                            offer_id=offer_id,
                            status=history_entry.status,
                            timestamp=history_entry.timestamp,
                            changed_by=history_entry.changed_by,
                            reason=history_entry.reason,
                        )
                    )

        return True, expected_version + 1

    async def add_offer(self, offer: OfferSnapshot) -> OfferSnapshot:
        row = Offer(
            id=offer.id,
            version=offer.version,
            status=offer.status,
            branch_id=offer.branch_id,
            created_by=offer.created_by,
            customer_name=offer.customer_name,
            customer_email=offer.customer_email,
            title=offer.title,
            created_at=offer.created_at,
            valid_until=offer.valid_until,
            sent_at=offer.sent_at,
            responded_at=offer.responded_at,
            follow_up_attempts=offer.follow_up_attempts,
            last_notified_at=offer.last_notified_at,
            escalated_at=offer.escalated_at,
            currency=offer.currency,
            pricing=offer.pricing,
        )
        row.history = [
            OfferStatusHistory(
                status=h.status,
                timestamp=h.timestamp,
                changed_by=h.changed_by,
                reason=h.reason,
            )
            for h in offer.history
        ]

        async with store_session(self._session_factory) as session:
            async with session.begin():
                session.add(row)

        return offer
