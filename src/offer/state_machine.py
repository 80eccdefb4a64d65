from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable
from uuid import UUID, uuid4

from src.base.clock import Clock
from src.base.errors import ConcurrentModification, EngineError
from src.offer.errors import InvalidExtension, InvalidTransition
from src.offer.interface import OfferSnapshot, OfferStore, StatusChange
from src.offer.models import OPEN_STATUSES, RESPONDED_STATUSES, OfferStatus
from src.offer.price import Currency, PriceBreakdown

logger = logging.getLogger(__name__)

TRANSITIONS: dict[OfferStatus, frozenset[OfferStatus]] = {
    OfferStatus.PENDING: frozenset(
        {
            OfferStatus.AWAITING_RESPONSE,
            OfferStatus.ACCEPTED,
            OfferStatus.REJECTED,
            OfferStatus.EXPIRED,
        }
    ),
    OfferStatus.AWAITING_RESPONSE: frozenset(
        {OfferStatus.ACCEPTED, OfferStatus.REJECTED, OfferStatus.EXPIRED}
    ),
    OfferStatus.ACCEPTED: frozenset(),
    OfferStatus.REJECTED: frozenset(),
    OfferStatus.EXPIRED: frozenset(),
}

OFFER_SENT = "offer sent"
VALIDITY_EXTENDED = "validity extended"

Planned = tuple[OfferSnapshot, StatusChange | None]
Mutation = Callable[[OfferSnapshot], Planned | None]


def can_transition(current: OfferStatus, new: OfferStatus) -> bool:
    return new in TRANSITIONS[current]


def new_dispatched_offer(
    *,
    branch_id: str,
    created_by: str,
    customer_name: str,
    title: str,
    valid_until: datetime,
    sent_at: datetime,
    currency: Currency = Currency.DKK,
    pricing: PriceBreakdown | None = None,
    customer_email: str | None = None,
) -> OfferSnapshot:
    """A pending offer as it looks the moment it is sent to the customer."""
    if valid_until <= sent_at:
        raise InvalidExtension("An offer must be valid past the moment it is sent")
    return OfferSnapshot(
        id=uuid4(),
        version=1,
        status=OfferStatus.PENDING,
        branch_id=branch_id,
        created_by=created_by,
        customer_name=customer_name,
        customer_email=customer_email,
        title=title,
        created_at=sent_at,
        valid_until=valid_until,
        sent_at=sent_at,
        currency=currency,
        pricing=pricing,
        history=(
            StatusChange(
                status=OfferStatus.PENDING,
                timestamp=sent_at,
                changed_by=created_by,
                reason=OFFER_SENT,
            ),
        ),
    )


def history_timestamp(offer: OfferSnapshot, at: datetime) -> datetime:
    """`at`, nudged forward if needed so the history stays strictly ordered."""
    last = offer.last_change_at
    if last is not None and at <= last:
        return last + timedelta(microseconds=1)
    return at


def plan_transition(
    offer: OfferSnapshot,
    new_status: OfferStatus,
    actor: str,
    at: datetime,
    reason: str | None = None,
) -> Planned:
    if not can_transition(offer.status, new_status):
        raise InvalidTransition(offer.status, new_status)

    timestamp = history_timestamp(offer, at)
    new_state = replace(offer, status=new_status)
    if new_status in RESPONDED_STATUSES:
        new_state = replace(new_state, responded_at=timestamp)

    entry = StatusChange(
        status=new_status, timestamp=timestamp, changed_by=actor, reason=reason
    )
    return new_state, entry


def plan_extension(
    offer: OfferSnapshot, new_valid_until: datetime, actor: str, at: datetime
) -> Planned:
    if offer.status not in OPEN_STATUSES:
        raise InvalidExtension(
            f"Offer {offer.id} is {offer.status.value}; only open offers can be extended"
        )
    if new_valid_until <= offer.valid_until:
        raise InvalidExtension(
            f"New validity {new_valid_until.isoformat()} does not extend "
            f"{offer.valid_until.isoformat()}"
        )

    entry = StatusChange(
        status=offer.status,
        timestamp=history_timestamp(offer, at),
        changed_by=actor,
        reason=VALIDITY_EXTENDED,
    )
    return replace(offer, valid_until=new_valid_until), entry


class OfferStateMachine:
    """Single writer for offers.

    Every mutation goes through `commit`, which performs a compare-and-swap
    against the version the offer was read at. A lost race is retried once
    against a fresh read; the mutation is re-planned from that read, so a
    change that no longer applies fails validation instead of overwriting.
    """

    def __init__(self, store: OfferStore, clock: Clock) -> None:
        self._store = store
        self._clock = clock

    async def dispatch(
        self,
        *,
        branch_id: str,
        created_by: str,
        customer_name: str,
        title: str,
        valid_until: datetime,
        currency: Currency = Currency.DKK,
        pricing: PriceBreakdown | None = None,
        customer_email: str | None = None,
    ) -> OfferSnapshot:
        offer = new_dispatched_offer(
            branch_id=branch_id,
            created_by=created_by,
            customer_name=customer_name,
            title=title,
            valid_until=valid_until,
            sent_at=self._clock.now(),
            currency=currency,
            pricing=pricing,
            customer_email=customer_email,
        )
        stored = await self._store.add_offer(offer)
        logger.info("Offer %s sent by %s", stored.id, created_by)
        return stored

    async def apply_transition(
        self,
        offer_id: UUID,
        new_status: OfferStatus,
        actor: str,
        reason: str | None = None,
    ) -> OfferSnapshot:
        at = self._clock.now()
        committed = await self._commit_manual(
            offer_id,
            lambda offer: plan_transition(offer, new_status, actor, at, reason),
        )
        logger.info("Offer %s -> %s by %s", offer_id, new_status.value, actor)
        return committed

    async def extend_validity(
        self, offer_id: UUID, new_valid_until: datetime, actor: str
    ) -> OfferSnapshot:
        at = self._clock.now()
        committed = await self._commit_manual(
            offer_id,
            lambda offer: plan_extension(offer, new_valid_until, actor, at),
        )
        logger.info(
            "Offer %s validity extended to %s by %s",
            offer_id,
            new_valid_until.isoformat(),
            actor,
        )
        return committed

    async def _commit_manual(
        self, offer_id: UUID, mutation: Mutation
    ) -> OfferSnapshot:
        committed = await self.commit(offer_id, mutation)
        if committed is None:
            raise EngineError(f"Change to offer {offer_id} planned nothing to commit")
        return committed

    async def commit(
        self,
        offer_id: UUID,
        mutation: Mutation,
        *,
        offer: OfferSnapshot | None = None,
        automated: bool = False,
    ) -> OfferSnapshot | None:
        """
        Plan `mutation` against the offer and persist it with compare-and-swap.

        `offer` may be passed to skip the first read. A mutation returning
        None means "nothing to do" and commits nothing. With `automated=True`
        the change is dropped (None is returned) instead of raising when it
        became invalid or kept losing the race; manual callers get
        InvalidTransition / InvalidExtension / ConcurrentModification.
        """
        for _ in range(2):
            if offer is None:
                offer = await self._store.get_offer(offer_id)

            try:
                planned = mutation(offer)
            except (InvalidTransition, InvalidExtension):
                if automated:
                    logger.info(
                        "Dropping automated change to offer %s: no longer applies",
                        offer_id,
                    )
                    return None
                raise

            if planned is None:
                return None

            new_state, entry = planned
            ok, new_version = await self._store.save_offer_transition(
                offer.id, offer.version, new_state, entry
            )
            if ok:
                history = offer.history + ((entry,) if entry is not None else ())
                return replace(new_state, version=new_version, history=history)

            logger.info(
                "Offer %s changed since version %d, re-reading",
                offer_id,
                offer.version,
            )
            offer = None

        if automated:
            logger.warning(
                "Dropping automated change to offer %s: CAS lost twice", offer_id
            )
            return None
        raise ConcurrentModification(offer_id)
