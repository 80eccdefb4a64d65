"""
Offer follow-up sweep: the reminder → escalate → expire ladder.

The sweep is stateless between runs. Everything it needs to stay idempotent
(follow_up_attempts, last_notified_at, escalated_at) lives on the offer and is
committed before any notification leaves, so re-running a sweep for the same
instant cannot fire twice.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any

from src.base.errors import StoreUnavailable
from src.notification.interface import (
    NotificationDispatcher,
    Recipient,
    RecipientRole,
)
from src.offer.config import FollowUpPolicy
from src.offer.interface import OfferSnapshot, OfferStore, StatusChange
from src.offer.models import SYSTEM_ACTOR, OfferStatus
from src.offer.state_machine import (
    Mutation,
    OfferStateMachine,
    Planned,
    history_timestamp,
    plan_transition,
)

logger = logging.getLogger(__name__)

EXPIRY_REASON = "validity period elapsed"
ESCALATION_REASON = "escalated to branch admin"
NOTIFICATION_FAILED_REASON = "notification failed"

REMINDER_TEMPLATE = "offer-reminder"
ESCALATION_TEMPLATE = "offer-escalation"


class Rung(enum.Enum):
    EXPIRE = "expire"
    ESCALATE = "escalate"
    REMIND = "remind"


class Outcome(enum.Enum):
    EXPIRED = "expired"
    ESCALATED = "escalated"
    REMINDED = "reminded"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    ERROR = "error"


def cooldown_elapsed(
    last_notified_at: datetime | None, now: datetime, cooldown: timedelta
) -> bool:
    # Strict: a sweep landing exactly one cooldown after the last reminder waits
    # for the next one.
    return last_notified_at is None or now - last_notified_at > cooldown


def decide_rung(
    offer: OfferSnapshot, now: datetime, policy: FollowUpPolicy
) -> Rung | None:
    """Pick the single rung due for `offer` at `now`; most elapsed first."""
    if not offer.is_open:
        return None
    days = offer.days_since_sent(now)
    if days is None:
        return None

    if days >= policy.expire_after_days:
        return Rung.EXPIRE
    if days >= policy.escalate_after_days and offer.escalated_at is None:
        return Rung.ESCALATE
    if (
        days >= policy.remind_after_days
        and offer.follow_up_attempts < policy.max_follow_up_attempts
        and cooldown_elapsed(offer.last_notified_at, now, policy.remind_cooldown)
    ):
        return Rung.REMIND
    return None


@dataclass(frozen=True)
class OfferEvaluation:
    outcome: Outcome
    notification_failed: bool = False


@dataclass
class SweepSummary:
    evaluated: int = 0
    expired: int = 0
    escalated: int = 0
    reminded: int = 0
    notification_failures: int = 0
    skipped: int = 0
    errors: int = 0

    @property
    def notifications(self) -> int:
        return self.escalated + self.reminded

    def record(self, evaluation: OfferEvaluation) -> None:
        self.evaluated += 1
        if evaluation.outcome is Outcome.EXPIRED:
            self.expired += 1
        elif evaluation.outcome is Outcome.ESCALATED:
            self.escalated += 1
        elif evaluation.outcome is Outcome.REMINDED:
            self.reminded += 1
        elif evaluation.outcome is Outcome.SKIPPED:
            self.skipped += 1
        elif evaluation.outcome is Outcome.ERROR:
            self.errors += 1
        if evaluation.notification_failed:
            self.notification_failures += 1


class OfferFollowUpEvaluator:
    def __init__(
        self,
        store: OfferStore,
        dispatcher: NotificationDispatcher,
        state_machine: OfferStateMachine,
        policy: FollowUpPolicy | None = None,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._state_machine = state_machine
        self._policy = policy or FollowUpPolicy()

    async def evaluate_all(self, now: datetime) -> SweepSummary:
        """
        Run one sweep over every open, dispatched offer.

        Offers are evaluated concurrently (bounded by the policy) and
        independently: a failure on one offer is logged and counted, and the
        rest of the sweep carries on.
        """
        summary = SweepSummary()

        try:
            offers = await self._store.get_open_offers(now)
        except StoreUnavailable:
            logger.exception("Offer sweep at %s aborted: store unavailable", now)
            summary.errors += 1
            return summary

        semaphore = asyncio.Semaphore(self._policy.sweep_concurrency)

        async def guarded(offer: OfferSnapshot) -> OfferEvaluation:
            async with semaphore:
                return await self._evaluate_isolated(offer, now)

        for evaluation in await asyncio.gather(*(guarded(o) for o in offers)):
            summary.record(evaluation)

        logger.info("Offer sweep at %s finished: %s", now.isoformat(), summary)
        return summary

    async def evaluate_offer(
        self, offer: OfferSnapshot, now: datetime
    ) -> OfferEvaluation:
        rung = decide_rung(offer, now, self._policy)
        if rung is None:
            return OfferEvaluation(Outcome.UNCHANGED)

        committed = await self._state_machine.commit(
            offer.id, self._mutation_for(rung, now), offer=offer, automated=True
        )
        if committed is None:
            return OfferEvaluation(Outcome.SKIPPED)

        if rung is Rung.EXPIRE:
            logger.info("Offer %s expired", offer.id)
            return OfferEvaluation(Outcome.EXPIRED)

        if rung is Rung.ESCALATE:
            recipient = Recipient(RecipientRole.BRANCH_ADMIN, committed.branch_id)
            sent = await self._notify(committed, recipient, ESCALATION_TEMPLATE, now)
            return OfferEvaluation(Outcome.ESCALATED, notification_failed=not sent)

        recipient = Recipient(RecipientRole.INSPECTOR, committed.created_by)
        sent = await self._notify(committed, recipient, REMINDER_TEMPLATE, now)
        return OfferEvaluation(Outcome.REMINDED, notification_failed=not sent)

    async def _evaluate_isolated(
        self, offer: OfferSnapshot, now: datetime
    ) -> OfferEvaluation:
        try:
            return await self.evaluate_offer(offer, now)
        except StoreUnavailable:
            logger.exception("Skipping offer %s: store unavailable", offer.id)
        except Exception:
            logger.exception("Evaluating offer %s failed", offer.id)
        return OfferEvaluation(Outcome.ERROR)

    def _mutation_for(self, rung: Rung, now: datetime) -> Mutation:
        builders = {
            Rung.EXPIRE: _expire,
            Rung.ESCALATE: _escalate,
            Rung.REMIND: _remind,
        }
        build = builders[rung]

        def mutation(offer: OfferSnapshot) -> Planned | None:
            # Re-decided on every attempt: after a lost CAS race the fresh read
            # may no longer call for this rung.
            if decide_rung(offer, now, self._policy) is not rung:
                return None
            return build(offer, now)

        return mutation

    async def _notify(
        self,
        offer: OfferSnapshot,
        recipient: Recipient,
        template: str,
        now: datetime,
    ) -> bool:
        result = await self._dispatcher.send(
            recipient, template, notification_payload(offer, now)
        )
        if result.ok:
            return True

        logger.warning(
            "Notification %s for offer %s failed after %d attempts: %s",
            template,
            offer.id,
            result.attempts,
            result.error,
        )

        def record_failure(current: OfferSnapshot) -> Planned:
            entry = StatusChange(
                status=current.status,
                timestamp=history_timestamp(current, now),
                changed_by=SYSTEM_ACTOR,
                reason=NOTIFICATION_FAILED_REASON,
            )
            return current, entry

        await self._state_machine.commit(
            offer.id, record_failure, offer=offer, automated=True
        )
        return False


def _expire(offer: OfferSnapshot, now: datetime) -> Planned:
    return plan_transition(
        offer, OfferStatus.EXPIRED, SYSTEM_ACTOR, now, EXPIRY_REASON
    )


def _escalate(offer: OfferSnapshot, now: datetime) -> Planned:
    if offer.status is OfferStatus.PENDING:
        new_state, entry = plan_transition(
            offer, OfferStatus.AWAITING_RESPONSE, SYSTEM_ACTOR, now, ESCALATION_REASON
        )
    else:
        new_state = offer
        entry = StatusChange(
            status=offer.status,
            timestamp=history_timestamp(offer, now),
            changed_by=SYSTEM_ACTOR,
            reason=ESCALATION_REASON,
        )
    return replace(new_state, escalated_at=now, last_notified_at=now), entry


def _remind(offer: OfferSnapshot, now: datetime) -> Planned:
    return (
        replace(
            offer,
            follow_up_attempts=offer.follow_up_attempts + 1,
            last_notified_at=now,
        ),
        None,
    )


def notification_payload(offer: OfferSnapshot, now: datetime) -> dict[str, Any]:
    return {
        "offer_id": str(offer.id),
        "offer_title": offer.title,
        "customer_name": offer.customer_name,
        "customer_email": offer.customer_email,
        "days_since_sent": offer.days_since_sent(now),
        "follow_up_attempts": offer.follow_up_attempts,
        "total_amount": offer.pricing.total_amount if offer.pricing else None,
        "currency": offer.currency.value,
        "valid_until": offer.valid_until.isoformat(),
        "offer_link": f"/offers/{offer.id}",
    }
