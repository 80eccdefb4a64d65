from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import AwareDatetime, BaseModel

from src.auth import get_actor
from src.base.dependencies import get_offer_store, get_state_machine
from src.base.errors import ConcurrentModification, StoreUnavailable
from src.base.schemas import SnapshotDTO
from src.offer.errors import InvalidExtension, InvalidTransition, OfferNotFound
from src.offer.interface import OfferStore
from src.offer.models import OfferStatus
from src.offer.price import Currency, PriceBreakdown
from src.offer.state_machine import OfferStateMachine

router = APIRouter(prefix="/offers")


class OfferCreate(BaseModel):
    branch_id: str
    customer_name: str
    customer_email: str | None = None
    title: str
    valid_until: AwareDatetime
    currency: Currency = Currency.DKK
    pricing: PriceBreakdown | None = None


class RespondBody(BaseModel):
    reason: str | None = None


class TransitionBody(BaseModel):
    status: OfferStatus
    reason: str | None = None


class ExtendBody(BaseModel):
    valid_until: AwareDatetime


class StatusChangeResponse(BaseModel):
    model_config = {"from_attributes": True}

    status: OfferStatus
    timestamp: datetime
    changed_by: str
    reason: str | None


class OfferResponse(SnapshotDTO):
    version: int
    status: OfferStatus
    branch_id: str
    created_by: str
    customer_name: str
    customer_email: str | None
    title: str
    currency: Currency
    pricing: PriceBreakdown | None
    valid_until: datetime
    sent_at: datetime | None
    responded_at: datetime | None
    follow_up_attempts: int
    last_notified_at: datetime | None
    escalated_at: datetime | None
    history: list[StatusChangeResponse]


@contextmanager
def _engine_errors() -> Iterator[None]:
    try:
        yield
    except OfferNotFound as exc:
        raise HTTPException(status_code=404, detail="Offer not found") from exc
    except (InvalidTransition, ConcurrentModification) as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail="Store unavailable") from exc
    except InvalidExtension as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.post("", response_model=OfferResponse, status_code=201)
async def send_offer(
    body: OfferCreate,
    actor: str = Depends(get_actor),
    machine: OfferStateMachine = Depends(get_state_machine),
) -> OfferResponse:
    with _engine_errors():
        offer = await machine.dispatch(
            created_by=actor,
            branch_id=body.branch_id,
            customer_name=body.customer_name,
            title=body.title,
            valid_until=body.valid_until,
            currency=body.currency,
            pricing=body.pricing,
            customer_email=body.customer_email,
        )
    return OfferResponse.model_validate(offer)


@router.get("/{offer_id}", response_model=OfferResponse)
async def get_offer(
    offer_id: UUID,
    store: OfferStore = Depends(get_offer_store),
) -> OfferResponse:
    with _engine_errors():
        offer = await store.get_offer(offer_id)
    return OfferResponse.model_validate(offer)


@router.post("/{offer_id}/accept", response_model=OfferResponse)
async def accept_offer(
    offer_id: UUID,
    actor: str = Depends(get_actor),
    machine: OfferStateMachine = Depends(get_state_machine),
) -> OfferResponse:
    with _engine_errors():
        offer = await machine.apply_transition(offer_id, OfferStatus.ACCEPTED, actor)
    return OfferResponse.model_validate(offer)


@router.post("/{offer_id}/reject", response_model=OfferResponse)
async def reject_offer(
    offer_id: UUID,
    body: RespondBody,
    actor: str = Depends(get_actor),
    machine: OfferStateMachine = Depends(get_state_machine),
) -> OfferResponse:
    with _engine_errors():
        offer = await machine.apply_transition(
            offer_id, OfferStatus.REJECTED, actor, body.reason
        )
    return OfferResponse.model_validate(offer)


@router.post("/{offer_id}/transition", response_model=OfferResponse)
async def transition_offer(
    offer_id: UUID,
    body: TransitionBody,
    actor: str = Depends(get_actor),
    machine: OfferStateMachine = Depends(get_state_machine),
) -> OfferResponse:
    with _engine_errors():
        offer = await machine.apply_transition(
            offer_id, body.status, actor, body.reason
        )
    return OfferResponse.model_validate(offer)


@router.post("/{offer_id}/extend", response_model=OfferResponse)
async def extend_offer(
    offer_id: UUID,
    body: ExtendBody,
    actor: str = Depends(get_actor),
    machine: OfferStateMachine = Depends(get_state_machine),
) -> OfferResponse:
    with _engine_errors():
        offer = await machine.extend_validity(offer_id, body.valid_until, actor)
    return OfferResponse.model_validate(offer)
