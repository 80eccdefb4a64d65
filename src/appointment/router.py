from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import AwareDatetime, BaseModel, Field

from src.appointment.interface import (
    AppointmentNotFound,
    AppointmentNotReschedulable,
    InvalidAppointmentTransition,
)
from src.appointment.models import DEFAULT_DURATION_MINUTES, AppointmentStatus
from src.appointment.service import AppointmentDraft, AppointmentService
from src.auth import get_actor
from src.base.dependencies import get_appointment_service
from src.base.errors import ConcurrentModification, StoreUnavailable
from src.base.schemas import SnapshotDTO

router = APIRouter(prefix="/appointments", dependencies=[Depends(get_actor)])


class ConflictCheck(BaseModel):
    resource_id: str
    start: AwareDatetime
    duration_minutes: int = Field(default=DEFAULT_DURATION_MINUTES, gt=0)
    exclude_id: UUID | None = None


class AppointmentCreate(BaseModel):
    resource_id: str
    branch_id: str
    customer_name: str
    customer_address: str | None = None
    start: AwareDatetime
    duration_minutes: int = Field(default=DEFAULT_DURATION_MINUTES, gt=0)


class RescheduleBody(BaseModel):
    start: AwareDatetime
    duration_minutes: int = Field(default=DEFAULT_DURATION_MINUTES, gt=0)


class CompleteBody(BaseModel):
    inspector_notes: str | None = None


class CancelBody(BaseModel):
    reason: str | None = None


class AppointmentResponse(SnapshotDTO):
    version: int
    resource_id: str
    branch_id: str
    customer_name: str
    customer_address: str | None
    start: datetime
    end: datetime
    duration_minutes: int
    status: AppointmentStatus
    completed_at: datetime | None
    cancelled_at: datetime | None
    cancel_reason: str | None
    inspector_notes: str | None


class ConflictReportResponse(BaseModel):
    model_config = {"from_attributes": True}

    has_conflicts: bool
    conflicts: list[AppointmentResponse]
    warnings: list[AppointmentResponse]


class BookingResponse(BaseModel):
    appointment: AppointmentResponse
    report: ConflictReportResponse


@contextmanager
def _engine_errors() -> Iterator[None]:
    try:
        yield
    except AppointmentNotFound as exc:
        raise HTTPException(status_code=404, detail="Appointment not found") from exc
    except (
        InvalidAppointmentTransition,
        AppointmentNotReschedulable,
        ConcurrentModification,
    ) as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail="Store unavailable") from exc


@router.post("/conflicts", response_model=ConflictReportResponse)
async def check_conflicts(
    body: ConflictCheck,
    service: AppointmentService = Depends(get_appointment_service),
) -> ConflictReportResponse:
    with _engine_errors():
        report = await service.check_conflicts(
            body.resource_id, body.start, body.duration_minutes, body.exclude_id
        )
    return ConflictReportResponse.model_validate(report)


@router.post("", response_model=BookingResponse, status_code=201)
async def create_appointment(
    body: AppointmentCreate,
    service: AppointmentService = Depends(get_appointment_service),
) -> BookingResponse:
    with _engine_errors():
        appointment, report = await service.create(
            AppointmentDraft(**body.model_dump())
        )
    return BookingResponse(
        appointment=AppointmentResponse.model_validate(appointment),
        report=ConflictReportResponse.model_validate(report),
    )


@router.post("/{appointment_id}/reschedule", response_model=BookingResponse)
async def reschedule_appointment(
    appointment_id: UUID,
    body: RescheduleBody,
    service: AppointmentService = Depends(get_appointment_service),
) -> BookingResponse:
    with _engine_errors():
        appointment, report = await service.reschedule(
            appointment_id, body.start, body.duration_minutes
        )
    return BookingResponse(
        appointment=AppointmentResponse.model_validate(appointment),
        report=ConflictReportResponse.model_validate(report),
    )


@router.post("/{appointment_id}/start", response_model=AppointmentResponse)
async def start_appointment(
    appointment_id: UUID,
    service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentResponse:
    with _engine_errors():
        appointment = await service.start(appointment_id)
    return AppointmentResponse.model_validate(appointment)


@router.post("/{appointment_id}/complete", response_model=AppointmentResponse)
async def complete_appointment(
    appointment_id: UUID,
    body: CompleteBody,
    service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentResponse:
    with _engine_errors():
        appointment = await service.complete(appointment_id, body.inspector_notes)
    return AppointmentResponse.model_validate(appointment)


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: UUID,
    body: CancelBody,
    service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentResponse:
    with _engine_errors():
        appointment = await service.cancel(appointment_id, body.reason)
    return AppointmentResponse.model_validate(appointment)


@router.post("/{appointment_id}/no-show", response_model=AppointmentResponse)
async def mark_no_show(
    appointment_id: UUID,
    service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentResponse:
    with _engine_errors():
        appointment = await service.mark_no_show(appointment_id)
    return AppointmentResponse.model_validate(appointment)
