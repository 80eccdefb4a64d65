from __future__ import annotations

from typing import Sequence
from uuid import UUID

from sqlalchemy import func, select, type_coerce, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.appointment.interface import (
    AppointmentNotFound,
    AppointmentSnapshot,
    AppointmentStore,
    TimeWindow,
)
from src.appointment.models import Appointment
from src.base.models import UTCDateTime
from src.base.session import store_session


def to_snapshot(appointment: Appointment) -> AppointmentSnapshot:
    return AppointmentSnapshot(
        id=appointment.id,
        version=appointment.version,
        resource_id=appointment.resource_id,
        branch_id=appointment.branch_id,
        customer_name=appointment.customer_name,
        customer_address=appointment.customer_address,
        start=appointment.start,
        duration_minutes=appointment.duration_minutes,
        status=appointment.status,
        created_at=appointment.created_at,
        completed_at=appointment.completed_at,
        cancelled_at=appointment.cancelled_at,
        cancel_reason=appointment.cancel_reason,
        inspector_notes=appointment.inspector_notes,
    )


class SqlAppointmentStore(AppointmentStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_appointments_for_resource(
        self, resource_id: str, window: TimeWindow
    ) -> Sequence[AppointmentSnapshot]:
        # end = start + duration, computed in the database
        ends_at = type_coerce(
            Appointment.start
            + func.make_interval(0, 0, 0, 0, 0, Appointment.duration_minutes),
            UTCDateTime(),
        )
        stmt = (
            select(Appointment)
            .where(
                Appointment.resource_id == resource_id,
                Appointment.start < window.end,
                ends_at > window.start,
            )
            .order_by(Appointment.start)
        )
        async with store_session(self._session_factory) as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [to_snapshot(a) for a in rows]

    async def get_appointment(self, appointment_id: UUID) -> AppointmentSnapshot:
        async with store_session(self._session_factory) as session:
            appointment = await session.get(Appointment, appointment_id)
            if appointment is None:
                raise AppointmentNotFound(appointment_id)
            return to_snapshot(appointment)

    async def add_appointment(
        self, appointment: AppointmentSnapshot
    ) -> AppointmentSnapshot:
        async with store_session(self._session_factory) as session:
            async with session.begin():
                session.add(
                    Appointment(
                        id=appointment.id,
                        version=appointment.version,
                        resource_id=appointment.resource_id,
                        branch_id=appointment.branch_id,
                        customer_name=appointment.customer_name,
                        customer_address=appointment.customer_address,
                        start=appointment.start,
                        duration_minutes=appointment.duration_minutes,
                        status=appointment.status,
                        created_at=appointment.created_at,
                    )
                )
        return appointment

    async def save_appointment(
        self, appointment: AppointmentSnapshot, expected_version: int
    ) -> bool:
        stmt = (
            update(Appointment)
            .where(
                Appointment.id == appointment.id,
                Appointment.version == expected_version,
            )
            .values(
                status=appointment.status,
                start=appointment.start,
                duration_minutes=appointment.duration_minutes,
                completed_at=appointment.completed_at,
                cancelled_at=appointment.cancelled_at,
                cancel_reason=appointment.cancel_reason,
                inspector_notes=appointment.inspector_notes,
                version=appointment.version,
            )
            .execution_options(synchronize_session=False)
        )
        async with store_session(self._session_factory) as session:
            async with session.begin():
                result = await session.execute(stmt)
                return result.rowcount == 1
