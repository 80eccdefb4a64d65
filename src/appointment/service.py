from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from uuid import UUID, uuid4

from src.appointment.conflicts import SOFT_BUFFER, find_buffer_warnings, find_conflicts
from src.appointment.interface import (
    AppointmentNotReschedulable,
    AppointmentSnapshot,
    AppointmentStore,
    InvalidAppointmentTransition,
    TimeWindow,
)
from src.appointment.models import DEFAULT_DURATION_MINUTES, AppointmentStatus
from src.base.clock import Clock
from src.base.errors import ConcurrentModification

logger = logging.getLogger(__name__)

APPOINTMENT_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset(
        {
            AppointmentStatus.IN_PROGRESS,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.NO_SHOW,
        }
    ),
    AppointmentStatus.IN_PROGRESS: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}


@dataclass(frozen=True)
class ConflictReport:
    conflicts: tuple[AppointmentSnapshot, ...] = ()
    warnings: tuple[AppointmentSnapshot, ...] = ()

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)


@dataclass(frozen=True)
class AppointmentDraft:
    resource_id: str
    branch_id: str
    customer_name: str
    start: datetime
    duration_minutes: int = DEFAULT_DURATION_MINUTES
    customer_address: str | None = None


class AppointmentService:
    def __init__(
        self,
        store: AppointmentStore,
        clock: Clock,
        buffer: timedelta = SOFT_BUFFER,
    ) -> None:
        self._store = store
        self._clock = clock
        self._buffer = buffer

    async def check_conflicts(
        self,
        resource_id: str,
        start: datetime,
        duration_minutes: int,
        exclude_id: UUID | None = None,
    ) -> ConflictReport:
        window = TimeWindow(start, start + timedelta(minutes=duration_minutes))
        existing = await self._store.get_appointments_for_resource(
            resource_id, window.widened(self._buffer)
        )
        return ConflictReport(
            conflicts=tuple(
                find_conflicts(
                    resource_id, start, duration_minutes, existing, exclude_id
                )
            ),
            warnings=tuple(
                find_buffer_warnings(
                    resource_id,
                    start,
                    duration_minutes,
                    existing,
                    exclude_id,
                    self._buffer,
                )
            ),
        )

    async def create(
        self, draft: AppointmentDraft
    ) -> tuple[AppointmentSnapshot, ConflictReport]:
        """Book the appointment and report what it collides with.

        Conflicts never block the booking; the scheduler decides what to do.
        """
        report = await self.check_conflicts(
            draft.resource_id, draft.start, draft.duration_minutes
        )
        appointment = AppointmentSnapshot(
            id=uuid4(),
            version=1,
            resource_id=draft.resource_id,
            branch_id=draft.branch_id,
            customer_name=draft.customer_name,
            customer_address=draft.customer_address,
            start=draft.start,
            duration_minutes=draft.duration_minutes,
            status=AppointmentStatus.SCHEDULED,
            created_at=self._clock.now(),
        )
        stored = await self._store.add_appointment(appointment)
        if report.has_conflicts:
            logger.info(
                "Appointment %s booked with %d conflicting bookings for %s",
                stored.id,
                len(report.conflicts),
                stored.resource_id,
            )
        return stored, report

    async def reschedule(
        self, appointment_id: UUID, start: datetime, duration_minutes: int
    ) -> tuple[AppointmentSnapshot, ConflictReport]:
        """Move a scheduled appointment to a new slot.

        The appointment is left out of its own conflict check. As with
        `create`, conflicts are reported and never block the change.
        """
        current = await self._store.get_appointment(appointment_id)
        if current.status is not AppointmentStatus.SCHEDULED:
            raise AppointmentNotReschedulable(appointment_id, current.status)

        report = await self.check_conflicts(
            current.resource_id, start, duration_minutes, exclude_id=appointment_id
        )
        updated = replace(
            current,
            start=start,
            duration_minutes=duration_minutes,
            version=current.version + 1,
        )
        if not await self._store.save_appointment(updated, current.version):
            raise ConcurrentModification(appointment_id)

        logger.info(
            "Appointment %s moved to %s (%d min)",
            appointment_id,
            start.isoformat(),
            duration_minutes,
        )
        return updated, report

    async def start(self, appointment_id: UUID) -> AppointmentSnapshot:
        return await self._transition(appointment_id, AppointmentStatus.IN_PROGRESS)

    async def complete(
        self, appointment_id: UUID, inspector_notes: str | None = None
    ) -> AppointmentSnapshot:
        return await self._transition(
            appointment_id,
            AppointmentStatus.COMPLETED,
            inspector_notes=inspector_notes,
        )

    async def cancel(
        self, appointment_id: UUID, reason: str | None = None
    ) -> AppointmentSnapshot:
        return await self._transition(
            appointment_id, AppointmentStatus.CANCELLED, cancel_reason=reason
        )

    async def mark_no_show(self, appointment_id: UUID) -> AppointmentSnapshot:
        return await self._transition(appointment_id, AppointmentStatus.NO_SHOW)

    async def _transition(
        self,
        appointment_id: UUID,
        new_status: AppointmentStatus,
        *,
        inspector_notes: str | None = None,
        cancel_reason: str | None = None,
    ) -> AppointmentSnapshot:
        current = await self._store.get_appointment(appointment_id)
        if new_status not in APPOINTMENT_TRANSITIONS[current.status]:
            raise InvalidAppointmentTransition(current.status, new_status)

        now = self._clock.now()
        updated = replace(current, status=new_status, version=current.version + 1)
        if new_status is AppointmentStatus.COMPLETED:
            updated = replace(
                updated,
                completed_at=now,
                inspector_notes=inspector_notes or current.inspector_notes,
            )
        elif new_status is AppointmentStatus.CANCELLED:
            updated = replace(updated, cancelled_at=now, cancel_reason=cancel_reason)

        if not await self._store.save_appointment(updated, current.version):
            raise ConcurrentModification(appointment_id)

        logger.info(
            "Appointment %s: %s -> %s",
            appointment_id,
            current.status.value,
            new_status.value,
        )
        return updated
