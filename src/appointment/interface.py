from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Sequence
from uuid import UUID

from src.appointment.models import ACTIVE_STATUSES, AppointmentStatus
from src.base.errors import EngineError


@dataclass(frozen=True)
class TimeWindow:
    """Half-open interval [start, end)."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError("TimeWindow end must not precede its start")

    def overlaps(self, other: TimeWindow) -> bool:
        return self.start < other.end and other.start < self.end

    def widened(self, margin: timedelta) -> TimeWindow:
        return TimeWindow(self.start - margin, self.end + margin)


@dataclass(frozen=True)
class AppointmentSnapshot:
    id: UUID
    version: int
    resource_id: str
    branch_id: str
    customer_name: str
    start: datetime
    duration_minutes: int
    status: AppointmentStatus
    created_at: datetime
    customer_address: str | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None
    inspector_notes: str | None = None

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(self.start, self.end)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class AppointmentNotFound(EngineError):
    def __init__(self, appointment_id: UUID) -> None:
        super().__init__(f"Appointment {appointment_id} not found")
        self.appointment_id = appointment_id


class InvalidAppointmentTransition(EngineError):
    def __init__(self, current: AppointmentStatus, requested: AppointmentStatus) -> None:
        super().__init__(
            f"Cannot move appointment from {current.value} to {requested.value}"
        )
        self.current = current
        self.requested = requested


class AppointmentNotReschedulable(EngineError):
    def __init__(self, appointment_id: UUID, status: AppointmentStatus) -> None:
        super().__init__(
            f"Appointment {appointment_id} is {status.value}; "
            "only scheduled appointments can be moved"
        )
        self.appointment_id = appointment_id
        self.status = status


class AppointmentStore(ABC):
    @abstractmethod
    async def get_appointments_for_resource(
        self, resource_id: str, window: TimeWindow
    ) -> Sequence[AppointmentSnapshot]:
        """Appointments of `resource_id` whose interval touches `window`, any status."""

    @abstractmethod
    async def get_appointment(self, appointment_id: UUID) -> AppointmentSnapshot:
        """Raises AppointmentNotFound for unknown ids."""

    @abstractmethod
    async def add_appointment(
        self, appointment: AppointmentSnapshot
    ) -> AppointmentSnapshot: ...

    @abstractmethod
    async def save_appointment(
        self, appointment: AppointmentSnapshot, expected_version: int
    ) -> bool:
        """Compare-and-swap write; False when the stored version moved on."""
