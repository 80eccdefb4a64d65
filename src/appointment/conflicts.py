from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable
from uuid import UUID

from src.appointment.interface import AppointmentSnapshot, TimeWindow

SOFT_BUFFER = timedelta(minutes=30)


def _candidates(
    resource_id: str,
    existing: Iterable[AppointmentSnapshot],
    exclude_id: UUID | None,
) -> list[AppointmentSnapshot]:
    return [
        a
        for a in existing
        if a.resource_id == resource_id and a.is_active and a.id != exclude_id
    ]


def find_conflicts(
    resource_id: str,
    start: datetime,
    duration_minutes: int,
    existing: Iterable[AppointmentSnapshot],
    exclude_id: UUID | None = None,
) -> list[AppointmentSnapshot]:
    """
    Active bookings of `resource_id` that overlap [start, start + duration).

    Intervals are half-open, so back-to-back bookings do not conflict.
    `exclude_id` lets an edited appointment be checked without colliding with
    itself. The result is informational; nothing is rejected here.
    """
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")

    candidate = TimeWindow(start, start + timedelta(minutes=duration_minutes))
    return [
        a
        for a in _candidates(resource_id, existing, exclude_id)
        if a.window.overlaps(candidate)
    ]


def find_buffer_warnings(
    resource_id: str,
    start: datetime,
    duration_minutes: int,
    existing: Iterable[AppointmentSnapshot],
    exclude_id: UUID | None = None,
    buffer: timedelta = SOFT_BUFFER,
) -> list[AppointmentSnapshot]:
    """Non-overlapping bookings that leave less than `buffer` between visits."""
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")

    candidate = TimeWindow(start, start + timedelta(minutes=duration_minutes))
    padded = candidate.widened(buffer)
    return [
        a
        for a in _candidates(resource_id, existing, exclude_id)
        if a.window.overlaps(padded) and not a.window.overlaps(candidate)
    ]
