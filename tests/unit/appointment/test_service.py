from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from src.appointment.interface import (
    AppointmentNotFound,
    AppointmentNotReschedulable,
    InvalidAppointmentTransition,
)
from src.appointment.models import AppointmentStatus
from src.appointment.service import AppointmentDraft, AppointmentService
from src.base.clock import FixedClock
from src.base.errors import ConcurrentModification
from tests.fakes import InMemoryAppointmentStore, make_appointment

TEN = datetime(2026, 4, 14, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(TEN - timedelta(days=2))


def _draft(start: datetime, duration_minutes: int = 120) -> AppointmentDraft:
    return AppointmentDraft(
        resource_id="inspector-1",
        branch_id="branch-aarhus",
        customer_name="Karen Nielsen",
        customer_address="Vestergade 12, Aarhus",
        start=start,
        duration_minutes=duration_minutes,
    )


class TestCheckConflicts:
    async def test_reports_conflicts_and_warnings(self, clock: FixedClock) -> None:
        overlapping = make_appointment(TEN, 120)
        tight = make_appointment(TEN + timedelta(hours=3, minutes=10), 60)
        service = AppointmentService(
            InMemoryAppointmentStore(overlapping, tight), clock
        )

        report = await service.check_conflicts(
            "inspector-1", TEN + timedelta(hours=1), 120
        )

        assert report.has_conflicts
        assert report.conflicts == (overlapping,)
        assert report.warnings == (tight,)

    async def test_free_slot(self, clock: FixedClock) -> None:
        service = AppointmentService(
            InMemoryAppointmentStore(make_appointment(TEN, 120)), clock
        )

        report = await service.check_conflicts(
            "inspector-1", TEN + timedelta(hours=4), 60
        )

        assert not report.has_conflicts
        assert report.warnings == ()


class TestCreate:
    async def test_books_even_when_conflicting(self, clock: FixedClock) -> None:
        booked = make_appointment(TEN, 120)
        store = InMemoryAppointmentStore(booked)
        service = AppointmentService(store, clock)

        appointment, report = await service.create(_draft(TEN + timedelta(hours=1)))

        assert report.conflicts == (booked,)
        assert appointment.status is AppointmentStatus.SCHEDULED
        assert appointment.created_at == clock.now()
        assert store.appointments[appointment.id] == appointment


class TestReschedule:
    async def test_moved_booking_does_not_conflict_with_itself(
        self, clock: FixedClock
    ) -> None:
        booked = make_appointment(TEN, 120)
        store = InMemoryAppointmentStore(booked)
        service = AppointmentService(store, clock)

        moved, report = await service.reschedule(
            booked.id, TEN + timedelta(minutes=30), 120
        )

        assert not report.has_conflicts
        assert report.warnings == ()
        assert moved.start == TEN + timedelta(minutes=30)
        assert moved.version == 2
        assert store.appointments[booked.id] == moved

    async def test_reports_conflicts_at_new_slot(self, clock: FixedClock) -> None:
        booked = make_appointment(TEN, 120)
        afternoon = make_appointment(TEN + timedelta(hours=4), 60)
        service = AppointmentService(
            InMemoryAppointmentStore(booked, afternoon), clock
        )

        moved, report = await service.reschedule(
            booked.id, TEN + timedelta(hours=3, minutes=30), 90
        )

        assert report.conflicts == (afternoon,)
        assert moved.duration_minutes == 90

    async def test_only_scheduled_can_move(self, clock: FixedClock) -> None:
        started = make_appointment(TEN, 120, status=AppointmentStatus.IN_PROGRESS)
        store = InMemoryAppointmentStore(started)
        service = AppointmentService(store, clock)

        with pytest.raises(AppointmentNotReschedulable):
            await service.reschedule(started.id, TEN + timedelta(days=1), 120)

        assert store.appointments[started.id] == started

    async def test_lost_race(self, clock: FixedClock) -> None:
        booked = make_appointment(TEN, 120)
        store = InMemoryAppointmentStore(booked)
        service = AppointmentService(store, clock)
        original_get = store.get_appointment

        async def stale_read(appointment_id):  # type: ignore[no-untyped-def]
            snapshot = await original_get(appointment_id)
            store.appointments[booked.id] = replace(snapshot, version=2)
            return snapshot

        store.get_appointment = stale_read  # type: ignore[method-assign]

        with pytest.raises(ConcurrentModification):
            await service.reschedule(booked.id, TEN + timedelta(hours=1), 120)

        assert store.appointments[booked.id].start == TEN


class TestLifecycle:
    async def test_start_then_complete(self, clock: FixedClock) -> None:
        booked = make_appointment(TEN, 120)
        store = InMemoryAppointmentStore(booked)
        service = AppointmentService(store, clock)

        started = await service.start(booked.id)
        clock.advance(timedelta(hours=2))
        completed = await service.complete(booked.id, "Two cracked tiles replaced")

        assert started.status is AppointmentStatus.IN_PROGRESS
        assert completed.status is AppointmentStatus.COMPLETED
        assert completed.completed_at == clock.now()
        assert completed.inspector_notes == "Two cracked tiles replaced"
        assert completed.version == 3

    async def test_cancel_records_reason(self, clock: FixedClock) -> None:
        booked = make_appointment(TEN, 120)
        service = AppointmentService(InMemoryAppointmentStore(booked), clock)

        cancelled = await service.cancel(booked.id, "customer ill")

        assert cancelled.status is AppointmentStatus.CANCELLED
        assert cancelled.cancelled_at == clock.now()
        assert cancelled.cancel_reason == "customer ill"

    async def test_no_show(self, clock: FixedClock) -> None:
        booked = make_appointment(TEN, 120)
        service = AppointmentService(InMemoryAppointmentStore(booked), clock)

        assert (await service.mark_no_show(booked.id)).status is AppointmentStatus.NO_SHOW

    async def test_cannot_complete_before_starting(self, clock: FixedClock) -> None:
        booked = make_appointment(TEN, 120)
        service = AppointmentService(InMemoryAppointmentStore(booked), clock)

        with pytest.raises(InvalidAppointmentTransition):
            await service.complete(booked.id)

    async def test_cancelled_is_final(self, clock: FixedClock) -> None:
        booked = make_appointment(TEN, 120, status=AppointmentStatus.CANCELLED)
        service = AppointmentService(InMemoryAppointmentStore(booked), clock)

        with pytest.raises(InvalidAppointmentTransition):
            await service.start(booked.id)

    async def test_unknown_appointment(self, clock: FixedClock) -> None:
        service = AppointmentService(InMemoryAppointmentStore(), clock)

        with pytest.raises(AppointmentNotFound):
            await service.start(make_appointment(TEN).id)

    async def test_lost_race(self, clock: FixedClock) -> None:
        booked = make_appointment(TEN, 120)
        store = InMemoryAppointmentStore(booked)
        service = AppointmentService(store, clock)
        original_get = store.get_appointment

        async def stale_read(appointment_id):  # type: ignore[no-untyped-def]
            snapshot = await original_get(appointment_id)
            store.appointments[booked.id] = replace(snapshot, version=2)
            return snapshot

        store.get_appointment = stale_read  # type: ignore[method-assign]

        with pytest.raises(ConcurrentModification):
            await service.start(booked.id)
