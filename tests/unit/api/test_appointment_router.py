from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.appointment.interface import AppointmentSnapshot, AppointmentStore
from src.appointment.router import router
from src.appointment.store import SqlAppointmentStore
from src.base.clock import Clock, FixedClock
from src.base.dependencies import get_appointment_store, get_clock
from src.base.errors import StoreUnavailable
from tests.fakes import make_appointment

TEN = datetime(2026, 4, 14, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(session_factory: async_sessionmaker[AsyncSession]) -> AppointmentStore:
    return SqlAppointmentStore(session_factory)


@pytest.fixture
def app(store: AppointmentStore) -> FastAPI:
    test_app = FastAPI()
    test_app.include_router(router)

    def override_store() -> AppointmentStore:
        return store

    def override_clock() -> Clock:
        return FixedClock(TEN - timedelta(days=1))

    test_app.dependency_overrides[get_appointment_store] = override_store
    test_app.dependency_overrides[get_clock] = override_clock
    return test_app


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)  # type: ignore[arg-type]
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"X-Actor": "scheduler-1"},
    ) as c:
        yield c


@pytest.fixture
async def booked(store: AppointmentStore) -> AppointmentSnapshot:
    return await store.add_appointment(make_appointment(TEN, 120))


class TestCheckConflicts:
    async def test_back_to_back_is_free(
        self, client: httpx.AsyncClient, booked: AppointmentSnapshot
    ) -> None:
        resp = await client.post(
            "/appointments/conflicts",
            json={
                "resource_id": "inspector-1",
                "start": (TEN + timedelta(hours=2)).isoformat(),
                "duration_minutes": 60,
            },
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["has_conflicts"] is False
        # no travel time left between the two visits
        assert [w["id"] for w in data["warnings"]] == [str(booked.id)]

    async def test_overlap(
        self, client: httpx.AsyncClient, booked: AppointmentSnapshot
    ) -> None:
        resp = await client.post(
            "/appointments/conflicts",
            json={
                "resource_id": "inspector-1",
                "start": (TEN + timedelta(hours=1, minutes=59)).isoformat(),
                "duration_minutes": 60,
            },
        )

        data = resp.json()
        assert data["has_conflicts"] is True
        assert data["conflicts"][0]["id"] == str(booked.id)
        assert datetime.fromisoformat(data["conflicts"][0]["end"]) == booked.end

    async def test_rejects_zero_duration(self, client: httpx.AsyncClient) -> None:
        resp = await client.post(
            "/appointments/conflicts",
            json={
                "resource_id": "inspector-1",
                "start": TEN.isoformat(),
                "duration_minutes": 0,
            },
        )

        assert resp.status_code == 422

    async def test_requires_actor(self, app: FastAPI) -> None:
        transport = httpx.ASGITransport(app=app)  # type: ignore[arg-type]
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            resp = await c.post(
                "/appointments/conflicts",
                json={"resource_id": "inspector-1", "start": TEN.isoformat()},
            )

        assert resp.status_code == 422


class TestCreateAppointment:
    async def test_books_and_reports(
        self, client: httpx.AsyncClient, booked: AppointmentSnapshot
    ) -> None:
        resp = await client.post(
            "/appointments",
            json={
                "resource_id": "inspector-1",
                "branch_id": "branch-aarhus",
                "customer_name": "Karen Nielsen",
                "start": (TEN + timedelta(hours=1)).isoformat(),
            },
        )

        assert resp.status_code == 201
        data = resp.json()
        assert data["appointment"]["status"] == "scheduled"
        assert data["appointment"]["duration_minutes"] == 120
        assert data["report"]["has_conflicts"] is True


class TestLifecycle:
    async def test_start_and_complete(
        self, client: httpx.AsyncClient, booked: AppointmentSnapshot
    ) -> None:
        started = await client.post(f"/appointments/{booked.id}/start")
        completed = await client.post(
            f"/appointments/{booked.id}/complete",
            json={"inspector_notes": "Flashing resealed"},
        )

        assert started.json()["status"] == "in_progress"
        assert completed.status_code == 200
        assert completed.json()["inspector_notes"] == "Flashing resealed"

    async def test_cancel(
        self, client: httpx.AsyncClient, booked: AppointmentSnapshot
    ) -> None:
        resp = await client.post(
            f"/appointments/{booked.id}/cancel", json={"reason": "storm"}
        )

        assert resp.json()["cancel_reason"] == "storm"

    async def test_invalid_transition(
        self, client: httpx.AsyncClient, booked: AppointmentSnapshot
    ) -> None:
        await client.post(f"/appointments/{booked.id}/no-show")

        resp = await client.post(f"/appointments/{booked.id}/start")

        assert resp.status_code == 409

    async def test_not_found(self, client: httpx.AsyncClient) -> None:
        resp = await client.post(f"/appointments/{make_appointment(TEN).id}/start")

        assert resp.status_code == 404

    async def test_store_unavailable(
        self, app: FastAPI, client: httpx.AsyncClient
    ) -> None:
        down = AsyncMock(spec=AppointmentStore)
        down.get_appointment.side_effect = StoreUnavailable("connection refused")
        app.dependency_overrides[get_appointment_store] = lambda: down

        resp = await client.post(f"/appointments/{make_appointment(TEN).id}/start")

        assert resp.status_code == 503


class TestReschedule:
    async def test_moves_without_conflicting_with_itself(
        self, client: httpx.AsyncClient, booked: AppointmentSnapshot
    ) -> None:
        new_start = TEN + timedelta(minutes=45)

        resp = await client.post(
            f"/appointments/{booked.id}/reschedule",
            json={"start": new_start.isoformat(), "duration_minutes": 90},
        )

        assert resp.status_code == 200
        data = resp.json()
        assert datetime.fromisoformat(data["appointment"]["start"]) == new_start
        assert data["appointment"]["duration_minutes"] == 90
        assert data["appointment"]["version"] == 2
        assert data["report"]["has_conflicts"] is False
        assert data["report"]["warnings"] == []

    async def test_completed_cannot_move(
        self, client: httpx.AsyncClient, booked: AppointmentSnapshot
    ) -> None:
        await client.post(f"/appointments/{booked.id}/start")
        await client.post(f"/appointments/{booked.id}/complete", json={})

        resp = await client.post(
            f"/appointments/{booked.id}/reschedule",
            json={"start": (TEN + timedelta(days=1)).isoformat()},
        )

        assert resp.status_code == 409
