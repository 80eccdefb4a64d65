from fastapi import Depends

from src.appointment.interface import AppointmentStore
from src.appointment.service import AppointmentService
from src.appointment.store import SqlAppointmentStore
from src.base.clock import Clock, SystemClock
from src.base.db import async_session
from src.offer.interface import OfferStore
from src.offer.state_machine import OfferStateMachine
from src.offer.store import SqlOfferStore


def get_clock() -> Clock:
    return SystemClock()


def get_offer_store() -> OfferStore:
    return SqlOfferStore(async_session)


def get_appointment_store() -> AppointmentStore:
    return SqlAppointmentStore(async_session)


def get_state_machine(
    store: OfferStore = Depends(get_offer_store),
    clock: Clock = Depends(get_clock),
) -> OfferStateMachine:
    return OfferStateMachine(store, clock)


def get_appointment_service(
    store: AppointmentStore = Depends(get_appointment_store),
    clock: Clock = Depends(get_clock),
) -> AppointmentService:
    return AppointmentService(store, clock)
