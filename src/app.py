import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI

from src.appointment.router import router as appointment_router
from src.offer.router import router as offer_router
from src.scheduler import run_offer_sweep, run_weather_alerts

logging.basicConfig(level=logging.INFO)

OFFER_SWEEP_INTERVAL_HOURS = int(
    os.environ.get("TAKLAGET_OFFER_SWEEP_INTERVAL_HOURS", "24")
)
WEATHER_INTERVAL_HOURS = int(os.environ.get("TAKLAGET_WEATHER_INTERVAL_HOURS", "6"))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        run_offer_sweep,
        "interval",
        hours=OFFER_SWEEP_INTERVAL_HOURS,
        id="run_offer_sweep",
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        run_weather_alerts,
        "interval",
        hours=WEATHER_INTERVAL_HOURS,
        id="run_weather_alerts",
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    yield
    scheduler.shutdown()


app = FastAPI(title="Taklaget", lifespan=lifespan)
app.include_router(offer_router)
app.include_router(appointment_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
