import logging
from datetime import datetime

from src.base.clock import Clock, FixedClock, SystemClock
from src.base.db import async_session
from src.notification import create_dispatcher
from src.offer.config import FollowUpPolicy
from src.offer.followup import OfferFollowUpEvaluator, SweepSummary
from src.offer.state_machine import OfferStateMachine
from src.offer.store import SqlOfferStore
from src.weather import create_weather_source
from src.weather.alerts import WeatherAlertEvaluator, WeatherSweepSummary
from src.weather.store import SqlWeatherAlertStore

logger = logging.getLogger(__name__)


def _clock(now: datetime | None) -> Clock:
    return FixedClock(now) if now is not None else SystemClock()


async def run_offer_sweep(now: datetime | None = None) -> SweepSummary:
    """
    One pass of the offer follow-up ladder over all open offers.

    `now` defaults to the current time; passing it replays the sweep for a
    given instant (the evaluator is idempotent per instant).
    """
    clock = _clock(now)
    policy = FollowUpPolicy.from_env()
    store = SqlOfferStore(async_session)
    dispatcher = create_dispatcher()

    try:
        evaluator = OfferFollowUpEvaluator(
            store=store,
            dispatcher=dispatcher,
            state_machine=OfferStateMachine(store, clock),
            policy=policy,
        )
        return await evaluator.evaluate_all(clock.now())
    finally:
        await dispatcher.aclose()


async def run_weather_alerts(now: datetime | None = None) -> WeatherSweepSummary:
    source = create_weather_source()
    if source is None:
        logger.debug("No weather feed configured, skipping weather alerts")
        return WeatherSweepSummary()

    clock = _clock(now)
    policy = FollowUpPolicy.from_env()
    dispatcher = create_dispatcher()

    try:
        try:
            conditions = await source.current_conditions()
        except Exception:
            logger.exception("Fetching weather conditions failed")
            return WeatherSweepSummary(errors=1)

        evaluator = WeatherAlertEvaluator(
            store=SqlWeatherAlertStore(async_session),
            dispatcher=dispatcher,
            cooldown=policy.weather_cooldown,
        )
        return await evaluator.evaluate(conditions, clock.now())
    finally:
        await dispatcher.aclose()
        await source.aclose()
