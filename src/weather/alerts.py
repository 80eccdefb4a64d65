"""
Per-inspector weather alerts with a cooldown.

Same idempotency pattern as the offer ladder, keyed by inspector instead of
offer: the alert is recorded before it is dispatched, and a recorded alert
suppresses further ones for the cooldown period. The record is a conditional
write, so of two overlapping passes only one gets to send. Severe conditions bypass the
cooldown entirely.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Sequence

from src.notification.interface import (
    NotificationDispatcher,
    Recipient,
    RecipientRole,
)

logger = logging.getLogger(__name__)

WEATHER_TEMPLATE = "weather-alert"
DEFAULT_COOLDOWN = timedelta(days=3)


@dataclass(frozen=True)
class WeatherCondition:
    inspector_id: str
    summary: str
    severe: bool = False


@dataclass(frozen=True)
class AlertRecord:
    inspector_id: str
    sent_at: datetime
    condition: str
    severe: bool = False


class WeatherSource(ABC):
    @abstractmethod
    async def current_conditions(self) -> Sequence[WeatherCondition]: ...


class WeatherAlertStore(ABC):
    @abstractmethod
    async def get_last_alert(self, inspector_id: str) -> AlertRecord | None: ...

    @abstractmethod
    async def record_alert(self, record: AlertRecord, cooldown: timedelta) -> bool:
        """
        Store `record` unless an alert inside the cooldown got there first.

        Check and write are one atomic step. Returns False when another pass
        already holds the cooldown for this inspector.
        """


@dataclass
class WeatherSweepSummary:
    evaluated: int = 0
    sent: int = 0
    suppressed: int = 0
    failed: int = 0
    errors: int = 0


def should_alert(
    last: AlertRecord | None,
    condition: WeatherCondition,
    now: datetime,
    cooldown: timedelta,
) -> bool:
    if condition.severe or last is None:
        return True
    return now - last.sent_at >= cooldown


def _one_per_inspector(
    conditions: Iterable[WeatherCondition],
) -> list[WeatherCondition]:
    """Keep one condition per inspector, preferring a severe one."""
    chosen: dict[str, WeatherCondition] = {}
    for condition in conditions:
        current = chosen.get(condition.inspector_id)
        if current is None or (condition.severe and not current.severe):
            chosen[condition.inspector_id] = condition
    return list(chosen.values())


class WeatherAlertEvaluator:
    def __init__(
        self,
        store: WeatherAlertStore,
        dispatcher: NotificationDispatcher,
        cooldown: timedelta = DEFAULT_COOLDOWN,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._cooldown = cooldown

    async def evaluate(
        self, conditions: Iterable[WeatherCondition], now: datetime
    ) -> WeatherSweepSummary:
        summary = WeatherSweepSummary()

        for condition in _one_per_inspector(conditions):
            summary.evaluated += 1
            try:
                last = await self._store.get_last_alert(condition.inspector_id)
                if not should_alert(last, condition, now, self._cooldown):
                    summary.suppressed += 1
                    continue

                claimed = await self._store.record_alert(
                    AlertRecord(
                        inspector_id=condition.inspector_id,
                        sent_at=now,
                        condition=condition.summary,
                        severe=condition.severe,
                    ),
                    self._cooldown,
                )
                if not claimed:
                    logger.info(
                        "Weather alert for inspector %s already claimed by "
                        "another pass",
                        condition.inspector_id,
                    )
                    summary.suppressed += 1
                    continue

                result = await self._dispatcher.send(
                    Recipient(RecipientRole.INSPECTOR, condition.inspector_id),
                    WEATHER_TEMPLATE,
                    {
                        "summary": condition.summary,
                        "severe": condition.severe,
                        "issued_at": now.isoformat(),
                    },
                )
            except Exception:
                logger.exception(
                    "Weather alert for inspector %s failed", condition.inspector_id
                )
                summary.errors += 1
                continue

            if result.ok:
                summary.sent += 1
            else:
                summary.failed += 1

        logger.info("Weather alerts at %s: %s", now.isoformat(), summary)
        return summary
