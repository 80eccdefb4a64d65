from __future__ import annotations

from datetime import timedelta

from sqlalchemy import or_, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.base.session import store_session
from src.weather.alerts import AlertRecord, WeatherAlertStore
from src.weather.models import WeatherAlert


class SqlWeatherAlertStore(WeatherAlertStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_last_alert(self, inspector_id: str) -> AlertRecord | None:
        stmt = select(WeatherAlert).where(WeatherAlert.inspector_id == inspector_id)
        async with store_session(self._session_factory) as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            if row is None:
                return None
            return AlertRecord(
                inspector_id=row.inspector_id,
                sent_at=row.last_sent_at,
                condition=row.last_condition,
                severe=row.last_severe,
            )

    async def record_alert(self, record: AlertRecord, cooldown: timedelta) -> bool:
        stmt = insert(WeatherAlert).values(
            inspector_id=record.inspector_id,
            last_sent_at=record.sent_at,
            last_condition=record.condition,
            last_severe=record.severe,
        )
        # The existing row is only overwritten once its cooldown has run out
        # or the new alert is severe; otherwise nothing is returned.
        stmt = stmt.on_conflict_do_update(
            index_elements=[WeatherAlert.inspector_id],
            set_={
                "last_sent_at": stmt.excluded.last_sent_at,
                "last_condition": stmt.excluded.last_condition,
                "last_severe": stmt.excluded.last_severe,
            },
            where=or_(
                WeatherAlert.last_sent_at <= record.sent_at - cooldown,
                stmt.excluded.last_severe.is_(True),
            ),
        ).returning(WeatherAlert.inspector_id)
        async with store_session(self._session_factory) as session:
            async with session.begin():
                claimed = (await session.execute(stmt)).scalar_one_or_none()
        return claimed is not None
