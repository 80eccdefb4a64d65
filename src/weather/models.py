from datetime import datetime

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from src.base.models import BaseDbModel, UTCDateTime


class WeatherAlert(BaseDbModel):
    """Most recent weather notification sent to one inspector."""

    __tablename__ = "weather_alerts"

    inspector_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    last_sent_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    last_condition: Mapped[str] = mapped_column(String, nullable=False)
    last_severe: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
