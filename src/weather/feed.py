from __future__ import annotations

from typing import Sequence

import httpx
from pydantic import BaseModel, TypeAdapter

from src.weather.alerts import WeatherCondition, WeatherSource


class _FeedItem(BaseModel):
    inspector_id: str
    summary: str
    severe: bool = False


_FEED_ADAPTER = TypeAdapter(list[_FeedItem])


class HttpWeatherFeed(WeatherSource):
    """Reads per-inspector conditions from a JSON feed (a list of items)."""

    def __init__(self, client: httpx.AsyncClient, url: str) -> None:
        self._client = client
        self._url = url

    @classmethod
    def create(cls, client: httpx.AsyncClient, url: str) -> HttpWeatherFeed:
        return cls(client, url)

    async def current_conditions(self) -> Sequence[WeatherCondition]:
        response = await self._client.get(self._url)
        response.raise_for_status()
        items = _FEED_ADAPTER.validate_json(response.content)
        return [
            WeatherCondition(
                inspector_id=item.inspector_id, summary=item.summary, severe=item.severe
            )
            for item in items
        ]

    async def aclose(self) -> None:
        await self._client.aclose()
