import os

import httpx

from src.weather.feed import HttpWeatherFeed

WEATHER_FEED_TIMEOUT_SECONDS = 15.0


def create_weather_source() -> HttpWeatherFeed | None:
    """Weather feed from TAKLAGET_WEATHER_FEED_URL; None when not configured."""
    url = os.environ.get("TAKLAGET_WEATHER_FEED_URL")
    if not url:
        return None
    return HttpWeatherFeed.create(
        httpx.AsyncClient(timeout=WEATHER_FEED_TIMEOUT_SECONDS, follow_redirects=True),
        url,
    )
