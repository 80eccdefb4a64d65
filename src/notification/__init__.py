import os

import httpx

from src.notification.dispatcher import (
    HttpMailTransport,
    LogOnlyTransport,
    RetryingDispatcher,
)
from src.notification.interface import NotificationDispatcher, NotificationTransport

MAIL_API_TIMEOUT_SECONDS = 10.0


def _make_client(api_key: str | None) -> httpx.AsyncClient:
    headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
    return httpx.AsyncClient(headers=headers, timeout=MAIL_API_TIMEOUT_SECONDS)


def create_transport() -> NotificationTransport:
    """HTTP mail transport when TAKLAGET_MAIL_API_URL is set, log-only otherwise."""
    api_url = os.environ.get("TAKLAGET_MAIL_API_URL")
    if not api_url:
        return LogOnlyTransport()
    client = _make_client(os.environ.get("TAKLAGET_MAIL_API_KEY"))
    return HttpMailTransport.create(client, api_url)


def create_dispatcher() -> NotificationDispatcher:
    return RetryingDispatcher(create_transport())
