from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Mapping, Sequence

import httpx

from src.notification.interface import (
    DispatchResult,
    DispatchStatus,
    Notification,
    NotificationDispatcher,
    NotificationTransport,
    PermanentDispatchError,
    Recipient,
    TransientDispatchError,
)

logger = logging.getLogger(__name__)
operator_logger = logging.getLogger("taklaget.operator")

SleepFn = Callable[[float], Awaitable[None]]

DEFAULT_RETRY_DELAYS: tuple[float, ...] = (5.0, 10.0, 30.0)


class RetryingDispatcher(NotificationDispatcher):
    """
    Delivers through a transport, retrying transient failures with backoff.

    The first attempt goes out immediately; each transient failure is followed
    by the next delay from `retry_delays` and another attempt, until the delays
    run out. Permanent failures are not retried. Exhaustion is reported on the
    operator logger and returned as a failed result; nothing is re-queued.
    """

    def __init__(
        self,
        transport: NotificationTransport,
        retry_delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self._retry_delays = tuple(retry_delays)
        self._sleep = sleep

    async def send(
        self,
        recipient: Recipient,
        template: str,
        payload: Mapping[str, Any],
    ) -> DispatchResult:
        notification = Notification(
            recipient=recipient, template=template, payload=payload
        )
        delays = iter(self._retry_delays)
        attempts = 0

        while True:
            attempts += 1
            try:
                await self._transport.deliver(notification)
                return DispatchResult(status=DispatchStatus.SENT, attempts=attempts)
            except TransientDispatchError as exc:
                delay = next(delays, None)
                if delay is None:
                    error = str(exc)
                    break
                logger.warning(
                    "Attempt %d of %s to %s failed (%s), retrying in %.0fs",
                    attempts,
                    template,
                    recipient.ref,
                    exc,
                    delay,
                )
                await self._sleep(delay)
            except PermanentDispatchError as exc:
                error = str(exc)
                break

        operator_logger.error(
            "Giving up on %s to %s %s after %d attempts: %s",
            template,
            recipient.role.value,
            recipient.ref,
            attempts,
            error,
        )
        return DispatchResult(
            status=DispatchStatus.FAILED, attempts=attempts, error=error
        )

    async def aclose(self) -> None:
        await self._transport.aclose()


class HttpMailTransport(NotificationTransport):
    """Hands notifications to the mail service's HTTP API."""

    def __init__(self, client: httpx.AsyncClient, api_url: str) -> None:
        self._client = client
        self._api_url = api_url.rstrip("/")

    @classmethod
    def create(
        cls, client: httpx.AsyncClient, api_url: str
    ) -> HttpMailTransport:
        return cls(client, api_url)

    async def deliver(self, notification: Notification) -> None:
        body = {
            "to": {
                "role": notification.recipient.role.value,
                "ref": notification.recipient.ref,
            },
            "template": {
                "name": notification.template,
                "data": dict(notification.payload),
            },
        }
        try:
            response = await self._client.post(f"{self._api_url}/messages", json=body)
        except httpx.TransportError as exc:
            raise TransientDispatchError(f"{type(exc).__name__}: {exc}") from exc

        if response.status_code == 429 or response.is_server_error:
            raise TransientDispatchError(f"mail API returned {response.status_code}")
        if response.is_error:
            raise PermanentDispatchError(
                f"mail API refused message: {response.status_code} {response.text[:200]}"
            )

    async def aclose(self) -> None:
        await self._client.aclose()


class LogOnlyTransport(NotificationTransport):
    """Used when no mail API is configured: notifications are only logged."""

    async def deliver(self, notification: Notification) -> None:
        logger.info(
            "Mail delivery disabled, not sending %s to %s %s",
            notification.template,
            notification.recipient.role.value,
            notification.recipient.ref,
        )
