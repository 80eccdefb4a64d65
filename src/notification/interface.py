from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping


class RecipientRole(enum.Enum):
    INSPECTOR = "inspector"
    BRANCH_ADMIN = "branch_admin"


@dataclass(frozen=True)
class Recipient:
    """Who a notification is for.

    `ref` is a user id for inspectors and a branch id for branch admins; the
    delivery side resolves it to an address.
    """

    role: RecipientRole
    ref: str


class DispatchStatus(enum.Enum):
    SENT = "sent"
    FAILED = "failed"


@dataclass(frozen=True)
class DispatchResult:
    status: DispatchStatus
    attempts: int
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is DispatchStatus.SENT


@dataclass(frozen=True)
class Notification:
    recipient: Recipient
    template: str
    payload: Mapping[str, Any] = field(default_factory=dict)


class NotificationDispatchFailed(Exception):
    """Delivery of a notification failed."""


class TransientDispatchError(NotificationDispatchFailed):
    """Worth retrying: timeouts, connection errors, 5xx and 429 responses."""


class PermanentDispatchError(NotificationDispatchFailed):
    """Retrying will not help: the request itself was refused."""


class NotificationTransport(ABC):
    """Makes exactly one delivery attempt."""

    @abstractmethod
    async def deliver(self, notification: Notification) -> None: ...

    async def aclose(self) -> None:
        return None


class NotificationDispatcher(ABC):
    @abstractmethod
    async def send(
        self,
        recipient: Recipient,
        template: str,
        payload: Mapping[str, Any],
    ) -> DispatchResult: ...

    async def aclose(self) -> None:
        return None
