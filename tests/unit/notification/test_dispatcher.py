import json
import logging

import httpx
import pytest

from src.notification import create_transport
from src.notification.dispatcher import (
    HttpMailTransport,
    LogOnlyTransport,
    RetryingDispatcher,
)
from src.notification.interface import (
    DispatchStatus,
    Notification,
    NotificationTransport,
    PermanentDispatchError,
    Recipient,
    RecipientRole,
    TransientDispatchError,
)

INSPECTOR = Recipient(RecipientRole.INSPECTOR, "inspector-1")


class ScriptedTransport(NotificationTransport):
    """Raises the scripted errors in order, then delivers."""

    def __init__(self, *errors: Exception) -> None:
        self._errors = list(errors)
        self.attempts = 0
        self.closed = False

    async def deliver(self, notification: Notification) -> None:
        self.attempts += 1
        if self._errors:
            raise self._errors.pop(0)

    async def aclose(self) -> None:
        self.closed = True


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class TestRetryingDispatcher:
    async def test_first_attempt_succeeds(self) -> None:
        sleep = SleepRecorder()
        dispatcher = RetryingDispatcher(ScriptedTransport(), sleep=sleep)

        result = await dispatcher.send(INSPECTOR, "offer-reminder", {})

        assert result.ok
        assert result.attempts == 1
        assert sleep.delays == []

    async def test_backs_off_between_transient_failures(self) -> None:
        transport = ScriptedTransport(
            TransientDispatchError("timeout"), TransientDispatchError("503")
        )
        sleep = SleepRecorder()
        dispatcher = RetryingDispatcher(transport, sleep=sleep)

        result = await dispatcher.send(INSPECTOR, "offer-reminder", {})

        assert result.ok
        assert result.attempts == 3
        assert sleep.delays == [5.0, 10.0]

    async def test_gives_up_after_retries_are_exhausted(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        transport = ScriptedTransport(*(TransientDispatchError("503") for _ in range(4)))
        sleep = SleepRecorder()
        dispatcher = RetryingDispatcher(transport, sleep=sleep)

        with caplog.at_level(logging.ERROR, logger="taklaget.operator"):
            result = await dispatcher.send(INSPECTOR, "offer-reminder", {})

        assert result.status is DispatchStatus.FAILED
        assert result.attempts == 4
        assert result.error == "503"
        assert sleep.delays == [5.0, 10.0, 30.0]
        assert any(r.name == "taklaget.operator" for r in caplog.records)

    async def test_permanent_failure_is_not_retried(self) -> None:
        transport = ScriptedTransport(PermanentDispatchError("unknown template"))
        sleep = SleepRecorder()
        dispatcher = RetryingDispatcher(transport, sleep=sleep)

        result = await dispatcher.send(INSPECTOR, "offer-reminder", {})

        assert not result.ok
        assert result.attempts == 1
        assert sleep.delays == []

    async def test_aclose_closes_transport(self) -> None:
        transport = ScriptedTransport()

        await RetryingDispatcher(transport).aclose()

        assert transport.closed


def _transport(handler: httpx.MockTransport) -> HttpMailTransport:
    client = httpx.AsyncClient(transport=handler)
    return HttpMailTransport.create(client, "https://mail.example.com/v1/")


NOTIFICATION = Notification(INSPECTOR, "offer-reminder", {"offer_id": "abc"})


class TestHttpMailTransport:
    async def test_posts_message(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(202)

        await _transport(httpx.MockTransport(handler)).deliver(NOTIFICATION)

        assert str(requests[0].url) == "https://mail.example.com/v1/messages"
        body = json.loads(requests[0].content)
        assert body["to"] == {"role": "inspector", "ref": "inspector-1"}
        assert body["template"] == {
            "name": "offer-reminder",
            "data": {"offer_id": "abc"},
        }

    @pytest.mark.parametrize("status_code", [429, 500, 503])
    async def test_retryable_status(self, status_code: int) -> None:
        transport = _transport(
            httpx.MockTransport(lambda request: httpx.Response(status_code))
        )

        with pytest.raises(TransientDispatchError):
            await transport.deliver(NOTIFICATION)

    @pytest.mark.parametrize("status_code", [400, 401, 422])
    async def test_refused_status(self, status_code: int) -> None:
        transport = _transport(
            httpx.MockTransport(lambda request: httpx.Response(status_code))
        )

        with pytest.raises(PermanentDispatchError):
            await transport.deliver(NOTIFICATION)

    async def test_connection_error_is_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransientDispatchError):
            await _transport(httpx.MockTransport(handler)).deliver(NOTIFICATION)


class TestLogOnlyTransport:
    async def test_never_fails(self) -> None:
        dispatcher = RetryingDispatcher(LogOnlyTransport())

        result = await dispatcher.send(INSPECTOR, "weather-alert", {})

        assert result.ok


class TestCreateTransport:
    def test_log_only_without_mail_api(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TAKLAGET_MAIL_API_URL", raising=False)

        assert isinstance(create_transport(), LogOnlyTransport)

    async def test_http_transport_with_mail_api(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("TAKLAGET_MAIL_API_URL", "https://mail.example.com")
        monkeypatch.setenv("TAKLAGET_MAIL_API_KEY", "k-123")

        transport = create_transport()

        assert isinstance(transport, HttpMailTransport)
        await transport.aclose()
