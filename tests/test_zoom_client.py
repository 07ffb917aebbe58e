# tests/test_zoom_client.py
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

import httpx
import pytest

from app.core.exceptions import AuthError, ExternalServiceError, ProviderRejectedError
from app.schemas.course_template import DayOfWeek
from app.services.zoom_client import (
    SimulatedMeetingClient,
    ZoomMeetingClient,
    zoom_weekday,
)

UTC = timezone.utc
NOW = datetime(2024, 1, 1, 8, 0, tzinfo=UTC)


class _FakeResponse:
    def __init__(self, status_code: int, json_data: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        self._json_data = json_data or {}
        # For debugging / error messages
        self.text = str(self._json_data)

    def json(self) -> Dict[str, Any]:
        return self._json_data


def _token_response(token: str = "token-1", expires_in: int = 3600) -> _FakeResponse:
    return _FakeResponse(
        HTTPStatus.OK,
        {"access_token": token, "expires_in": expires_in, "token_type": "bearer"},
    )


def _meeting_response(meeting_id: int = 85012345678) -> _FakeResponse:
    return _FakeResponse(
        HTTPStatus.CREATED,
        {
            "id": meeting_id,
            "join_url": f"https://zoom.us/j/{meeting_id}",
            "status": "waiting",
        },
    )


class _FakeAsyncClient:
    """
    Minimal stand-in for httpx.AsyncClient.

    Responses are scripted per endpoint; every call is recorded on the class
    so tests can assert on what was sent.
    """

    token_responses: List[Any] = []
    api_responses: List[Any] = []
    token_calls: List[Dict[str, Any]] = []
    api_calls: List[Dict[str, Any]] = []

    def __init__(self, timeout: float | None = None):
        self._timeout = timeout

    @classmethod
    def reset(cls, token_responses=None, api_responses=None) -> None:
        cls.token_responses = list(token_responses or [])
        cls.api_responses = list(api_responses or [])
        cls.token_calls = []
        cls.api_calls = []

    async def __aenter__(self) -> "_FakeAsyncClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    @staticmethod
    def _next(responses: List[Any]) -> _FakeResponse:
        response = responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def post(self, url: str, params=None, headers=None, **kwargs) -> _FakeResponse:
        _FakeAsyncClient.token_calls.append({"url": url, "params": params, "headers": headers})
        return self._next(_FakeAsyncClient.token_responses)

    async def request(self, method: str, url: str, headers=None, params=None, json=None) -> _FakeResponse:
        _FakeAsyncClient.api_calls.append(
            {"method": method, "url": url, "headers": headers, "json": json}
        )
        return self._next(_FakeAsyncClient.api_responses)


@pytest.fixture
def fake_httpx(monkeypatch):
    _FakeAsyncClient.reset()
    monkeypatch.setattr(httpx, "AsyncClient", _FakeAsyncClient)
    return _FakeAsyncClient


def _client(**overrides) -> ZoomMeetingClient:
    values = {
        "account_id": "account-1",
        "client_id": "client-1",
        "client_secret": "secret-1",
        "max_attempts": 3,
        "backoff_seconds": 0,
        "backoff_max_seconds": 0,
        "clock": lambda: NOW,
    }
    values.update(overrides)
    return ZoomMeetingClient(**values)


async def _create(client: ZoomMeetingClient, weekday: DayOfWeek = DayOfWeek.MONDAY, host: str | None = None):
    return await client.create_recurring_meeting(
        host_identity=host,
        topic="Conversation Club - Jane Doe",
        first_start=datetime(2024, 1, 1, 20, 30, tzinfo=UTC),
        duration_minutes=60,
        weekday=weekday,
    )


def test_zoom_weekday_numbering():
    """
    Zoom numbers weekdays 1=Sunday ... 7=Saturday.
    """
    assert zoom_weekday(DayOfWeek.SUNDAY) == 1
    assert zoom_weekday(DayOfWeek.MONDAY) == 2
    assert zoom_weekday(DayOfWeek.TUESDAY) == 3
    assert zoom_weekday(DayOfWeek.SATURDAY) == 7


def test_missing_credentials_are_rejected():
    with pytest.raises(ValueError):
        ZoomMeetingClient(account_id="", client_id="c", client_secret="s")


@pytest.mark.asyncio
async def test_create_meeting_sends_weekly_recurrence(fake_httpx):
    """
    The first call fetches a token with the account_credentials grant, then
    posts a type-8 weekly meeting for the template's weekday.
    """
    fake_httpx.reset(token_responses=[_token_response()], api_responses=[_meeting_response()])
    client = _client(timezone_name="America/Sao_Paulo")

    meeting = await _create(client, weekday=DayOfWeek.TUESDAY, host="teacher@example.com")

    assert meeting.external_meeting_id == "85012345678"
    assert meeting.join_url == "https://zoom.us/j/85012345678"
    assert meeting.provider_status == "waiting"

    token_call = fake_httpx.token_calls[0]
    assert token_call["params"] == {"grant_type": "account_credentials", "account_id": "account-1"}
    assert token_call["headers"]["Authorization"].startswith("Basic ")

    api_call = fake_httpx.api_calls[0]
    assert api_call["method"] == "POST"
    assert api_call["url"] == "https://api.zoom.us/v2/users/teacher@example.com/meetings"
    assert api_call["headers"]["Authorization"] == "Bearer token-1"

    body = api_call["json"]
    assert body["type"] == 8
    assert body["duration"] == 60
    assert body["timezone"] == "America/Sao_Paulo"
    # 20:30 UTC is 17:30 in Sao Paulo
    assert body["start_time"] == "2024-01-01T17:30:00"
    assert body["recurrence"] == {
        "type": 2,
        "repeat_interval": 1,
        "weekly_days": "3",
        "end_times": 12,
    }


@pytest.mark.asyncio
async def test_empty_host_uses_account_owner(fake_httpx):
    fake_httpx.reset(token_responses=[_token_response()], api_responses=[_meeting_response()])

    await _create(_client(), host="  ")

    assert fake_httpx.api_calls[0]["url"].endswith("/users/me/meetings")


@pytest.mark.asyncio
async def test_token_is_cached_between_calls(fake_httpx):
    fake_httpx.reset(
        token_responses=[_token_response()],
        api_responses=[_meeting_response(1), _meeting_response(2)],
    )
    client = _client()

    await _create(client)
    await _create(client)

    assert len(fake_httpx.token_calls) == 1
    assert len(fake_httpx.api_calls) == 2


@pytest.mark.asyncio
async def test_unauthorized_call_refreshes_token_once(fake_httpx):
    """
    A 401 invalidates the cached token, fetches a new one and retries the
    call exactly once.
    """
    fake_httpx.reset(
        token_responses=[_token_response("token-1"), _token_response("token-2")],
        api_responses=[_FakeResponse(HTTPStatus.UNAUTHORIZED, {"code": 124}), _meeting_response()],
    )
    client = _client()

    meeting = await _create(client)

    assert meeting.external_meeting_id == "85012345678"
    assert len(fake_httpx.token_calls) == 2
    assert [c["headers"]["Authorization"] for c in fake_httpx.api_calls] == [
        "Bearer token-1",
        "Bearer token-2",
    ]


@pytest.mark.asyncio
async def test_second_unauthorized_surfaces_auth_error(fake_httpx):
    fake_httpx.reset(
        token_responses=[_token_response("token-1"), _token_response("token-2")],
        api_responses=[
            _FakeResponse(HTTPStatus.UNAUTHORIZED, {"code": 124}),
            _FakeResponse(HTTPStatus.UNAUTHORIZED, {"code": 124}),
        ],
    )

    with pytest.raises(AuthError):
        await _create(_client())

    assert len(fake_httpx.api_calls) == 2


@pytest.mark.asyncio
async def test_rejected_token_request_is_auth_error(fake_httpx):
    fake_httpx.reset(token_responses=[_FakeResponse(HTTPStatus.BAD_REQUEST, {"reason": "invalid_client"})])

    with pytest.raises(AuthError):
        await _create(_client())

    assert fake_httpx.api_calls == []


@pytest.mark.asyncio
async def test_server_errors_are_retried(fake_httpx):
    """
    5xx and 429 responses are transient and retried up to max_attempts.
    """
    fake_httpx.reset(
        token_responses=[_token_response()],
        api_responses=[
            _FakeResponse(HTTPStatus.SERVICE_UNAVAILABLE),
            _FakeResponse(HTTPStatus.TOO_MANY_REQUESTS),
            _meeting_response(),
        ],
    )

    meeting = await _create(_client())

    assert meeting.external_meeting_id == "85012345678"
    assert len(fake_httpx.api_calls) == 3


@pytest.mark.asyncio
async def test_network_errors_exhaust_retries(fake_httpx):
    fake_httpx.reset(
        token_responses=[_token_response()],
        api_responses=[httpx.ConnectError("connection refused")] * 3,
    )

    with pytest.raises(ExternalServiceError):
        await _create(_client())

    assert len(fake_httpx.api_calls) == 3


@pytest.mark.asyncio
async def test_client_errors_are_not_retried(fake_httpx):
    fake_httpx.reset(
        token_responses=[_token_response()],
        api_responses=[_FakeResponse(HTTPStatus.NOT_FOUND, {"code": 1001, "message": "User does not exist"})],
    )

    with pytest.raises(ProviderRejectedError) as exc_info:
        await _create(_client(), host="missing@example.com")

    assert exc_info.value.status_code == HTTPStatus.NOT_FOUND
    assert len(fake_httpx.api_calls) == 1


@pytest.mark.asyncio
async def test_response_without_join_url_is_rejected(fake_httpx):
    fake_httpx.reset(
        token_responses=[_token_response()],
        api_responses=[_FakeResponse(HTTPStatus.CREATED, {"id": 1})],
    )

    with pytest.raises(ProviderRejectedError):
        await _create(_client())


@pytest.mark.asyncio
async def test_recurrence_count_is_capped(fake_httpx):
    fake_httpx.reset(token_responses=[_token_response()], api_responses=[_meeting_response()])

    await _create(_client(recurrence_count=50))

    assert fake_httpx.api_calls[0]["json"]["recurrence"]["end_times"] == 12


@pytest.mark.asyncio
async def test_simulated_client_returns_predictable_meeting():
    client = SimulatedMeetingClient()
    first_start = datetime(2024, 1, 1, 20, 30, tzinfo=ZoneInfo("UTC")) + timedelta(days=7)

    meeting = await client.create_recurring_meeting(
        host_identity=None,
        topic="Conversation Club - Jane Doe",
        first_start=first_start,
        duration_minutes=60,
        weekday=DayOfWeek.MONDAY,
    )

    assert meeting.external_meeting_id.startswith("simulated_")
    assert meeting.join_url == f"https://zoom.us/j/{meeting.external_meeting_id}"
    assert meeting.first_occurrence_start == first_start


class _HtmlResponse(_FakeResponse):
    def __init__(self, status_code: int, text: str):
        super().__init__(status_code)
        self.text = text

    def json(self) -> Dict[str, Any]:
        raise ValueError("Expecting value: line 1 column 1 (char 0)")


@pytest.mark.asyncio
async def test_non_json_success_body_is_rejected(fake_httpx):
    fake_httpx.reset(
        token_responses=[_token_response()],
        api_responses=[_HtmlResponse(HTTPStatus.CREATED, "<html>gateway</html>")],
    )

    with pytest.raises(ProviderRejectedError) as exc_info:
        await _create(_client())

    assert exc_info.value.details["body"] == "<html>gateway</html>"
    assert len(fake_httpx.api_calls) == 1


@pytest.mark.asyncio
async def test_non_object_success_body_is_rejected(fake_httpx):
    class _ListResponse(_FakeResponse):
        def json(self):
            return ["not", "a", "meeting"]

    fake_httpx.reset(
        token_responses=[_token_response()],
        api_responses=[_ListResponse(HTTPStatus.CREATED)],
    )

    with pytest.raises(ProviderRejectedError):
        await _create(_client())


@pytest.mark.asyncio
async def test_non_transport_http_errors_are_not_retried(fake_httpx):
    fake_httpx.reset(
        token_responses=[_token_response()],
        api_responses=[httpx.DecodingError("bad gzip stream")],
    )

    with pytest.raises(ProviderRejectedError):
        await _create(_client())

    assert len(fake_httpx.api_calls) == 1


@pytest.mark.asyncio
async def test_non_json_token_response_is_auth_error(fake_httpx):
    fake_httpx.reset(token_responses=[_HtmlResponse(HTTPStatus.OK, "<html>login</html>")])

    with pytest.raises(AuthError):
        await _create(_client())

    assert fake_httpx.api_calls == []
