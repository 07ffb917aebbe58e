from __future__ import annotations

import base64
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Protocol
from urllib.parse import quote
from zoneinfo import ZoneInfo

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.core.config import get_settings
from app.core.exceptions import (
    AuthError,
    ConfigurationError,
    ExternalServiceError,
    ProviderRejectedError,
)
from app.schemas.course_template import DayOfWeek
from app.schemas.meeting import ProviderMeeting
from app.services.token_cache import TokenCache, TokenLease, utc_clock

logger = logging.getLogger(__name__)

# Zoom meeting type 8: recurring meeting with a fixed time.
RECURRING_FIXED_TIME = 8
# Zoom recurrence type 2: weekly.
RECURRENCE_WEEKLY = 2
# Longest series created in one request: 12 weekly occurrences, about three months.
MAX_RECURRENCE_COUNT = 12


def zoom_weekday(day: DayOfWeek) -> int:
    """
    Zoom numbers weekdays 1=Sunday ... 7=Saturday.
    """
    return (day.iso_index + 1) % 7 + 1


class MeetingClient(Protocol):
    async def create_recurring_meeting(
        self,
        host_identity: str | None,
        topic: str,
        first_start: datetime,
        duration_minutes: int,
        weekday: DayOfWeek,
    ) -> ProviderMeeting:
        ...


class ZoomMeetingClient:
    """
    Zoom API client using Server-to-Server OAuth (account credentials).

    Responsibilities
    ----------------
    - Obtain and cache a bearer token through an injectable ``TokenCache``.
    - On a 401, invalidate the token, fetch a new one and retry the call
      exactly once before surfacing ``AuthError``.
    - Retry transient failures (network errors, 5xx, 429) with bounded
      exponential backoff; fail other 4xx immediately as
      ``ProviderRejectedError``.
    - Create weekly recurring meetings.
    """

    def __init__(
        self,
        account_id: str,
        client_id: str,
        client_secret: str,
        base_url: str = "https://api.zoom.us/v2",
        token_url: str = "https://zoom.us/oauth/token",
        timezone_name: str = "UTC",
        recurrence_count: int = MAX_RECURRENCE_COUNT,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        backoff_max_seconds: float = 10.0,
        timeout_seconds: float = 10.0,
        token_cache: TokenCache | None = None,
        clock: Callable[[], datetime] = utc_clock,
    ) -> None:
        if not account_id or not client_id or not client_secret:
            raise ValueError("account_id, client_id and client_secret are required")

        self._account_id = account_id
        self._client_id = client_id
        self._client_secret = client_secret
        self._base_url = base_url.rstrip("/")
        self._token_url = token_url
        self._timezone_name = timezone_name
        self._tz = ZoneInfo(timezone_name)
        self._recurrence_count = max(1, min(recurrence_count, MAX_RECURRENCE_COUNT))
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds
        self._backoff_max_seconds = backoff_max_seconds
        self._timeout_seconds = timeout_seconds
        self._clock = clock

        self.token_cache = token_cache or TokenCache(self._fetch_token, clock=clock)

    @property
    def token_url(self) -> str:
        return self._token_url

    async def _fetch_token(self) -> TokenLease:
        """
        Fetch a fresh access token using the ``account_credentials`` grant.
        """
        credentials = f"{self._client_id}:{self._client_secret}"
        encoded_credentials = base64.b64encode(credentials.encode()).decode()
        headers = {
            "Authorization": f"Basic {encoded_credentials}",
            "Content-Type": "application/x-www-form-urlencoded",
        }
        params = {
            "grant_type": "account_credentials",
            "account_id": self._account_id,
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                resp = await client.post(self.token_url, params=params, headers=headers)
        except httpx.TransportError as exc:
            raise ExternalServiceError(f"Zoom token request failed: {exc}") from exc
        except httpx.HTTPError as exc:
            raise AuthError(f"Zoom token request failed: {exc}") from exc

        if resp.status_code == 429 or resp.status_code >= 500:
            raise ExternalServiceError(
                f"Zoom token endpoint unavailable (status={resp.status_code})",
                status_code=resp.status_code,
            )
        if resp.status_code != 200:
            raise AuthError(
                f"Failed to obtain Zoom token (status={resp.status_code}): {resp.text}",
                status_code=resp.status_code,
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            raise AuthError(f"Zoom token response is not JSON: {resp.text[:200]}") from exc
        if not isinstance(payload, dict):
            raise AuthError("Invalid token response from Zoom (expected a JSON object)")

        access_token = payload.get("access_token")
        expires_in = payload.get("expires_in")

        if not access_token or not isinstance(expires_in, (int, float)):
            raise AuthError("Invalid token response from Zoom (missing access_token/expires_in)")

        return TokenLease(
            access_token=access_token,
            expires_at=self._clock() + timedelta(seconds=float(expires_in)),
        )

    async def _send(
        self,
        method: str,
        path: str,
        token: str,
        json: Any = None,
    ) -> httpx.Response:
        url = f"{self._base_url}/{path.lstrip('/')}"
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                return await client.request(
                    method=method.upper(),
                    url=url,
                    headers=headers,
                    params=None,
                    json=json,
                )
        except httpx.TransportError as exc:
            raise ExternalServiceError(f"Zoom {method.upper()} {path} failed: {exc}") from exc
        except httpx.HTTPError as exc:
            # Decoding errors, redirect loops: retrying will not help
            raise ProviderRejectedError(f"Zoom {method.upper()} {path} failed: {exc}") from exc

    async def _send_authorized(self, method: str, path: str, json: Any = None) -> Dict[str, Any]:
        """
        One authorized call, with a single forced token refresh on 401.
        """
        token = await self.token_cache.get()
        resp = await self._send(method, path, token, json=json)

        if resp.status_code == 401:
            logger.warning("Zoom rejected the access token for %s %s; refreshing", method, path)
            self.token_cache.invalidate(token)
            token = await self.token_cache.get()
            resp = await self._send(method, path, token, json=json)
            if resp.status_code == 401:
                raise AuthError(
                    f"Zoom {method.upper()} {path} unauthorized after token refresh: {resp.text}",
                    status_code=401,
                )

        return self._parse_response(method, path, resp)

    @staticmethod
    def _parse_response(method: str, path: str, resp: httpx.Response) -> Dict[str, Any]:
        if resp.status_code // 100 == 2:
            if resp.status_code == 204:
                return {}
            try:
                payload = resp.json()
            except ValueError as exc:
                raise ProviderRejectedError(
                    f"Zoom {method.upper()} {path} returned a non-JSON body (status={resp.status_code})",
                    status_code=resp.status_code,
                    details={"status": resp.status_code, "body": resp.text[:500]},
                ) from exc
            if not isinstance(payload, dict):
                raise ProviderRejectedError(
                    f"Zoom {method.upper()} {path} returned an unexpected body (status={resp.status_code})",
                    status_code=resp.status_code,
                    details={"status": resp.status_code, "body": resp.text[:500]},
                )
            return payload

        details = {"status": resp.status_code, "body": resp.text}
        if resp.status_code == 429 or resp.status_code >= 500:
            raise ExternalServiceError(
                f"Zoom {method.upper()} {path} failed (status={resp.status_code})",
                status_code=resp.status_code,
                details=details,
            )
        raise ProviderRejectedError(
            f"Zoom {method.upper()} {path} rejected (status={resp.status_code}): {resp.text}",
            status_code=resp.status_code,
            details=details,
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
    ) -> Dict[str, Any]:
        """
        Authorized Zoom call with retry of transient failures.

        Raises
        ------
        AuthError, ExternalServiceError, ProviderRejectedError
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._backoff_seconds, max=self._backoff_max_seconds),
            retry=retry_if_exception_type(ExternalServiceError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        payload: Dict[str, Any] = {}
        async for attempt in retrying:
            with attempt:
                payload = await self._send_authorized(method, path, json=json)
        return payload

    async def create_recurring_meeting(
        self,
        host_identity: Optional[str],
        topic: str,
        first_start: datetime,
        duration_minutes: int,
        weekday: DayOfWeek,
    ) -> ProviderMeeting:
        """
        Create a weekly recurring meeting whose first occurrence starts at
        ``first_start``. The meeting is created under ``host_identity``
        (Zoom user id or email), or the account owner ("me") when empty.
        """
        user_id = (host_identity or "").strip() or "me"
        local_start = first_start.astimezone(self._tz)

        body = {
            "topic": topic,
            "type": RECURRING_FIXED_TIME,
            "start_time": local_start.strftime("%Y-%m-%dT%H:%M:%S"),
            "duration": duration_minutes,
            "timezone": self._timezone_name,
            "recurrence": {
                "type": RECURRENCE_WEEKLY,
                "repeat_interval": 1,
                "weekly_days": str(zoom_weekday(weekday)),
                "end_times": self._recurrence_count,
            },
            "settings": {
                "host_video": True,
                "participant_video": True,
                "join_before_host": True,
                "mute_upon_entry": True,
                "auto_recording": "none",
            },
        }

        payload = await self.request("POST", f"/users/{quote(user_id, safe='@.')}/meetings", json=body)

        meeting_id = payload.get("id")
        join_url = payload.get("join_url")
        if meeting_id is None or not join_url:
            raise ProviderRejectedError(
                "Zoom meeting response is missing id/join_url",
                details={"response": payload},
            )

        logger.info("Created Zoom meeting %s for %r", meeting_id, topic)
        return ProviderMeeting(
            external_meeting_id=str(meeting_id),
            join_url=join_url,
            first_occurrence_start=first_start,
            provider_status=payload.get("status"),
            raw=payload,
        )


class SimulatedMeetingClient:
    """
    Stand-in used when simulation mode is enabled: no network calls,
    predictable ``simulated_<id>`` meetings.
    """

    async def create_recurring_meeting(
        self,
        host_identity: Optional[str],
        topic: str,
        first_start: datetime,
        duration_minutes: int,
        weekday: DayOfWeek,
    ) -> ProviderMeeting:
        simulated_id = f"simulated_{uuid.uuid4().hex[:12]}"
        logger.info("Simulated Zoom meeting %s for %r", simulated_id, topic)
        return ProviderMeeting(
            external_meeting_id=simulated_id,
            join_url=f"https://zoom.us/j/{simulated_id}",
            first_occurrence_start=first_start,
            provider_status="simulated",
            raw={
                "topic": topic,
                "host": host_identity,
                "duration": duration_minutes,
                "weekly_days": zoom_weekday(weekday),
            },
        )


# Simple singleton-style accessor wired to app settings
_meeting_client_instance: Optional[MeetingClient] = None


def get_meeting_client() -> MeetingClient:
    """
    Lazily construct the meeting client using application settings.

    Returns the simulated client when ``ZOOM_SIMULATION_MODE`` is on.
    """
    global _meeting_client_instance
    if _meeting_client_instance is None:
        settings = get_settings()
        if settings.ZOOM_SIMULATION_MODE:
            _meeting_client_instance = SimulatedMeetingClient()
        elif not settings.is_zoom_configured:
            raise ConfigurationError(
                "ZOOM_ACCOUNT_ID, ZOOM_CLIENT_ID and ZOOM_CLIENT_SECRET must be "
                "configured (or ZOOM_SIMULATION_MODE enabled) to create meetings."
            )
        else:
            _meeting_client_instance = ZoomMeetingClient(
                account_id=settings.ZOOM_ACCOUNT_ID,
                client_id=settings.ZOOM_CLIENT_ID,
                client_secret=settings.ZOOM_CLIENT_SECRET,
                base_url=str(settings.ZOOM_API_BASE_URL or "https://api.zoom.us/v2"),
                token_url=str(settings.ZOOM_TOKEN_URL or "https://zoom.us/oauth/token"),
                timezone_name=settings.SCHEDULE_TIMEZONE,
                recurrence_count=settings.ZOOM_RECURRENCE_COUNT,
                max_attempts=settings.ZOOM_MAX_ATTEMPTS,
                backoff_seconds=settings.ZOOM_BACKOFF_SECONDS,
                backoff_max_seconds=settings.ZOOM_BACKOFF_MAX_SECONDS,
                timeout_seconds=settings.ZOOM_TIMEOUT_SECONDS,
            )
    return _meeting_client_instance
