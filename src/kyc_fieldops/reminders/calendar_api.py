"""Calendar service client for creating daily reminder events."""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Protocol, cast
from urllib.parse import quote

import httpx
import structlog

from kyc_fieldops.config import get_settings

logger = structlog.get_logger(__name__)

# Fallback markers for services that only report throttling in the message
DEFAULT_RATE_LIMIT_MARKERS: tuple[str, ...] = ("too many calendars", "too many", "Rate Limit")

_RATE_LIMIT_REASONS = {"rateLimitExceeded", "userRateLimitExceeded", "quotaExceeded"}


class CalendarAPIError(Exception):
    """Base exception for calendar service errors."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class RateLimitError(CalendarAPIError):
    """The service throttled the request."""

    pass


class CalendarNotFoundError(CalendarAPIError):
    """The configured calendar does not exist or is not shared with us."""

    pass


def is_rate_limit_error(
    exc: BaseException, markers: Iterable[str] = DEFAULT_RATE_LIMIT_MARKERS
) -> bool:
    """Return True when `exc` means "slow down and retry".

    `RateLimitError` is authoritative. Other exceptions are matched by
    substring against `markers`.
    """
    if isinstance(exc, RateLimitError):
        return True
    message = str(exc)
    return any(marker in message for marker in markers)


@dataclass(frozen=True)
class EventReminder:
    """A reminder attached to an event, `minutes` before its start."""

    method: Literal["popup", "email"]
    minutes: int


class CalendarService(Protocol):
    """What the reminder batch needs from a calendar."""

    calendar_id: str

    async def verify(self) -> None:
        """Raise `CalendarNotFoundError` if the calendar is unavailable."""
        ...

    async def create_event(
        self,
        *,
        title: str,
        start: datetime,
        end: datetime,
        description: str,
        reminders: Sequence[EventReminder] = (),
    ) -> str:
        """Create one event and return its identifier."""
        ...


def _error_reasons(payload: Any) -> set[str]:
    if not isinstance(payload, dict):
        return set()
    error = payload.get("error")
    if not isinstance(error, dict):
        return set()
    reasons = {
        str(item.get("reason"))
        for item in error.get("errors", [])
        if isinstance(item, dict) and item.get("reason")
    }
    if error.get("status"):
        reasons.add(str(error["status"]))
    return reasons


class GoogleCalendarClient:
    """Async client for the Google Calendar v3 REST API."""

    def __init__(
        self,
        calendar_id: str | None = None,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
    ):
        settings = get_settings()
        self.calendar_id = calendar_id or settings.reminder_calendar_id
        self.base_url = (base_url or settings.google_calendar_api_url).rstrip("/")
        self._token = token or settings.google_calendar_token.get_secret_value()
        self._timeout = timeout or settings.google_calendar_timeout
        self._client: httpx.AsyncClient | None = None
        self._logger = logger.bind(component="google_calendar", calendar_id=self.calendar_id)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GoogleCalendarClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _get_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    @property
    def _calendar_path(self) -> str:
        return f"/calendars/{quote(self.calendar_id, safe='')}"

    async def _request(
        self, method: str, path: str, json: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Send one request and map error responses to exceptions.

        No retries happen here; the batch decides what is retryable.
        """
        client = await self._get_client()
        try:
            response = await client.request(
                method=method, url=path, json=json, headers=self._get_headers()
            )
        except httpx.RequestError as e:
            raise CalendarAPIError(f"Request failed: {e}") from e

        if response.status_code >= 400:
            try:
                error_detail = response.json() if response.content else {}
            except ValueError:
                error_detail = {"raw": response.text[:500] if response.text else "empty response"}

            reasons = _error_reasons(error_detail)
            if response.status_code == 429 or (
                response.status_code == 403 and reasons & _RATE_LIMIT_REASONS
            ):
                raise RateLimitError(
                    f"Rate Limit Exceeded ({response.status_code})",
                    status_code=response.status_code,
                    details=error_detail,
                )
            if response.status_code == 404:
                raise CalendarNotFoundError(
                    f"Calendar not found: {self.calendar_id}",
                    status_code=404,
                    details=error_detail,
                )
            raise CalendarAPIError(
                f"API error: {response.status_code}",
                status_code=response.status_code,
                details=error_detail,
            )

        data = response.json() if response.content else {}
        if not isinstance(data, dict):
            raise CalendarAPIError("Invalid response format", details=data)
        return cast(dict[str, Any], data)

    async def verify(self) -> None:
        """Check that the calendar exists and is reachable."""
        if not self.calendar_id:
            raise CalendarNotFoundError("Calendar not found: no calendar id configured")
        await self._request("GET", self._calendar_path)
        self._logger.debug("calendar_verified")

    async def create_event(
        self,
        *,
        title: str,
        start: datetime,
        end: datetime,
        description: str,
        reminders: Sequence[EventReminder] = (),
    ) -> str:
        """Create a timed event with reminder overrides."""
        body: dict[str, Any] = {
            "summary": title,
            "description": description,
            "start": _event_time(start),
            "end": _event_time(end),
        }
        if reminders:
            body["reminders"] = {
                "useDefault": False,
                "overrides": [{"method": r.method, "minutes": r.minutes} for r in reminders],
            }

        data = await self._request("POST", f"{self._calendar_path}/events", json=body)
        event_id = data.get("id")
        if not event_id:
            raise CalendarAPIError("Event created without an id", details=data)
        self._logger.info("event_created", event_id=event_id, title=title)
        return str(event_id)


def _event_time(value: datetime) -> dict[str, str]:
    payload = {"dateTime": value.isoformat()}
    tz_name = getattr(value.tzinfo, "key", None)
    if tz_name:
        payload["timeZone"] = tz_name
    return payload
