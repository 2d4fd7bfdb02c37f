"""Gmail and Google Calendar source adapters.

Both adapters talk to the Google REST APIs with ``httpx`` and authenticate
with the bearer token held in the account's in-memory credentials. Token
acquisition and refresh happen outside Pager.

Every failure, whether transport, HTTP status, or payload shape, surfaces
as ``FetchError``. A fetch that needs several requests either completes all
of them or raises, so the caller never sees a partial result.

Classes:
    GmailSource: ``MailSource`` backed by the Gmail API.
    GoogleCalendarSource: ``CalendarSource`` backed by the Calendar API.

Example:
    >>> async with GmailSource() as gmail, GoogleCalendarSource() as gcal:
    ...     mails = await gmail.fetch_unread(account)
    ...     calendars = await gcal.list_calendars(account)
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any, Self
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from src.pager.core.account import AccountState
from src.pager.errors import FetchError
from src.pager.models import (
    AgendaSnapshot,
    FetchedEvent,
    FetchWindow,
    Mail,
    ReminderSettings,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

GMAIL_API_BASE_URL = "https://gmail.googleapis.com/gmail/v1"
GOOGLE_CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"

#: Gmail search selecting the mail Pager notifies about.
UNREAD_QUERY = "is:unread newer_than:1d"

_DEFAULT_TIMEOUT = 30.0  # seconds per request
_MAX_PAGES = 20  # guard against a server that never stops paginating


def _google_rfc3339(value: datetime) -> str:
    normalized = value if value.tzinfo is not None else value.astimezone()
    return normalized.astimezone(UTC).isoformat().replace("+00:00", "Z")


def _safe_google_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error_payload = payload.get("error")
        if isinstance(error_payload, dict):
            message = error_payload.get("message")
            if isinstance(message, str) and message.strip():
                return " ".join(message.split())[:200]
        if isinstance(error_payload, str) and error_payload.strip():
            return " ".join(error_payload.split())[:200]

    raw_text = response.text.strip()
    if raw_text:
        return " ".join(raw_text.split())[:200]
    return "Request failed without an error payload"


def _minutes(entries: Any) -> list[timedelta]:
    """Extract reminder lead times from a Google ``reminders`` list."""
    if not isinstance(entries, list):
        return []
    offsets = []
    for entry in entries:
        if isinstance(entry, dict) and isinstance(entry.get("minutes"), int):
            offsets.append(timedelta(minutes=entry["minutes"]))
    return offsets


# ---------------------------------------------------------------------------
# Shared HTTP plumbing
# ---------------------------------------------------------------------------


class _GoogleAPISource:
    """Authenticated JSON GETs against one Google API."""

    source_name = "google"

    def __init__(
        self,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._external_client = http_client is not None
        self._http_client = http_client

    async def __aenter__(self) -> Self:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this source created it."""
        if not self._external_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            raise RuntimeError(
                "Source not initialized. Use 'async with' context manager or "
                "call __aenter__ first."
            )
        return self._http_client

    def _error(
        self, account: AccountState, message: str, status_code: int | None = None
    ) -> FetchError:
        return FetchError(
            message,
            account=account.name,
            source=self.source_name,
            status_code=status_code,
        )

    async def _get_json(
        self,
        account: AccountState,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        client = self._ensure_client()
        headers = {
            "Authorization": account.credentials.authorization_header(),
            "Accept": "application/json",
        }
        try:
            response = await client.get(
                f"{self.base_url}{path}", params=params, headers=headers
            )
        except httpx.HTTPError as exc:
            raise self._error(account, f"GET {path} failed: {exc}") from exc

        if not response.is_success:
            raise self._error(
                account,
                _safe_google_error_message(response),
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise self._error(account, f"GET {path} returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise self._error(account, f"GET {path} returned a non-object payload")
        return payload

    async def _get_pages(
        self,
        account: AccountState,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Follow ``nextPageToken`` and return every page payload."""
        pages: list[dict[str, Any]] = []
        page_params = dict(params or {})
        for _ in range(_MAX_PAGES):
            payload = await self._get_json(account, path, page_params)
            pages.append(payload)
            token = payload.get("nextPageToken")
            if not token:
                break
            page_params["pageToken"] = token
        else:
            logger.warning(
                "[%s] GET %s still paginating after %d pages; truncating",
                account.name,
                path,
                _MAX_PAGES,
            )
        return pages


# ---------------------------------------------------------------------------
# Gmail
# ---------------------------------------------------------------------------


class GmailSource(_GoogleAPISource):
    """Fetches unread mail from the last day through the Gmail API.

    Args:
        base_url: Gmail API root, overridable for tests and proxies.
        http_client: Optional shared client; one is created on entry if not
            given and closed on exit.
        timeout: Per-request timeout in seconds for a created client.
        query: Gmail search query selecting the mail to fetch.
    """

    source_name = "gmail"

    def __init__(
        self,
        base_url: str = GMAIL_API_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
        query: str = UNREAD_QUERY,
    ) -> None:
        super().__init__(base_url, http_client=http_client, timeout=timeout)
        self.query = query

    async def fetch_unread(self, account: AccountState) -> list[Mail]:
        """List unread recent messages and fetch each one's headers.

        Raises:
            FetchError: If the listing or any message lookup fails.
        """
        pages = await self._get_pages(
            account, "/users/me/messages", {"q": self.query}
        )
        message_ids: list[str] = []
        for page in pages:
            for entry in page.get("messages") or []:
                if isinstance(entry, dict) and entry.get("id"):
                    message_ids.append(str(entry["id"]))

        mails = []
        for message_id in message_ids:
            payload = await self._get_json(
                account,
                f"/users/me/messages/{quote(message_id, safe='')}",
                {"format": "metadata", "metadataHeaders": ["From", "Subject"]},
            )
            mails.append(self._to_mail(account, payload))
        return mails

    def _to_mail(self, account: AccountState, payload: dict[str, Any]) -> Mail:
        try:
            received = datetime.fromtimestamp(
                int(payload["internalDate"]) / 1000, tz=UTC
            ).astimezone()
            message_id = str(payload["id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise self._error(account, f"Malformed message payload: {exc!r}") from exc

        message_part = payload.get("payload") or {}
        if not isinstance(message_part, dict):
            raise self._error(account, f"Malformed payload in message {message_id}")
        header_list = message_part.get("headers") or []
        if not isinstance(header_list, list):
            raise self._error(
                account, f"Malformed headers in message {message_id}"
            )

        headers: dict[str, str] = {}
        for header in header_list:
            if isinstance(header, dict) and "name" in header:
                headers[str(header["name"]).lower()] = str(header.get("value", ""))

        return Mail(
            id=message_id,
            sender=headers.get("from", ""),
            subject=headers.get("subject", ""),
            timestamp=received,
        )


# ---------------------------------------------------------------------------
# Google Calendar
# ---------------------------------------------------------------------------


class GoogleCalendarSource(_GoogleAPISource):
    """Fetches upcoming events and calendar lists through the Calendar API.

    Args:
        base_url: Calendar API root, overridable for tests and proxies.
        http_client: Optional shared client; one is created on entry if not
            given and closed on exit.
        timeout: Per-request timeout in seconds for a created client.
    """

    source_name = "calendar"

    def __init__(
        self,
        base_url: str = GOOGLE_CALENDAR_API_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(base_url, http_client=http_client, timeout=timeout)

    async def fetch_events(
        self,
        account: AccountState,
        calendar_id: str,
        window: FetchWindow,
    ) -> AgendaSnapshot:
        """Fetch single (expanded) events in ``window`` ordered by start time.

        All-day and cancelled events are skipped: they have no start instant
        to remind at.

        Raises:
            FetchError: If the request fails or an event is malformed.
        """
        pages = await self._get_pages(
            account,
            f"/calendars/{quote(calendar_id, safe='')}/events",
            {
                "timeMin": _google_rfc3339(window.start),
                "timeMax": _google_rfc3339(window.end),
                "singleEvents": "true",
                "orderBy": "startTime",
            },
        )

        default_reminders = _minutes(pages[0].get("defaultReminders"))
        events: list[FetchedEvent] = []
        for page in pages:
            items = page.get("items") or []
            if not isinstance(items, list):
                raise self._error(account, f"Malformed event list in {calendar_id}")
            for item in items:
                event = self._to_event(account, calendar_id, item)
                if event is not None:
                    events.append(event)

        return AgendaSnapshot(
            calendar_id=calendar_id,
            default_reminders=default_reminders,
            events=events,
        )

    async def list_calendars(self, account: AccountState) -> list[str]:
        """Return the ids of every calendar in the account's calendar list.

        Raises:
            FetchError: If the request fails.
        """
        pages = await self._get_pages(account, "/users/me/calendarList")
        return [
            str(item["id"])
            for page in pages
            for item in page.get("items") or []
            if isinstance(item, dict) and item.get("id")
        ]

    def _to_event(
        self, account: AccountState, calendar_id: str, item: Any
    ) -> FetchedEvent | None:
        if not isinstance(item, dict) or item.get("status") == "cancelled":
            return None
        start_part = item.get("start") or {}
        end_part = item.get("end") or {}
        reminders = item.get("reminders") or {}
        if not all(
            isinstance(part, dict) for part in (start_part, end_part, reminders)
        ):
            raise self._error(
                account,
                f"Malformed event {item.get('id')!r} in calendar {calendar_id}",
            )

        start = start_part.get("dateTime")
        if not start:
            return None
        end = None
        if not item.get("endTimeUnspecified"):
            end = end_part.get("dateTime")

        try:
            return FetchedEvent(
                id=item.get("id"),
                title=item.get("summary") or "",
                start=start,
                end=end,
                reminders=ReminderSettings(
                    use_default=bool(reminders.get("useDefault", True)),
                    overrides=_minutes(reminders.get("overrides")),
                ),
            )
        except ValidationError as exc:
            raise self._error(
                account, f"Malformed event in calendar {calendar_id}: {exc}"
            ) from exc
