"""Data models for mail, calendar events, and notifications.

This module defines the values that flow through Pager:

- Runtime cache state held by the core (``Mail``, ``Event``)
- Account credentials read by source adapters (``OAuthToken``)
- Validated data handed over by source adapters (``FetchedEvent``,
  ``ReminderSettings``, ``AgendaSnapshot``)
- The fetch window for calendar queries (``FetchWindow``)
- The value handed to notification sinks (``Notification``, ``Sound``)

Design Notes:
    - ``Mail`` and ``Event`` are dataclasses (not Pydantic) because the core
      mutates them in place: ``Mail.seen`` and ``Event.markers`` flip from
      false to true exactly once and never revert.
    - Adapter output uses Pydantic so malformed remote payloads fail at the
      adapter boundary instead of inside the tick loop.
    - All instants are timezone-aware. Naive datetimes coming from an adapter
      are interpreted as local time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel, Field, SecretStr, field_validator


# =============================================================================
# Constants
# =============================================================================

#: How far ahead a calendar refresh looks for upcoming events.
LOOKAHEAD = timedelta(hours=12)

#: Offset of the implicit "at start time" reminder.
AT_START = timedelta(0)


def local_now() -> datetime:
    """Return the current local time as an aware datetime."""
    return datetime.now().astimezone()


def ensure_aware(value: datetime) -> datetime:
    """Return ``value`` as a timezone-aware datetime.

    Naive datetimes are interpreted as local time.
    """
    if value.tzinfo is None:
        return value.astimezone()
    return value


# =============================================================================
# Cache State
# =============================================================================


@dataclass
class Mail:
    """A mail item as tracked by the mail cache.

    Attributes:
        id: Remote message identifier; the identity of the mail.
        sender: Value of the ``From`` header.
        subject: Value of the ``Subject`` header.
        timestamp: When the message was received.
        seen: Whether the mail has been surfaced in a notification. Set once,
            at the tick the mail is first ingested.
    """

    id: str
    sender: str
    subject: str
    timestamp: datetime
    seen: bool = False


@dataclass
class Event:
    """A calendar event held in an agenda, with its reminder markers.

    Attributes:
        id: Remote event identifier, unique within its calendar.
        title: Event summary.
        start: Start time, normalized to the current calendar date.
        end: End time, or ``None`` when the calendar leaves it unspecified.
        markers: Lead time before ``start`` mapped to whether the reminder
            for that lead time has fired.
    """

    id: str
    title: str
    start: datetime
    end: datetime | None = None
    markers: dict[timedelta, bool] = field(default_factory=dict)

    def trigger_time(self, offset: timedelta) -> datetime:
        """Return the instant at which the marker ``offset`` becomes due."""
        return self.start - offset


# =============================================================================
# Credentials
# =============================================================================


class OAuthToken(BaseModel):
    """OAuth token attached to an account.

    Pager only reads the access token and writes the whole token back to the
    configuration file on shutdown. Acquiring and refreshing tokens happens
    outside Pager.

    Attributes:
        access_token: Bearer token sent with every source request.
        refresh_token: Refresh token, kept so it survives a config rewrite.
        token_type: Authorization scheme, normally ``"Bearer"``.
        expiry: When the access token expires, if known.
    """

    access_token: SecretStr
    refresh_token: SecretStr | None = None
    token_type: str = "Bearer"
    expiry: datetime | None = None

    def authorization_header(self) -> str:
        """Return the value of the ``Authorization`` request header."""
        return f"{self.token_type} {self.access_token.get_secret_value()}"

    def to_config(self) -> dict[str, str | None]:
        """Return the token as plain JSON-ready values, secrets revealed."""
        return {
            "access_token": self.access_token.get_secret_value(),
            "refresh_token": (
                self.refresh_token.get_secret_value()
                if self.refresh_token is not None
                else None
            ),
            "token_type": self.token_type,
            "expiry": self.expiry.isoformat() if self.expiry is not None else None,
        }


# =============================================================================
# Adapter Output
# =============================================================================


class ReminderSettings(BaseModel):
    """Reminder configuration attached to a fetched event.

    Attributes:
        use_default: Whether the event uses its calendar's default reminders.
        overrides: Event-specific reminder lead times.
    """

    use_default: bool = True
    overrides: list[timedelta] = Field(default_factory=list)

    @field_validator("overrides")
    @classmethod
    def reject_negative_offsets(cls, v: list[timedelta]) -> list[timedelta]:
        """Reminders fire before the event, never after it."""
        for offset in v:
            if offset < timedelta(0):
                raise ValueError(f"reminder offset must not be negative: {offset}")
        return v


class FetchedEvent(BaseModel):
    """An event as returned by a calendar source, before merging.

    Attributes:
        id: Remote event identifier.
        title: Event summary.
        start: Start date-time as returned by the source.
        end: End date-time, or ``None`` when unspecified.
        reminders: The event's reminder configuration.
    """

    id: str
    title: str = ""
    start: datetime
    end: datetime | None = None
    reminders: ReminderSettings = Field(default_factory=ReminderSettings)

    @field_validator("start", "end")
    @classmethod
    def make_aware(cls, v: datetime | None) -> datetime | None:
        """Interpret naive date-times as local time."""
        if v is None:
            return v
        return ensure_aware(v)


class AgendaSnapshot(BaseModel):
    """One calendar's events for a fetch window.

    Attributes:
        calendar_id: The calendar the events belong to.
        default_reminders: The calendar's default reminder lead times.
        events: Events ordered by start time.
    """

    calendar_id: str
    default_reminders: list[timedelta] = Field(default_factory=list)
    events: list[FetchedEvent] = Field(default_factory=list)


@dataclass(frozen=True)
class FetchWindow:
    """Half-open time range ``[start, end)`` for calendar queries."""

    start: datetime
    end: datetime

    @classmethod
    def ahead(cls, now: datetime, span: timedelta = LOOKAHEAD) -> FetchWindow:
        """Build the window ``[now, now + span)``."""
        return cls(start=now, end=now + span)


# =============================================================================
# Notifications
# =============================================================================


class Sound(StrEnum):
    """Sound played along with a notification."""

    MAIL = "mail"
    REMINDER = "reminder"
    DEFAULT = "default"


@dataclass(frozen=True)
class Notification:
    """A single notification handed to a sink.

    Attributes:
        title: Notification title.
        body: Notification body; may be empty.
        action: URL opened when the user activates the notification.
        sound: Sound to play.
    """

    title: str
    body: str
    action: str
    sound: Sound = Sound.DEFAULT
