"""Per-account runtime state.

One ``AccountState`` exists per configured profile. It is created when the
service starts, owns that account's caches and pollers, and is dropped when
the service stops. Only the reconciler mutates it, from the scheduler's
single tick loop, so no locking is needed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta

from src.pager.core.agenda import AgendaCache
from src.pager.core.mail_cache import MailCache
from src.pager.core.poller import Poller
from src.pager.models import OAuthToken

DEFAULT_MAIL_POLL_INTERVAL = timedelta(minutes=1)
DEFAULT_CALENDAR_POLL_INTERVAL = timedelta(minutes=5)


@dataclass
class AccountState:
    """Runtime state of one account.

    Attributes:
        name: Profile name, unique across accounts.
        credentials: OAuth token used by the source adapters. Adapters may
            replace it in memory; it is flushed to disk on shutdown.
        calendars: Ids of the calendars to watch, in notification order.
        mail_enabled: Whether the mailbox is polled at all.
        mail_cache: Ids of mail already surfaced.
        agendas: Cached events per calendar.
        mail_poller: Refresh timer for the mailbox.
        calendar_poller: Refresh timer for all of the account's calendars.
    """

    name: str
    credentials: OAuthToken
    calendars: list[str] = field(default_factory=list)
    mail_enabled: bool = True
    mail_poll_interval: timedelta = DEFAULT_MAIL_POLL_INTERVAL
    calendar_poll_interval: timedelta = DEFAULT_CALENDAR_POLL_INTERVAL
    mail_cache: MailCache = field(default_factory=MailCache)
    agendas: AgendaCache = field(default_factory=AgendaCache)
    mail_poller: Poller = field(init=False)
    calendar_poller: Poller = field(init=False)

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("Account name must not be empty")
        self.mail_poller = Poller(self.mail_poll_interval)
        self.calendar_poller = Poller(self.calendar_poll_interval)

    @property
    def calendar_enabled(self) -> bool:
        """Whether the account has any calendar to watch."""
        return bool(self.calendars)

    def __repr__(self) -> str:
        return (
            f"AccountState(name={self.name!r}, calendars={len(self.calendars)}, "
            f"mail_enabled={self.mail_enabled})"
        )
