"""Source adapter interfaces.

The core never talks to a remote service directly; it goes through these
two protocols. Implementations must raise ``FetchError`` for every failure
(transport, auth, rate limit, malformed payload) and must not return partial
results: a fetch either returns everything it was asked for or raises.

Timeouts are the adapter's responsibility; the core imposes none.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from src.pager.core.account import AccountState
    from src.pager.models import AgendaSnapshot, FetchWindow, Mail


class MailSource(Protocol):
    """Fetches recent unread mail for an account."""

    async def fetch_unread(self, account: AccountState) -> list[Mail]:
        """Return the mail the account considers unread and recent.

        Raises:
            FetchError: If the mailbox could not be read.
        """
        ...


class CalendarSource(Protocol):
    """Fetches calendar events and enumerates calendars for an account."""

    async def fetch_events(
        self,
        account: AccountState,
        calendar_id: str,
        window: FetchWindow,
    ) -> AgendaSnapshot:
        """Return one calendar's events in ``window``, ordered by start time.

        Raises:
            FetchError: If the calendar could not be read.
        """
        ...

    async def list_calendars(self, account: AccountState) -> list[str]:
        """Return the ids of every calendar visible to the account.

        Raises:
            FetchError: If the calendar list could not be read.
        """
        ...
