"""Merge freshly fetched remote state into an account's caches.

The reconciler is the only writer of ``AccountState`` caches. For one
account and one tick it:

1. Refreshes the mailbox if the mail poller is due, and ingests the result
   into the mail cache.
2. Refreshes every configured calendar if the calendar poller is due.
3. Fires the reminder markers that became due since the previous tick.

Fetch failures are logged and swallowed here: the cache keeps its
last-known-good state and the poller still advances, so a failing remote is
retried once per poll interval instead of on every tick.

Classes:
    AccountUpdate: What one account produced during one tick.
    Reconciler: Runs the three steps above for one account.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from src.pager.core.account import AccountState
from src.pager.errors import FetchError
from src.pager.models import Event, FetchWindow, Mail, local_now
from src.pager.sources.base import CalendarSource, MailSource

logger = logging.getLogger(__name__)


@dataclass
class AccountUpdate:
    """Items one account surfaced during one tick.

    Attributes:
        account: Name of the account.
        mails: Newly ingested mail, in fetch order.
        events: Events with a reminder marker that fired this tick.
    """

    account: str
    mails: list[Mail] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)

    def is_empty(self) -> bool:
        """Return True if nothing is to be notified."""
        return not self.mails and not self.events


class Reconciler:
    """Refreshes an account's caches and computes what is due.

    Args:
        mail_source: Adapter used to fetch unread mail.
        calendar_source: Adapter used to fetch calendar events.
        clock: Returns the current time. Used to timestamp the completion
            of refresh attempts; defaults to local wall-clock time.
    """

    def __init__(
        self,
        mail_source: MailSource,
        calendar_source: CalendarSource,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._mail_source = mail_source
        self._calendar_source = calendar_source
        self._clock = clock or local_now

    async def reconcile(
        self, account: AccountState, now: datetime, since: datetime
    ) -> AccountUpdate:
        """Run one tick's worth of work for ``account``.

        The order is fixed: mail refresh, calendar refresh, then due markers,
        so markers are always evaluated against the freshest agenda.

        Args:
            account: The account to update.
            now: Time of the current tick.
            since: Time of the previous tick; markers triggering at or
                before it were already evaluated.

        Returns:
            The account's new mail and due events for this tick.
        """
        update = AccountUpdate(account=account.name)
        update.mails = await self.poll_mail(account, now)
        await self.poll_calendars(account, now)
        update.events = account.agendas.due_markers(now, since)
        return update

    async def poll_mail(self, account: AccountState, now: datetime) -> list[Mail]:
        """Fetch and ingest mail if the account's mail poller is due.

        Returns:
            Mail not surfaced before; empty when no poll was due or the
            fetch failed.
        """
        if not account.mail_enabled or not account.mail_poller.is_due(now):
            return []

        logger.debug("[%s] Polling mail", account.name)
        try:
            fetched = await self._mail_source.fetch_unread(account)
        except FetchError as exc:
            logger.error("[%s] Mail fetch failed: %s", account.name, exc)
            return []
        finally:
            account.mail_poller.mark_refreshed(self._clock())

        fresh = account.mail_cache.ingest(fetched)
        logger.debug(
            "[%s] Fetched %d unread mails, %d new",
            account.name,
            len(fetched),
            len(fresh),
        )
        return fresh

    async def poll_calendars(self, account: AccountState, now: datetime) -> None:
        """Refresh every calendar of the account if its calendar poller is due.

        Calendars are refreshed independently; one failing calendar keeps its
        previous agenda and does not stop the others from refreshing.
        """
        if not account.calendar_enabled or not account.calendar_poller.is_due(now):
            return

        window = FetchWindow.ahead(now)
        logger.debug(
            "[%s] Polling %d calendars", account.name, len(account.calendars)
        )
        try:
            for calendar_id in account.calendars:
                try:
                    snapshot = await self._calendar_source.fetch_events(
                        account, calendar_id, window
                    )
                except FetchError as exc:
                    logger.error(
                        "[%s] Calendar %s fetch failed: %s",
                        account.name,
                        calendar_id,
                        exc,
                    )
                    continue
                account.agendas.refresh(calendar_id, snapshot, now)
        finally:
            account.calendar_poller.mark_refreshed(self._clock())
