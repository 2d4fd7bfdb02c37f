"""Tick loop driving polling, reconciliation and notification.

The scheduler wakes once per second. On every tick it reconciles every
account (polling whatever is due and firing due reminder markers), gathers
the results into one mail batch and one event batch, and hands both to the
notification dispatcher.

Each tick evaluates reminder markers over the window ``(previous tick,
this tick]``. Consecutive windows share a boundary, so no marker is
evaluated twice and none is skipped. After a pause (a suspended laptop, a
slow fetch) the next window simply covers the whole gap.

Classes:
    TickResult: What a single tick surfaced across all accounts.
    Scheduler: The tick loop.

Functions:
    start: Build a scheduler for a set of accounts and run it until stopped.

Example:
    >>> stop = asyncio.Event()
    >>> scheduler = Scheduler(accounts, reconciler, dispatcher)
    >>> task = asyncio.create_task(scheduler.run(stop))
    >>> ...
    >>> stop.set()
    >>> await task

Concurrency:
    Accounts are reconciled concurrently, one coroutine per account. Each
    coroutine is the only writer of its own account's caches, and results
    are collected in account order, so batches are deterministic. Within an
    account the order is always refresh first, markers second.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from src.pager.core.account import AccountState
from src.pager.core.reconciler import Reconciler
from src.pager.models import Event, Mail, local_now
from src.pager.notify.batching import NotificationDispatcher
from src.pager.notify.sinks import NotificationSink
from src.pager.sources.base import CalendarSource, MailSource

logger = logging.getLogger(__name__)

#: Fixed period of the tick loop.
TICK_INTERVAL = timedelta(seconds=1)


# =============================================================================
# Tick Result
# =============================================================================


@dataclass
class TickResult:
    """Items surfaced by one tick, across all accounts.

    Attributes:
        now: Time of the tick.
        mails: New mail, in account order then fetch order.
        events: Events with a reminder due, in account order.
    """

    now: datetime
    mails: list[Mail] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)

    def is_empty(self) -> bool:
        """Return True if the tick surfaced nothing."""
        return not self.mails and not self.events

    def __repr__(self) -> str:
        return f"TickResult(mails={len(self.mails)}, events={len(self.events)})"


# =============================================================================
# Scheduler
# =============================================================================


class Scheduler:
    """Single tick loop shared by all accounts.

    Args:
        accounts: Accounts to poll, in notification order.
        reconciler: Performs the per-account refresh and marker evaluation.
        dispatcher: Turns each tick's batches into notifications.
        clock: Returns the current time; defaults to local wall-clock time.
        tick_interval: Period of the loop.

    Attributes:
        last_tick_time: Time of the most recent completed tick, or ``None``.
        tick_count: Number of completed ticks.
    """

    def __init__(
        self,
        accounts: Sequence[AccountState],
        reconciler: Reconciler,
        dispatcher: NotificationDispatcher,
        clock: Callable[[], datetime] | None = None,
        tick_interval: timedelta = TICK_INTERVAL,
    ) -> None:
        self._accounts = list(accounts)
        self._reconciler = reconciler
        self._dispatcher = dispatcher
        self._clock = clock or local_now
        self._tick_interval = tick_interval
        self._last_tick_time: datetime | None = None
        self._tick_count = 0

    @property
    def accounts(self) -> list[AccountState]:
        return list(self._accounts)

    @property
    def last_tick_time(self) -> datetime | None:
        return self._last_tick_time

    @property
    def tick_count(self) -> int:
        return self._tick_count

    async def tick(self, now: datetime | None = None) -> TickResult:
        """Run one tick.

        Reconciles every account, dispatches at most one mail notification
        and one event notification, and records ``now`` as the lower bound
        of the next tick's marker window. An account whose reconciliation
        raises is logged and left out of this tick's batches; the other
        accounts' items are still dispatched.

        Args:
            now: Time of the tick; read from the clock when omitted.

        Returns:
            What the tick surfaced.
        """
        if now is None:
            now = self._clock()
        since = self._last_tick_time
        if since is None:
            since = now - self._tick_interval

        updates = await asyncio.gather(
            *(
                self._reconciler.reconcile(account, now, since)
                for account in self._accounts
            ),
            return_exceptions=True,
        )

        result = TickResult(now=now)
        for account, update in zip(self._accounts, updates):
            if isinstance(update, Exception):
                logger.error(
                    "[%s] Reconcile failed: %s", account.name, update, exc_info=update
                )
                continue
            if isinstance(update, BaseException):
                raise update
            result.mails.extend(update.mails)
            result.events.extend(update.events)

        if not result.is_empty():
            logger.debug("Tick at %s surfaced %r", now.isoformat(), result)
        await self._dispatcher.dispatch(result.mails, result.events)

        self._last_tick_time = now
        self._tick_count += 1
        return result

    async def run(self, stop: asyncio.Event) -> None:
        """Tick once per period until ``stop`` is set.

        The first tick runs immediately. Ticks are aligned to a fixed grid on
        the event loop's monotonic clock; a tick that overruns its slot is
        followed at once by the next one. ``stop`` is only observed between
        ticks, so a tick in progress always completes. A tick that raises is
        logged and the loop carries on with the next one.

        Args:
            stop: Set it to end the loop.
        """
        loop = asyncio.get_running_loop()
        period = self._tick_interval.total_seconds()
        deadline = loop.time()
        logger.info("Scheduler started with %d accounts", len(self._accounts))

        while not stop.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception("Tick failed")

            deadline += period
            delay = deadline - loop.time()
            if delay <= 0:
                logger.debug("Tick overran its slot by %.3fs", -delay)
                deadline = loop.time()
                continue
            try:
                await asyncio.wait_for(stop.wait(), timeout=delay)
            except TimeoutError:
                pass

        logger.info("Scheduler stopped after %d ticks", self._tick_count)


async def start(
    accounts: Sequence[AccountState],
    stop: asyncio.Event,
    *,
    mail_source: MailSource,
    calendar_source: CalendarSource,
    sink: NotificationSink,
    clock: Callable[[], datetime] | None = None,
) -> Scheduler:
    """Run the tick loop over ``accounts`` until ``stop`` is set.

    Args:
        accounts: Accounts to poll.
        stop: Cooperative stop signal, observed between ticks.
        mail_source: Adapter for unread mail.
        calendar_source: Adapter for calendar events.
        sink: Where notifications are displayed.
        clock: Optional clock override.

    Returns:
        The scheduler, after it stopped.
    """
    scheduler = Scheduler(
        accounts,
        Reconciler(mail_source, calendar_source, clock=clock),
        NotificationDispatcher(sink),
        clock=clock,
    )
    await scheduler.run(stop)
    return scheduler
