"""Core of Pager: per-account caches, pollers and the tick loop.

Modules:
    mail_cache: Mail dedup cache
    agenda: Agenda cache and reminder markers
    poller: Poll interval tracking
    account: Per-account runtime state
    reconciler: Merges fetched state into an account's caches
    scheduler: The one-second tick loop
"""

from src.pager.core.mail_cache import MailCache
from src.pager.core.agenda import (
    AgendaCache,
    anchor_to_day,
    merge_markers,
    select_markers,
)
from src.pager.core.poller import MIN_POLL_INTERVAL, Poller, clamp_interval
from src.pager.core.account import AccountState
from src.pager.core.reconciler import AccountUpdate, Reconciler
from src.pager.core.scheduler import TICK_INTERVAL, Scheduler, TickResult, start

__all__ = [
    # Caches
    "MailCache",
    "AgendaCache",
    "select_markers",
    "merge_markers",
    "anchor_to_day",
    # Polling
    "Poller",
    "MIN_POLL_INTERVAL",
    "clamp_interval",
    "AccountState",
    # Tick loop
    "AccountUpdate",
    "Reconciler",
    "TickResult",
    "Scheduler",
    "TICK_INTERVAL",
    "start",
]
