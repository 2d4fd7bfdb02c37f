"""Pager: desktop notifications for new mail and calendar reminders.

Pager polls one or more Google accounts for unread mail and upcoming
calendar events, remembers what it has already surfaced, and raises at most
one mail notification and one event notification per second.

Subpackages:
    core: Caches, pollers, reconciliation and the tick loop
    notify: Batching policy and notification sinks
    sources: Source adapter protocols and the Google adapters

Modules:
    models: Data shared across the subpackages
    errors: Exception hierarchy
    config: Configuration loading and token persistence
    service: Wiring from configuration to a running scheduler
    cli: The ``pager`` command

Example:
    >>> from src.pager import PagerService, load_config
    >>> service = PagerService(load_config(["--config", "pager.json"]))
    >>> asyncio.run(service.run())
"""

from src.pager.errors import (
    ConfigurationError,
    FetchError,
    NotifyError,
    PagerError,
)
from src.pager.models import (
    AgendaSnapshot,
    Event,
    FetchedEvent,
    FetchWindow,
    Mail,
    Notification,
    OAuthToken,
    ReminderSettings,
    Sound,
)
from src.pager.core import AccountState, Scheduler
from src.pager.config import AccountConfig, PagerConfig, load_config
from src.pager.service import PagerService

__all__ = [
    # Errors
    "PagerError",
    "FetchError",
    "ConfigurationError",
    "NotifyError",
    # Models
    "Mail",
    "Event",
    "OAuthToken",
    "ReminderSettings",
    "FetchedEvent",
    "AgendaSnapshot",
    "FetchWindow",
    "Sound",
    "Notification",
    # Runtime
    "AccountState",
    "Scheduler",
    "PagerService",
    # Configuration
    "AccountConfig",
    "PagerConfig",
    "load_config",
]
