"""Source adapters for remote mail and calendar services.

Modules:
    base: ``MailSource`` and ``CalendarSource`` protocols
    google: Gmail and Google Calendar adapters over httpx
"""

from src.pager.sources.base import CalendarSource, MailSource
from src.pager.sources.google import GmailSource, GoogleCalendarSource

__all__ = [
    "MailSource",
    "CalendarSource",
    "GmailSource",
    "GoogleCalendarSource",
]
