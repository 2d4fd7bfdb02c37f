"""Notification batching and display sinks."""

from src.pager.notify.sinks import (
    CommandNotificationSink,
    LoggingNotificationSink,
    NotificationSink,
)
from src.pager.notify.batching import (
    NotificationDispatcher,
    format_event_batch,
    format_mail_batch,
)

__all__ = [
    "NotificationSink",
    "LoggingNotificationSink",
    "CommandNotificationSink",
    "NotificationDispatcher",
    "format_mail_batch",
    "format_event_batch",
]
