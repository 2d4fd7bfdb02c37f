"""Notification batching policy.

At most one notification per kind (mail, event) is emitted per tick, never
one per item. This keeps the display layer calm when many items become due
at once, for example after the machine wakes from a long suspend.

Formatting:
    - One mail: the sender is the title, the subject is the body.
    - Several mails: ``"📫 N new emails"`` with one subject per body line.
    - One event: the event title is the title, its start time the body.
    - Several events: ``"📅 N events today"`` with one ``time 🕛 title`` line
      per event.
    - Nothing due: no notification at all.

Classes:
    NotificationDispatcher: Formats a tick's batches and hands them to a sink.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from src.pager.errors import NotifyError
from src.pager.models import Event, Mail, Notification, Sound
from src.pager.notify.sinks import NotificationSink

logger = logging.getLogger(__name__)

MAIL_ACTION = "https://mail.google.com/"
CALENDAR_ACTION = "https://calendar.google.com/"


def format_clock_time(value: datetime) -> str:
    """Render ``value`` in local time as e.g. ``"3:04 PM"``."""
    return value.astimezone().strftime("%I:%M %p").lstrip("0")


def _event_line(event: Event) -> str:
    return f"{format_clock_time(event.start)} 🕛 {event.title}"


def format_mail_batch(mails: Sequence[Mail]) -> Notification | None:
    """Build the notification for one tick's new mail.

    Returns:
        ``None`` when ``mails`` is empty.
    """
    if not mails:
        return None
    if len(mails) == 1:
        mail = mails[0]
        return Notification(
            title=f"📫 {mail.sender}",
            body=mail.subject,
            action=MAIL_ACTION,
            sound=Sound.MAIL,
        )
    return Notification(
        title=f"📫 {len(mails)} new emails",
        body="\n".join(f"📧 {mail.subject}" for mail in mails),
        action=MAIL_ACTION,
        sound=Sound.MAIL,
    )


def format_event_batch(events: Sequence[Event]) -> Notification | None:
    """Build the notification for one tick's due events.

    Returns:
        ``None`` when ``events`` is empty.
    """
    if not events:
        return None
    if len(events) == 1:
        event = events[0]
        return Notification(
            title=f"📅 {event.title}",
            body=_event_line(event),
            action=CALENDAR_ACTION,
            sound=Sound.REMINDER,
        )
    return Notification(
        title=f"📅 {len(events)} events today",
        body="\n".join(_event_line(event) for event in events),
        action=CALENDAR_ACTION,
        sound=Sound.REMINDER,
    )


class NotificationDispatcher:
    """Sends each tick's batches to a notification sink.

    Delivery is fire-and-forget: a failing sink is logged and the tick loop
    carries on. Nothing is retried and cache state is never touched here.

    Attributes:
        sent_count: Number of notifications the sink accepted.
        failed_count: Number of notifications the sink rejected.
    """

    def __init__(self, sink: NotificationSink) -> None:
        self._sink = sink
        self.sent_count = 0
        self.failed_count = 0

    async def dispatch(
        self, mails: Sequence[Mail], events: Sequence[Event]
    ) -> list[Notification]:
        """Emit at most one mail and one event notification.

        Args:
            mails: New mail surfaced this tick.
            events: Events with a reminder due this tick.

        Returns:
            The notifications that were handed to the sink, delivered or not.
        """
        notifications = [
            n
            for n in (format_mail_batch(mails), format_event_batch(events))
            if n is not None
        ]
        for notification in notifications:
            await self._send(notification)
        return notifications

    async def _send(self, notification: Notification) -> None:
        try:
            await self._sink.notify(notification)
        except NotifyError as exc:
            self.failed_count += 1
            logger.warning("Notify error for %r: %s", notification.title, exc)
            return
        except Exception:
            self.failed_count += 1
            logger.exception("Notification sink crashed on %r", notification.title)
            return
        self.sent_count += 1
        logger.info("Notified: %s", notification.title)
