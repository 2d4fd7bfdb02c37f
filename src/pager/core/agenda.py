"""Agenda cache and reminder-marker bookkeeping.

An agenda maps event ids to events for one calendar. Each event carries a
set of reminder markers (lead times before its start) and whether each one
has fired. This module owns the two operations that keep the "no reminder
fires twice" guarantee:

- ``AgendaCache.refresh``: replace one calendar's agenda with a fresh fetch,
  carrying fired markers forward for events that are still there.
- ``AgendaCache.due_markers``: fire every unfired marker whose trigger time
  falls in ``(since, now]`` and return the owning events.

Functions:
    select_markers: Build the marker offsets an event asks for.
    merge_markers: Combine selected offsets with a previous marker map.
    anchor_to_day: Move a date-time onto another calendar date.

Classes:
    AgendaCache: All agendas of one account, keyed by calendar id.

Marker rules:
    - An event using calendar defaults selects ``{0}`` plus the calendar's
      default reminder lead times.
    - Override lead times are always selected and start unfired.
    - An offset that was fired before and is still selected stays fired,
      whether it comes from defaults or from overrides.
    - An offset that is no longer selected is dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from datetime import datetime, timedelta

from src.pager.models import AT_START, AgendaSnapshot, Event, FetchedEvent

logger = logging.getLogger(__name__)


# =============================================================================
# Marker Helpers
# =============================================================================


def select_markers(
    event: FetchedEvent, default_reminders: Iterable[timedelta]
) -> set[timedelta]:
    """Return the reminder offsets an event asks for.

    Args:
        event: The fetched event with its reminder configuration.
        default_reminders: The calendar's default reminder lead times.

    Returns:
        The calendar defaults (plus the at-start marker) when the event uses
        them, together with the event's own overrides.
    """
    selected: set[timedelta] = set()
    if event.reminders.use_default:
        selected.add(AT_START)
        selected.update(default_reminders)
    selected.update(event.reminders.overrides)
    return selected


def merge_markers(
    previous: Mapping[timedelta, bool] | None,
    selected: Iterable[timedelta],
) -> dict[timedelta, bool]:
    """Merge freshly selected offsets with the markers an event had before.

    Every selected offset starts unfired. Offsets that had already fired in
    ``previous`` are copied forward as fired. Offsets only present in
    ``previous`` are dropped.

    Args:
        previous: Marker map from the cached event, or ``None`` for an event
            seen for the first time.
        selected: Offsets selected by the latest fetch.

    Returns:
        The merged marker map.

    Example:
        >>> merge_markers({timedelta(minutes=10): True},
        ...               [timedelta(minutes=10), timedelta(minutes=5)])
        {datetime.timedelta(seconds=600): True, datetime.timedelta(seconds=300): False}
    """
    merged = {offset: False for offset in sorted(selected, reverse=True)}
    if previous:
        for offset, fired in previous.items():
            if fired and offset in merged:
                merged[offset] = True
    return merged


def anchor_to_day(value: datetime, now: datetime) -> datetime:
    """Move ``value`` onto ``now``'s calendar date, keeping its wall-clock time.

    The date is taken from ``now`` expressed in ``value``'s own zone, so the
    result keeps the UTC offset the source reported.
    """
    today = now.astimezone(value.tzinfo).date()
    return value.replace(year=today.year, month=today.month, day=today.day)


# =============================================================================
# Agenda Cache
# =============================================================================


class AgendaCache:
    """All agendas of one account, keyed by calendar id.

    Agendas are created on their first refresh. Iteration order is the order
    in which calendars were first refreshed, which matches the account's
    configured calendar order.

    Attributes:
        calendar_ids: Ids of the calendars that have an agenda.
    """

    def __init__(self) -> None:
        self._agendas: dict[str, dict[str, Event]] = {}

    @property
    def calendar_ids(self) -> list[str]:
        return list(self._agendas)

    def agenda(self, calendar_id: str) -> dict[str, Event]:
        """Return the agenda of ``calendar_id`` (empty if never refreshed)."""
        return self._agendas.get(calendar_id, {})

    def events(self) -> Iterator[Event]:
        """Iterate over every event of every agenda."""
        for agenda in self._agendas.values():
            yield from agenda.values()

    def refresh(
        self, calendar_id: str, snapshot: AgendaSnapshot, now: datetime
    ) -> None:
        """Replace a calendar's agenda with freshly fetched events.

        Events absent from ``snapshot`` are dropped. Events still present keep
        the fired state of every marker offset they still select. Start and
        end times are anchored to ``now``'s calendar date.

        Args:
            calendar_id: The calendar being refreshed.
            snapshot: Events and default reminders from the latest fetch.
            now: Current time; supplies the calendar date to anchor to.
        """
        previous = self._agendas.get(calendar_id, {})
        agenda: dict[str, Event] = {}
        for fetched in snapshot.events:
            old = previous.get(fetched.id)
            markers = merge_markers(
                old.markers if old is not None else None,
                select_markers(fetched, snapshot.default_reminders),
            )
            agenda[fetched.id] = Event(
                id=fetched.id,
                title=fetched.title,
                start=anchor_to_day(fetched.start, now),
                end=anchor_to_day(fetched.end, now) if fetched.end is not None else None,
                markers=markers,
            )

        dropped = len(previous.keys() - agenda.keys())
        self._agendas[calendar_id] = agenda
        logger.debug(
            "Refreshed calendar %s: %d events (%d dropped)",
            calendar_id,
            len(agenda),
            dropped,
        )

    def due_markers(self, now: datetime, since: datetime) -> list[Event]:
        """Fire every marker whose trigger time is in ``(since, now]``.

        Each due marker is set fired immediately. An event is returned once
        even when several of its markers fire in the same window.

        Args:
            now: End of the window, inclusive.
            since: Start of the window, exclusive.

        Returns:
            Events with at least one marker that fired, in agenda order.
        """
        due: list[Event] = []
        for event in self.events():
            fired_any = False
            for offset, fired in event.markers.items():
                if fired:
                    continue
                if since < event.trigger_time(offset) <= now:
                    event.markers[offset] = True
                    fired_any = True
            if fired_any:
                due.append(event)
        return due
