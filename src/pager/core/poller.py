"""Interval tracker deciding when a source is due for a refresh."""

from __future__ import annotations

from datetime import datetime, timedelta

#: Smallest accepted poll interval.
MIN_POLL_INTERVAL = timedelta(seconds=1)


def clamp_interval(interval: timedelta) -> timedelta:
    """Raise ``interval`` to ``MIN_POLL_INTERVAL`` if it is shorter."""
    return max(interval, MIN_POLL_INTERVAL)


class Poller:
    """Tracks when one source of one account was last refreshed.

    A refresh is due when no refresh was attempted yet, or when at least
    ``interval`` has elapsed since the last attempt completed. Failed
    attempts count as attempts, so a failing remote is retried once per
    interval rather than on every tick.

    Attributes:
        interval: Time between refreshes, never shorter than one second.
        last_refresh_time: When the last refresh attempt completed, or
            ``None`` before the first attempt.
    """

    def __init__(self, interval: timedelta) -> None:
        self.interval = clamp_interval(interval)
        self.last_refresh_time: datetime | None = None

    def is_due(self, now: datetime) -> bool:
        """Return True if a refresh should be attempted at ``now``."""
        if self.last_refresh_time is None:
            return True
        return now - self.last_refresh_time >= self.interval

    def mark_refreshed(self, completed_at: datetime) -> None:
        """Record that a refresh attempt completed at ``completed_at``."""
        self.last_refresh_time = completed_at

    def __repr__(self) -> str:
        return (
            f"Poller(interval={self.interval}, "
            f"last_refresh_time={self.last_refresh_time})"
        )
