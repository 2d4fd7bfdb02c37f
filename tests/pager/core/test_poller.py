"""Tests for the Poller module."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from src.pager.core.poller import MIN_POLL_INTERVAL, Poller, clamp_interval

T0 = datetime(2026, 1, 29, 9, 0, tzinfo=timezone.utc)


class TestClampInterval:
    """Tests for clamp_interval."""

    def test_short_interval_is_raised_to_minimum(self) -> None:
        """Test that sub-second intervals become one second."""
        assert clamp_interval(timedelta(milliseconds=200)) == MIN_POLL_INTERVAL
        assert clamp_interval(timedelta(0)) == MIN_POLL_INTERVAL

    def test_longer_interval_is_kept(self) -> None:
        """Test that intervals above the minimum are unchanged."""
        assert clamp_interval(timedelta(minutes=5)) == timedelta(minutes=5)


class TestPoller:
    """Tests for the Poller class."""

    def test_due_before_first_refresh(self) -> None:
        """Test that a fresh poller is due immediately."""
        poller = Poller(timedelta(seconds=60))

        assert poller.last_refresh_time is None
        assert poller.is_due(T0) is True

    def test_not_due_within_interval(self) -> None:
        """Test that a refresh is not due before the interval elapses."""
        poller = Poller(timedelta(seconds=60))
        poller.mark_refreshed(T0)

        assert poller.is_due(T0 + timedelta(seconds=59)) is False

    def test_due_once_interval_elapsed(self) -> None:
        """Test that a refresh is due exactly when the interval elapsed."""
        poller = Poller(timedelta(seconds=60))
        poller.mark_refreshed(T0)

        assert poller.is_due(T0 + timedelta(seconds=60)) is True
        assert poller.is_due(T0 + timedelta(seconds=61)) is True

    def test_constructor_clamps_interval(self) -> None:
        """Test that the poller never polls more than once per second."""
        poller = Poller(timedelta(0))
        poller.mark_refreshed(T0)

        assert poller.interval == MIN_POLL_INTERVAL
        assert poller.is_due(T0 + timedelta(milliseconds=500)) is False
