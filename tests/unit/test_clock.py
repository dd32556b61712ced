"""Test WallClock and SimClock."""

from datetime import datetime, timedelta, timezone

import pytest

from trading_council.core.clock import SimClock, WallClock


class TestWallClock:
    def test_now_returns_utc(self):
        now = WallClock().now()
        assert now.tzinfo == timezone.utc

    def test_now_is_recent(self):
        diff = abs((datetime.now(timezone.utc) - WallClock().now()).total_seconds())
        assert diff < 1.0


class TestSimClock:
    def test_default_start(self):
        assert SimClock().now() == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_custom_start(self):
        start = datetime(2024, 6, 1, 12, tzinfo=timezone.utc)
        assert SimClock(start=start).now() == start

    def test_time_stands_still(self):
        clock = SimClock()
        assert clock.now() == clock.now()

    def test_advance(self):
        clock = SimClock()
        before = clock.now()
        clock.advance(hours=1, minutes=30)
        assert clock.now() - before == timedelta(hours=1, minutes=30)

    def test_set_time_forward(self):
        clock = SimClock()
        target = datetime(2024, 2, 1, tzinfo=timezone.utc)
        clock.set_time(target)
        assert clock.now() == target

    def test_cannot_go_backwards(self):
        clock = SimClock(start=datetime(2024, 6, 1, tzinfo=timezone.utc))
        with pytest.raises(ValueError, match="backwards"):
            clock.set_time(datetime(2024, 5, 1, tzinfo=timezone.utc))
