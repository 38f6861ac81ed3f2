"""Tests for the injectable clocks."""

from datetime import datetime, timedelta, timezone

from vacation_kernel.domain.clock import DeterministicClock, SystemClock


class TestDeterministicClock:

    def test_now_is_stable_until_advanced(self):
        clock = DeterministicClock(datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc))
        assert clock.now() == clock.now()

    def test_advance_and_tick(self):
        clock = DeterministicClock(datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc))
        clock.advance(30)
        assert clock.now() == datetime(2024, 5, 1, 8, 0, 30, tzinfo=timezone.utc)
        assert clock.tick() == datetime(2024, 5, 1, 8, 0, 31, tzinfo=timezone.utc)

    def test_advance_days_moves_today(self):
        clock = DeterministicClock(datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc))
        clock.advance_days(2)
        assert clock.today().isoformat() == "2024-05-03"

    def test_set_time_resets_advance(self):
        clock = DeterministicClock()
        clock.advance(100)
        target = datetime(2030, 1, 1, tzinfo=timezone.utc)
        clock.set_time(target)
        assert clock.now() == target


class TestSystemClock:

    def test_now_is_aware(self):
        assert SystemClock().now().tzinfo is not None

    def test_timezone_is_applied(self):
        now = SystemClock(timezone(timedelta(hours=2))).now()
        assert now.utcoffset() == timedelta(hours=2)
        assert SystemClock().now_utc().utcoffset().total_seconds() == 0
