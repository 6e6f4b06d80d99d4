"""Clock implementations."""

from datetime import date, datetime, timezone

from rental_kernel.domain.clock import DeterministicClock, SystemClock


class TestDeterministicClock:
    def test_default_time(self):
        clock = DeterministicClock()
        assert clock.now() == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert clock.today() == date(2024, 1, 1)

    def test_now_is_stable_until_advanced(self):
        clock = DeterministicClock()
        assert clock.now() == clock.now()
        clock.advance(30)
        assert clock.now() == datetime(2024, 1, 1, 12, 0, 30, tzinfo=timezone.utc)

    def test_advance_days(self):
        clock = DeterministicClock()
        clock.advance_days(31)
        assert clock.today() == date(2024, 2, 1)

    def test_set_date_resets_advance(self):
        clock = DeterministicClock()
        clock.advance(3600)
        clock.set_date(date(2024, 3, 2))
        assert clock.now() == datetime(2024, 3, 2, 12, 0, tzinfo=timezone.utc)


def test_system_clock_is_timezone_aware():
    assert SystemClock().now().tzinfo is not None
