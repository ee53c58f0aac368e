"""Tests for the injectable clocks."""

from datetime import date, datetime, timezone

from records_kernel.domain.clock import DeterministicClock, SystemClock


def test_system_clock_is_aware_utc():
    assert SystemClock().now().utcoffset().total_seconds() == 0


def test_deterministic_clock_frozen_until_moved():
    clock = DeterministicClock()
    first = clock.now()

    assert clock.now() == first == datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)

    clock.advance(90)
    assert (clock.now() - first).total_seconds() == 90


def test_today_uses_office_timezone():
    # 20:00 UTC on the 15th is 04:00 on the 16th in Manila
    clock = DeterministicClock(datetime(2024, 1, 15, 20, 0, tzinfo=timezone.utc))

    assert clock.today("Asia/Manila") == date(2024, 1, 16)
    assert clock.today("UTC") == date(2024, 1, 15)


def test_set_time():
    clock = DeterministicClock()
    clock.advance(30)

    clock.set_time(datetime(2024, 2, 1, tzinfo=timezone.utc))

    assert clock.now() == datetime(2024, 2, 1, tzinfo=timezone.utc)
