"""
Tests for prayer window arithmetic:
- window bounds per prayer
- TooEarly / on_time / late / WindowClosed boundaries
- window status for display
- timings ordering validation
"""

from datetime import datetime, timedelta, timezone

import pytest

from hasanat.exceptions import InvalidTimings, TooEarly, WindowClosed
from hasanat.services.time_window import (
    PRAYER_END_MAP,
    TimingsSnapshot,
    prayer_label,
    prayer_window,
    validate_on_time_window,
    validate_timings_order,
)
from factories import DAY, timings_for, utc


@pytest.fixture
def timings() -> TimingsSnapshot:
    return TimingsSnapshot(user_id=None, date=DAY, **timings_for())


class TestPrayerWindow:
    """Window start, end and deadline."""

    @pytest.mark.parametrize("prayer,end_field", list(PRAYER_END_MAP.items()))
    def test_window_ends_at_next_boundary(self, timings, prayer, end_field):
        window = prayer_window(timings, prayer)
        assert window.start == getattr(timings, prayer)
        assert window.end == getattr(timings, end_field)

    def test_deadline_uses_window_minutes(self, timings):
        window = prayer_window(timings, "fajr", 45)
        assert window.on_time_deadline == utc(6, 15)

    def test_unknown_prayer_rejected(self, timings):
        with pytest.raises(ValueError):
            prayer_window(timings, "witr")


class TestClassify:
    """Marking outcome at each side of every boundary."""

    def test_before_start_is_too_early(self, timings):
        window = prayer_window(timings, "fajr")
        with pytest.raises(TooEarly):
            window.classify(utc(5, 30) - timedelta(seconds=1))

    def test_at_start_is_on_time(self, timings):
        assert prayer_window(timings, "fajr").classify(utc(5, 30)) == "on_time"

    def test_at_deadline_is_on_time(self, timings):
        assert prayer_window(timings, "fajr").classify(utc(6, 0)) == "on_time"

    def test_just_after_deadline_is_late(self, timings):
        window = prayer_window(timings, "fajr")
        assert window.classify(utc(6, 0) + timedelta(seconds=1)) == "late"

    def test_at_end_is_late(self, timings):
        assert prayer_window(timings, "fajr").classify(utc(6, 50)) == "late"

    def test_after_end_is_window_closed(self, timings):
        window = prayer_window(timings, "fajr")
        with pytest.raises(WindowClosed):
            window.classify(utc(6, 50) + timedelta(seconds=1))

    def test_short_window_makes_marks_late_sooner(self, timings):
        window = prayer_window(timings, "dhuhr", 5)
        assert window.classify(utc(12, 20)) == "on_time"
        assert window.classify(utc(12, 21)) == "late"


class TestWindowStatus:
    """Exactly three display states."""

    def test_upcoming_active_ended(self, timings):
        window = prayer_window(timings, "asr")
        assert window.status(utc(15, 29)) == "upcoming"
        assert window.status(utc(15, 30)) == "active"
        assert window.status(utc(18, 5)) == "active"
        assert window.status(utc(18, 6)) == "ended"

    def test_late_is_never_a_window_status(self, timings):
        window = prayer_window(timings, "asr")
        statuses = {
            window.status(utc(15, 0) + timedelta(minutes=m)) for m in range(0, 240, 5)
        }
        assert statuses == {"upcoming", "active", "ended"}


class TestValidation:
    def test_increasing_timings_pass(self):
        validate_timings_order(timings_for())

    def test_out_of_order_timings_rejected(self):
        with pytest.raises(InvalidTimings):
            validate_timings_order(timings_for(asr=(12, 0)))

    def test_equal_timings_rejected(self):
        with pytest.raises(InvalidTimings):
            validate_timings_order(timings_for(isha=(18, 5)))

    def test_missing_timing_rejected(self):
        instants = timings_for()
        del instants["midnight"]
        with pytest.raises(InvalidTimings):
            validate_timings_order(instants)

    def test_naive_timing_rejected(self):
        instants = timings_for()
        instants["fajr"] = datetime(2026, 3, 1, 5, 30)
        with pytest.raises(InvalidTimings):
            validate_timings_order(instants)

    def test_offsets_are_compared_as_instants(self):
        instants = timings_for()
        # 07:30+02:00 is 05:30 UTC
        instants["fajr"] = datetime(2026, 3, 1, 7, 30, tzinfo=timezone(timedelta(hours=2)))
        validate_timings_order(instants)

    @pytest.mark.parametrize("minutes", [5, 30, 120])
    def test_on_time_window_bounds_accepted(self, minutes):
        assert validate_on_time_window(minutes) == minutes

    @pytest.mark.parametrize("minutes", [0, 4, 121])
    def test_on_time_window_out_of_range(self, minutes):
        with pytest.raises(ValueError):
            validate_on_time_window(minutes)


def test_prayer_label():
    assert prayer_label("maghrib") == "Maghrib"
