"""
Prayer window arithmetic.

Pure functions over a day's timings and an explicit ``now``; nothing here
reads the wall clock or touches the database.

A prayer's window opens at its own time and closes at the next boundary:

    fajr -> sunrise, dhuhr -> asr, asr -> maghrib,
    maghrib -> isha, isha -> midnight (Islamic midnight)

Marking within ``on_time_window_minutes`` of the start is on time; after
that and up to the end (inclusive) it is late.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Literal

from hasanat.exceptions import InvalidTimings, TooEarly, WindowClosed

PrayerName = Literal["fajr", "dhuhr", "asr", "maghrib", "isha"]
PrayerStatus = Literal["on_time", "late", "missed"]
WindowStatus = Literal["upcoming", "active", "ended"]

PRAYER_NAMES: tuple[PrayerName, ...] = ("fajr", "dhuhr", "asr", "maghrib", "isha")

PRAYER_END_MAP: dict[str, str] = {
    "fajr": "sunrise",
    "dhuhr": "asr",
    "asr": "maghrib",
    "maghrib": "isha",
    "isha": "midnight",
}

# Column order of a day's timings; each instant must be later than the previous one
TIMING_FIELDS = ("fajr", "sunrise", "dhuhr", "asr", "maghrib", "isha", "midnight")

DEFAULT_ON_TIME_WINDOW_MINUTES = 30
MIN_ON_TIME_WINDOW_MINUTES = 5
MAX_ON_TIME_WINDOW_MINUTES = 120


def prayer_label(prayer: str) -> str:
    """Human-readable prayer name, e.g. ``fajr`` -> ``Fajr``."""
    return prayer[:1].upper() + prayer[1:]


def validate_on_time_window(minutes: int) -> int:
    """Return ``minutes`` if it is an allowed on-time window, else raise ValueError."""
    if not MIN_ON_TIME_WINDOW_MINUTES <= minutes <= MAX_ON_TIME_WINDOW_MINUTES:
        raise ValueError(
            f"on_time_window_minutes must be between {MIN_ON_TIME_WINDOW_MINUTES} "
            f"and {MAX_ON_TIME_WINDOW_MINUTES}"
        )
    return minutes


def validate_timings_order(instants: Mapping[str, datetime]) -> None:
    """
    Check a day's instants are present, timezone-aware and strictly increasing.

    Raises:
        InvalidTimings: on a missing field, a naive datetime, or a non-increasing pair
    """
    previous_name: str | None = None
    previous: datetime | None = None
    for name in TIMING_FIELDS:
        value = instants.get(name)
        if value is None:
            raise InvalidTimings(f"Missing timing '{name}'")
        if value.tzinfo is None:
            raise InvalidTimings(f"Timing '{name}' must include a timezone")
        if previous is not None and value <= previous:
            raise InvalidTimings(f"Timing '{name}' must be after '{previous_name}'")
        previous_name, previous = name, value


@dataclass(frozen=True)
class PrayerWindow:
    """Marking window for one prayer on one day."""

    prayer: PrayerName
    start: datetime
    end: datetime
    on_time_deadline: datetime

    def status(self, now: datetime) -> WindowStatus:
        """Position of ``now`` relative to the window."""
        if now < self.start:
            return "upcoming"
        if now <= self.end:
            return "active"
        return "ended"

    def classify(self, now: datetime) -> PrayerStatus:
        """
        Outcome of marking the prayer at ``now``.

        Raises:
            TooEarly: the window has not opened yet
            WindowClosed: the window has already closed
        """
        window_status = self.status(now)
        if window_status == "upcoming":
            raise TooEarly()
        if window_status == "ended":
            raise WindowClosed()
        return "on_time" if now <= self.on_time_deadline else "late"


def prayer_window(
    timings: Any,
    prayer: str,
    on_time_window_minutes: int = DEFAULT_ON_TIME_WINDOW_MINUTES,
) -> PrayerWindow:
    """
    Build the window for ``prayer`` from a timings row.

    ``timings`` is anything exposing the instants as attributes: a
    PrayerDayTimings row or a TimingsSnapshot.
    """
    if prayer not in PRAYER_END_MAP:
        raise ValueError(f"Unknown prayer '{prayer}'")
    start = getattr(timings, prayer)
    end = getattr(timings, PRAYER_END_MAP[prayer])
    return PrayerWindow(
        prayer=prayer,  # type: ignore[arg-type]
        start=start,
        end=end,
        on_time_deadline=start + timedelta(minutes=on_time_window_minutes),
    )


@dataclass(frozen=True)
class TimingsSnapshot:
    """Detached copy of a timings row, safe to use after a session rollback."""

    user_id: Any
    date: Any
    fajr: datetime
    sunrise: datetime
    dhuhr: datetime
    asr: datetime
    maghrib: datetime
    isha: datetime
    midnight: datetime

    @classmethod
    def from_row(cls, row: Any) -> "TimingsSnapshot":
        return cls(
            user_id=row.user_id,
            date=row.date,
            **{name: getattr(row, name) for name in TIMING_FIELDS},
        )
