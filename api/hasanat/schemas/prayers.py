"""Prayer marking schemas."""

import datetime as dt
from typing import Literal

from pydantic import BaseModel

PrayerNameField = Literal["fajr", "dhuhr", "asr", "maghrib", "isha"]


class MarkPrayerRequest(BaseModel):
    """Request to mark a prayer as prayed."""

    prayer: PrayerNameField
    date: dt.date


class MarkPrayerResponse(BaseModel):
    """Outcome of marking a prayer."""

    prayer: str
    date: str
    status: Literal["on_time", "late"]
    points: int
    message: str


class PrayerDayItem(BaseModel):
    """One prayer's window and record for a day."""

    prayer: str
    start: str
    end: str
    window_status: Literal["upcoming", "active", "ended"]
    status: Literal["on_time", "late", "missed"] | None = None
    marked_at: str | None = None
    points_awarded: int | None = None


class PrayerDayResponse(BaseModel):
    """All five prayers for a day."""

    date: str
    prayers: list[PrayerDayItem]
