"""Pydantic schemas for request/response validation."""

from hasanat.schemas.fasting import (
    BreakFastRequest,
    BreakFastResponse,
    FastingDayResponse,
    SetFastingRequest,
    SetFastingResponse,
)
from hasanat.schemas.prayers import MarkPrayerRequest, MarkPrayerResponse, PrayerDayResponse

__all__ = [
    "MarkPrayerRequest",
    "MarkPrayerResponse",
    "PrayerDayResponse",
    "SetFastingRequest",
    "SetFastingResponse",
    "BreakFastRequest",
    "BreakFastResponse",
    "FastingDayResponse",
]
