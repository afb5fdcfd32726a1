"""User settings schemas."""

import datetime as dt

from pydantic import BaseModel, Field


class SettingsResponse(BaseModel):
    on_time_window_minutes: int
    quiet_hours_start: str | None
    quiet_hours_end: str | None
    notify_prayer_reminder: bool
    notify_friend_prayer: bool
    notify_friend_fasting: bool
    notify_missed_prayer: bool


class UpdateSettingsRequest(BaseModel):
    """Partial update; omitted fields keep their current value."""

    on_time_window_minutes: int | None = Field(default=None, ge=5, le=120)
    quiet_hours_start: dt.time | None = None
    quiet_hours_end: dt.time | None = None
    notify_prayer_reminder: bool | None = None
    notify_friend_prayer: bool | None = None
    notify_friend_fasting: bool | None = None
    notify_missed_prayer: bool | None = None
