"""Fasting schemas."""

import datetime as dt

from pydantic import BaseModel


class SetFastingRequest(BaseModel):
    """Declare whether the user is fasting on a date."""

    date: dt.date
    is_fasting: bool


class SetFastingResponse(BaseModel):
    date: str
    is_fasting: bool
    points: int
    message: str


class BreakFastRequest(BaseModel):
    date: dt.date


class BreakFastResponse(BaseModel):
    date: str
    points: int
    message: str


class FastingDayResponse(BaseModel):
    """Stored fasting record for a date."""

    date: str
    is_fasting: bool
    broken: bool
    broken_at: str | None
    points_awarded: int
