"""Scheduled job schemas."""

from pydantic import BaseModel


class SweepResponse(BaseModel):
    """Result of one missed-prayer sweep."""

    processed: int
    missed: int
    timestamp: str
