"""Hasanat totals and ledger schemas."""

from typing import Any

from pydantic import BaseModel


class TotalsResponse(BaseModel):
    """Cached running totals for the authenticated user."""

    all_time_total: int
    today: int
    date: str


class LedgerEntryItem(BaseModel):
    id: str
    action: str
    points: int
    date: str
    prayer: str | None
    metadata: dict[str, Any] | None
    created_at: str


class ListLedgerResponse(BaseModel):
    """Ledger page, newest first."""

    items: list[LedgerEntryItem]
    next_cursor: str | None
    has_more: bool


class ReconcileResponse(BaseModel):
    """Totals before and after rebuilding them from the ledger."""

    previous_total: int
    all_time_total: int
    changed: bool


class LeaderboardItem(BaseModel):
    user_id: str
    username: str
    display_name: str | None
    points: int
    rank: int


class LeaderboardResponse(BaseModel):
    """Friends-only ranking; ``since`` is null for the all-time period."""

    period: str
    since: str | None
    items: list[LeaderboardItem]
