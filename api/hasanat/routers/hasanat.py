"""Hasanat router: totals, ledger history, leaderboards, and reconciliation."""

from datetime import datetime, timedelta
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hasanat.auth.dependencies import get_current_user
from hasanat.database import get_db
from hasanat.dependencies import get_now
from hasanat.models.ledger import LedgerEntry
from hasanat.models.user import User
from hasanat.schemas.hasanat import (
    LeaderboardItem,
    LeaderboardResponse,
    LedgerEntryItem,
    ListLedgerResponse,
    ReconcileResponse,
    TotalsResponse,
)
from hasanat.services.audit import log_audit_event
from hasanat.services.ledger import LEADERBOARD_DAYS, LedgerService

router = APIRouter(prefix="/api/v1/hasanat", tags=["Hasanat"])


def _parse_cursor(cursor: str) -> tuple[datetime, UUID] | None:
    """Cursor format is ``<created_at iso>|<entry id>``."""
    created_at, _, entry_id = cursor.partition("|")
    try:
        return datetime.fromisoformat(created_at), UUID(entry_id)
    except ValueError:
        return None


@router.get(
    "/totals",
    response_model=TotalsResponse,
    status_code=status.HTTP_200_OK,
)
async def get_totals(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
) -> TotalsResponse:
    """All-time and today's (UTC) hasanat."""
    ledger = LedgerService(db)
    today = now.date()

    return TotalsResponse(
        all_time_total=await ledger.get_all_time_total(user.id),
        today=await ledger.get_daily_total(user.id, today),
        date=today.isoformat(),
    )


@router.get(
    "/ledger",
    response_model=ListLedgerResponse,
    status_code=status.HTTP_200_OK,
)
async def list_ledger(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    cursor: str | None = Query(default=None, description="Pagination cursor"),
    limit: int = Query(default=50, ge=1, le=200, description="Items per page"),
) -> ListLedgerResponse:
    """
    List the authenticated user's ledger entries with cursor-based pagination.

    Returns entries ordered by created_at descending.
    """
    query = select(LedgerEntry).where(LedgerEntry.user_id == user.id)

    if cursor:
        parsed = _parse_cursor(cursor)
        if parsed is not None:
            cursor_at, cursor_id = parsed
            query = query.where(
                or_(
                    LedgerEntry.created_at < cursor_at,
                    and_(LedgerEntry.created_at == cursor_at, LedgerEntry.id < cursor_id),
                )
            )

    query = query.order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc()).limit(limit + 1)

    result = await db.execute(query)
    entries = list(result.scalars().all())

    has_more = len(entries) > limit
    if has_more:
        entries = entries[:limit]

    items = [
        LedgerEntryItem(
            id=str(entry.id),
            action=entry.action,
            points=entry.points,
            date=entry.date.isoformat(),
            prayer=entry.prayer,
            metadata=entry.extra_data,
            created_at=entry.created_at.isoformat(),
        )
        for entry in entries
    ]

    next_cursor = (
        f"{entries[-1].created_at.isoformat()}|{entries[-1].id}" if entries and has_more else None
    )

    return ListLedgerResponse(items=items, next_cursor=next_cursor, has_more=has_more)


@router.get(
    "/leaderboard",
    response_model=LeaderboardResponse,
    status_code=status.HTTP_200_OK,
)
async def get_leaderboard(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
    period: Literal["weekly", "all_time"] = Query(default="weekly"),
) -> LeaderboardResponse:
    """Rank the authenticated user against their friends."""
    ledger = LedgerService(db)
    today = now.date()

    if period == "weekly":
        entries = await ledger.weekly_leaderboard(user.id, today)
        since = (today - timedelta(days=LEADERBOARD_DAYS - 1)).isoformat()
    else:
        entries = await ledger.all_time_leaderboard(user.id)
        since = None

    return LeaderboardResponse(
        period=period,
        since=since,
        items=[
            LeaderboardItem(
                user_id=str(entry.user_id),
                username=entry.username,
                display_name=entry.display_name,
                points=entry.points,
                rank=entry.rank,
            )
            for entry in entries
        ],
    )


@router.post(
    "/reconcile",
    response_model=ReconcileResponse,
    status_code=status.HTTP_200_OK,
)
async def reconcile_totals(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
) -> ReconcileResponse:
    """Rebuild the cached totals from the ledger."""
    ledger = LedgerService(db)
    previous = await ledger.get_all_time_total(user.id)
    total = await ledger.rebuild_totals(user.id, now)

    await log_audit_event(
        db,
        user_id=user.id,
        event_type="totals_rebuilt",
        payload={"previous_total": previous, "all_time_total": total},
        now=now,
    )
    await db.commit()

    return ReconcileResponse(
        previous_total=previous,
        all_time_total=total,
        changed=previous != total,
    )
