"""Hasanat ledger service: idempotent point transactions and their totals."""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Literal
from uuid import UUID

from sqlalchemy import and_, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hasanat.database import insert_for, insert_if_absent
from hasanat.models.ledger import HasanatDailyTotal, HasanatTotal, LedgerEntry
from hasanat.models.user import User
from hasanat.services.notifications import get_blocked_ids, get_friend_ids

logger = logging.getLogger(__name__)

LedgerAction = Literal[
    "prayer_on_time", "prayer_late", "fasting_bonus", "fasting_revoke", "missed_prayer"
]


def idempotency_key(user_id: UUID, day: date, *parts: str) -> str:
    """
    Deterministic key for one logical scoring event.

    Prayer events use ``user:date:prayer:action``; day-level events use
    ``user:date:action``.
    """
    return ":".join([str(user_id), day.isoformat(), *parts])


LEADERBOARD_DAYS = 7


@dataclass(frozen=True)
class LeaderboardEntry:
    user_id: UUID
    username: str
    display_name: str | None
    points: int
    rank: int


def rank_entries(rows) -> list[LeaderboardEntry]:
    """
    Order ``(user_id, username, display_name, points)`` rows by points.

    Ties share a rank and the next rank skips ahead (1, 1, 3). Username
    breaks ties in the ordering only.
    """
    ordered = sorted(rows, key=lambda row: (-row[3], row[1]))
    entries: list[LeaderboardEntry] = []
    for position, (user_id, username, display_name, points) in enumerate(ordered, start=1):
        rank = entries[-1].rank if entries and entries[-1].points == points else position
        entries.append(LeaderboardEntry(user_id, username, display_name, int(points), rank))
    return entries


class LedgerService:
    """
    Append-only ledger with insert-if-absent semantics.

    Every successful insert bumps the all-time and daily totals in the same
    transaction. A duplicate key is dropped silently and leaves totals
    untouched. Nothing here commits; the caller owns the transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        user_id: UUID,
        action: LedgerAction,
        points: int,
        day: date,
        now: datetime,
        prayer: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """
        Append a ledger entry unless its idempotency key already exists.

        Returns:
            True if the entry was written, False if it was a duplicate
        """
        key = (
            idempotency_key(user_id, day, prayer, action)
            if prayer
            else idempotency_key(user_id, day, action)
        )
        entry_id = await insert_if_absent(
            self.db,
            LedgerEntry,
            {
                "id": uuid.uuid4(),
                "user_id": user_id,
                "action": action,
                "points": points,
                "date": day,
                "prayer": prayer,
                "idempotency_key": key,
                "extra_data": metadata or {},
                "created_at": now,
            },
            ["idempotency_key"],
        )
        if entry_id is None:
            logger.info("Duplicate ledger event dropped: %s", key)
            return False

        await self._increment_totals(user_id, day, points, now)
        return True

    async def _increment_totals(
        self, user_id: UUID, day: date, points: int, now: datetime
    ) -> None:
        """Atomic ``total = total + points`` upserts for both aggregates."""
        total_stmt = insert_for(self.db, HasanatTotal).values(
            user_id=user_id, all_time_total=points, updated_at=now
        )
        total_stmt = total_stmt.on_conflict_do_update(
            index_elements=["user_id"],
            set_={
                "all_time_total": HasanatTotal.all_time_total + points,
                "updated_at": now,
            },
        )
        await self.db.execute(total_stmt)

        daily_stmt = insert_for(self.db, HasanatDailyTotal).values(
            user_id=user_id, date=day, points=points, updated_at=now
        )
        daily_stmt = daily_stmt.on_conflict_do_update(
            index_elements=["user_id", "date"],
            set_={
                "points": HasanatDailyTotal.points + points,
                "updated_at": now,
            },
        )
        await self.db.execute(daily_stmt)

    async def get_all_time_total(self, user_id: UUID) -> int:
        """Cached all-time total (0 for a user with no entries)."""
        result = await self.db.execute(
            select(HasanatTotal.all_time_total).where(HasanatTotal.user_id == user_id)
        )
        return result.scalar_one_or_none() or 0

    async def get_daily_total(self, user_id: UUID, day: date) -> int:
        """Cached total for a single day."""
        result = await self.db.execute(
            select(HasanatDailyTotal.points).where(
                HasanatDailyTotal.user_id == user_id,
                HasanatDailyTotal.date == day,
            )
        )
        return result.scalar_one_or_none() or 0

    async def reconstruct_total(self, user_id: UUID) -> int:
        """All-time total computed from the ledger itself."""
        result = await self.db.execute(
            select(func.coalesce(func.sum(LedgerEntry.points), 0)).where(
                LedgerEntry.user_id == user_id
            )
        )
        return int(result.scalar_one())

    async def reconstruct_daily_totals(self, user_id: UUID) -> dict[date, int]:
        """Per-day totals computed from the ledger itself."""
        result = await self.db.execute(
            select(LedgerEntry.date, func.sum(LedgerEntry.points))
            .where(LedgerEntry.user_id == user_id)
            .group_by(LedgerEntry.date)
        )
        return {day: int(points) for day, points in result.all()}

    async def rebuild_totals(self, user_id: UUID, now: datetime) -> int:
        """
        Overwrite the cached totals with values summed from the ledger.

        Returns the reconstructed all-time total.
        """
        total = await self.reconstruct_total(user_id)
        daily = await self.reconstruct_daily_totals(user_id)

        total_stmt = insert_for(self.db, HasanatTotal).values(
            user_id=user_id, all_time_total=total, updated_at=now
        )
        total_stmt = total_stmt.on_conflict_do_update(
            index_elements=["user_id"],
            set_={"all_time_total": total, "updated_at": now},
        )
        await self.db.execute(total_stmt)

        await self.db.execute(
            delete(HasanatDailyTotal).where(HasanatDailyTotal.user_id == user_id)
        )
        if daily:
            await self.db.execute(
                insert_for(self.db, HasanatDailyTotal),
                [
                    {"user_id": user_id, "date": day, "points": points, "updated_at": now}
                    for day, points in daily.items()
                ],
            )

        logger.info("Rebuilt totals for user %s: %d", user_id, total)
        return total

    async def _leaderboard_members(self, user_id: UUID) -> set[UUID]:
        """The user plus accepted friends, minus anyone in a block with them."""
        friends = await get_friend_ids(self.db, user_id)
        return {user_id} | (friends - await get_blocked_ids(self.db, user_id))

    async def weekly_leaderboard(self, user_id: UUID, today: date) -> list[LeaderboardEntry]:
        """Points over the rolling week ending on ``today`` (UTC dates)."""
        members = await self._leaderboard_members(user_id)
        since = today - timedelta(days=LEADERBOARD_DAYS - 1)
        result = await self.db.execute(
            select(
                User.id,
                User.username,
                User.display_name,
                func.coalesce(func.sum(HasanatDailyTotal.points), 0),
            )
            .outerjoin(
                HasanatDailyTotal,
                and_(
                    HasanatDailyTotal.user_id == User.id,
                    HasanatDailyTotal.date >= since,
                    HasanatDailyTotal.date <= today,
                ),
            )
            .where(User.id.in_(members))
            .group_by(User.id, User.username, User.display_name)
        )
        return rank_entries(result.all())

    async def all_time_leaderboard(self, user_id: UUID) -> list[LeaderboardEntry]:
        """Cached all-time totals; members without a total row score 0."""
        members = await self._leaderboard_members(user_id)
        result = await self.db.execute(
            select(
                User.id,
                User.username,
                User.display_name,
                func.coalesce(HasanatTotal.all_time_total, 0),
            )
            .outerjoin(HasanatTotal, HasanatTotal.user_id == User.id)
            .where(User.id.in_(members))
        )
        return rank_entries(result.all())
