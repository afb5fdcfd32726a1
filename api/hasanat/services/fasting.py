"""Daily fasting declaration and revocation."""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hasanat.config import Settings, settings as default_settings
from hasanat.database import insert_if_absent
from hasanat.exceptions import (
    AlreadyBroken,
    AlreadySet,
    NoFastingLog,
    NotFasting,
    StorageConflict,
)
from hasanat.models.fasting import FastingRecord
from hasanat.services.audit import log_audit_event
from hasanat.services.ledger import LedgerService
from hasanat.services.notifications import ActivityNotifier, FriendActivity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FastingResult:
    date: date
    is_fasting: bool
    points: int


async def get_fasting_record(db: AsyncSession, user_id: UUID, day: date) -> FastingRecord | None:
    result = await db.execute(
        select(FastingRecord).where(
            FastingRecord.user_id == user_id,
            FastingRecord.date == day,
        )
    )
    return result.scalar_one_or_none()


class FastingService:
    """
    Fasting lifecycle per (user, date)::

        not declared -> fasting -> broken
        not declared -> not fasting

    Declaring is a one-time decision and breaking happens at most once.
    """

    def __init__(
        self,
        db: AsyncSession,
        notifier: ActivityNotifier | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.notifier = notifier
        self.settings = settings or default_settings
        self.ledger = LedgerService(db)

    async def set_fasting(
        self,
        user_id: UUID,
        day: date,
        is_fasting: bool,
        now: datetime,
    ) -> FastingResult:
        """
        Declare whether the user is fasting on ``day``.

        Raises:
            AlreadySet: a declaration already exists for the day
        """
        if await get_fasting_record(self.db, user_id, day) is not None:
            raise AlreadySet()

        bonus = self.settings.fasting_bonus_points
        points = bonus if is_fasting else 0

        record_id = await insert_if_absent(
            self.db,
            FastingRecord,
            {
                "id": uuid.uuid4(),
                "user_id": user_id,
                "date": day,
                "is_fasting": is_fasting,
                "broken": False,
                "points_awarded": points,
                "created_at": now,
                "updated_at": now,
            },
            ["user_id", "date"],
        )
        if record_id is None:
            await self.db.rollback()
            raise AlreadySet()

        if is_fasting:
            await self.ledger.record(user_id, "fasting_bonus", bonus, day, now)

        await log_audit_event(
            self.db,
            user_id=user_id,
            event_type="fasting_status_set",
            payload={"date": day.isoformat(), "is_fasting": is_fasting, "points": points},
            now=now,
        )
        await self.db.commit()

        logger.info("Fasting set: user=%s date=%s is_fasting=%s", user_id, day, is_fasting)

        if self.notifier is not None:
            self.notifier.dispatch(
                FriendActivity(
                    actor_id=user_id,
                    category="friend_fasting",
                    title="Hasanat 🌙",
                    body_template=(
                        "{name} is fasting today! 🌙" if is_fasting else "{name} is not fasting today."
                    ),
                    occurred_at=now,
                    data={"date": day.isoformat(), "is_fasting": is_fasting},
                )
            )

        return FastingResult(date=day, is_fasting=is_fasting, points=points)

    async def break_fast(self, user_id: UUID, day: date, now: datetime) -> FastingResult:
        """
        Break the day's fast and revoke its bonus.

        Returns a result whose ``points`` is the (negative) revoke delta.

        Raises:
            NoFastingLog: nothing was declared for the day
            NotFasting: the day was declared as not fasting
            AlreadyBroken: the fast was already broken
        """
        record = await get_fasting_record(self.db, user_id, day)
        if record is None:
            raise NoFastingLog()
        if not record.is_fasting:
            raise NotFasting()
        if record.broken:
            raise AlreadyBroken()

        # Revoke exactly what the bonus entry awarded
        revoke = -record.points_awarded
        try:
            await self._mark_broken(record.id, now)
        except StorageConflict:
            await self.db.rollback()
            raise AlreadyBroken() from None

        await self.ledger.record(
            user_id,
            "fasting_revoke",
            revoke,
            day,
            now,
            metadata={"broken_at": now.isoformat()},
        )

        await log_audit_event(
            self.db,
            user_id=user_id,
            event_type="fast_broken",
            payload={"date": day.isoformat(), "broken_at": now.isoformat()},
            now=now,
        )
        await self.db.commit()

        logger.info("Fast broken: user=%s date=%s", user_id, day)

        if self.notifier is not None:
            self.notifier.dispatch(
                FriendActivity(
                    actor_id=user_id,
                    category="friend_fasting",
                    title="Hasanat 🌙",
                    body_template="{name} broke their fast.",
                    occurred_at=now,
                    data={"date": day.isoformat(), "broken": True},
                )
            )

        return FastingResult(date=day, is_fasting=True, points=revoke)

    async def _mark_broken(self, record_id: UUID, now: datetime) -> None:
        """
        Guarded transition fasting -> broken.

        Raises:
            StorageConflict: a concurrent request broke the fast first
        """
        result = await self.db.execute(
            update(FastingRecord)
            .where(
                FastingRecord.id == record_id,
                FastingRecord.is_fasting.is_(True),
                FastingRecord.broken.is_(False),
            )
            .values(broken=True, broken_at=now, points_awarded=0, updated_at=now)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount != 1:
            raise StorageConflict(f"Fasting record {record_id} is no longer breakable")
