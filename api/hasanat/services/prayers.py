"""Prayer marking service."""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hasanat.config import Settings, settings as default_settings
from hasanat.database import insert_if_absent
from hasanat.exceptions import AlreadyLogged, StorageConflict, TimingsNotFound
from hasanat.models.prayer import PrayerRecord
from hasanat.models.timings import PrayerDayTimings
from hasanat.models.user import UserSettings
from hasanat.services.audit import log_audit_event
from hasanat.services.ledger import LedgerService
from hasanat.services.notifications import ActivityNotifier, FriendActivity
from hasanat.services.time_window import (
    PRAYER_NAMES,
    PrayerName,
    PrayerStatus,
    WindowStatus,
    prayer_label,
    prayer_window,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarkResult:
    prayer: PrayerName
    date: date
    status: PrayerStatus
    points: int


@dataclass(frozen=True)
class PrayerDayEntry:
    """State of one prayer on one day, for display."""

    prayer: PrayerName
    start: datetime
    end: datetime
    window_status: WindowStatus
    record: PrayerRecord | None


async def get_timings(db: AsyncSession, user_id: UUID, day: date) -> PrayerDayTimings | None:
    result = await db.execute(
        select(PrayerDayTimings).where(
            PrayerDayTimings.user_id == user_id,
            PrayerDayTimings.date == day,
        )
    )
    return result.scalar_one_or_none()


async def get_prayer_record(
    db: AsyncSession, user_id: UUID, day: date, prayer: str
) -> PrayerRecord | None:
    result = await db.execute(
        select(PrayerRecord).where(
            PrayerRecord.user_id == user_id,
            PrayerRecord.date == day,
            PrayerRecord.prayer == prayer,
        )
    )
    return result.scalar_one_or_none()


async def insert_prayer_record(db: AsyncSession, values: dict) -> UUID:
    """
    Insert a PrayerRecord unless one exists for (user, date, prayer).

    Raises:
        StorageConflict: another writer already created the record
    """
    record_id = await insert_if_absent(
        db,
        PrayerRecord,
        {"id": uuid.uuid4(), **values},
        ["user_id", "date", "prayer"],
    )
    if record_id is None:
        raise StorageConflict(
            f"Prayer record exists for {values['user_id']}/{values['date']}/{values['prayer']}"
        )
    return record_id


class PrayerService:
    """
    Marks prayers as prayed and awards hasanat.

    Each (user, date, prayer) moves once from unmarked to on_time, late or
    missed; there is no way back.
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

    async def get_on_time_window(self, user_id: UUID) -> int:
        result = await self.db.execute(
            select(UserSettings.on_time_window_minutes).where(UserSettings.user_id == user_id)
        )
        minutes = result.scalar_one_or_none()
        return minutes if minutes is not None else self.settings.default_on_time_window_minutes

    async def mark_prayer(
        self,
        user_id: UUID,
        day: date,
        prayer: PrayerName,
        now: datetime,
    ) -> MarkResult:
        """
        Mark ``prayer`` on ``day`` as prayed at ``now``.

        Raises:
            TimingsNotFound: no timings stored for the day
            AlreadyLogged: the prayer already has a record (including a lost race)
            TooEarly: ``now`` is before the prayer starts
            WindowClosed: ``now`` is after the prayer's window ended
        """
        if prayer not in PRAYER_NAMES:
            raise ValueError(f"Unknown prayer '{prayer}'")

        # Timings must already be cached; fetching is the client's job
        timings = await get_timings(self.db, user_id, day)
        if timings is None:
            raise TimingsNotFound()

        if await get_prayer_record(self.db, user_id, day, prayer) is not None:
            raise AlreadyLogged()

        on_time_window = await self.get_on_time_window(user_id)
        window = prayer_window(timings, prayer, on_time_window)
        status = window.classify(now)

        if status == "on_time":
            points, action = self.settings.points_on_time, "prayer_on_time"
        else:
            points, action = self.settings.points_late, "prayer_late"

        try:
            await insert_prayer_record(
                self.db,
                {
                    "user_id": user_id,
                    "date": day,
                    "prayer": prayer,
                    "status": status,
                    "marked_at": now,
                    "prayer_time": window.start,
                    "prayer_end_time": window.end,
                    "points_awarded": points,
                    "created_at": now,
                },
            )
        except StorageConflict:
            await self.db.rollback()
            raise AlreadyLogged() from None

        # The record is authoritative; a duplicate ledger key is a no-op
        await self.ledger.record(
            user_id,
            action,
            points,
            day,
            now,
            prayer=prayer,
            metadata={"marked_at": now.isoformat(), "on_time_window": on_time_window},
        )

        await log_audit_event(
            self.db,
            user_id=user_id,
            event_type="prayer_marked",
            payload={"prayer": prayer, "date": day.isoformat(), "status": status, "points": points},
            now=now,
        )
        await self.db.commit()

        logger.info("Prayer marked: user=%s date=%s prayer=%s status=%s", user_id, day, prayer, status)

        if self.notifier is not None:
            self.notifier.dispatch(
                FriendActivity(
                    actor_id=user_id,
                    category="friend_prayer",
                    title="Hasanat 🕌",
                    body_template="{name} just prayed " + prayer_label(prayer) + "!",
                    occurred_at=now,
                    data={"prayer": prayer, "date": day.isoformat()},
                )
            )

        return MarkResult(prayer=prayer, date=day, status=status, points=points)

    async def get_day(self, user_id: UUID, day: date, now: datetime) -> list[PrayerDayEntry]:
        """
        Each prayer's window state and record for ``day``.

        Raises:
            TimingsNotFound: no timings stored for the day
        """
        timings = await get_timings(self.db, user_id, day)
        if timings is None:
            raise TimingsNotFound()

        result = await self.db.execute(
            select(PrayerRecord).where(
                PrayerRecord.user_id == user_id,
                PrayerRecord.date == day,
            )
        )
        records = {record.prayer: record for record in result.scalars().all()}

        on_time_window = await self.get_on_time_window(user_id)
        entries = []
        for prayer in PRAYER_NAMES:
            window = prayer_window(timings, prayer, on_time_window)
            entries.append(
                PrayerDayEntry(
                    prayer=prayer,
                    start=window.start,
                    end=window.end,
                    window_status=window.status(now),
                    record=records.get(prayer),
                )
            )
        return entries
