"""
Missed-prayer sweep.

The sweep is the authority on missed prayers: a prayer whose window has
ended without a record gets a ``missed`` record and a zero-point ledger
entry. Every candidate is handled in its own transaction so one failure
never blocks the rest of the run.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hasanat.config import Settings, settings as default_settings
from hasanat.exceptions import StorageConflict
from hasanat.models.prayer import PrayerRecord
from hasanat.models.timings import PrayerDayTimings
from hasanat.services.audit import log_audit_event
from hasanat.services.ledger import LedgerService
from hasanat.services.notifications import ActivityNotifier, FriendActivity
from hasanat.services.prayers import get_prayer_record, insert_prayer_record
from hasanat.services.time_window import (
    PRAYER_NAMES,
    PrayerWindow,
    TimingsSnapshot,
    prayer_label,
    prayer_window,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    processed: int = 0
    missed: int = 0


def sweep_dates(now: datetime, lookback_days: int) -> list[date]:
    """UTC date of ``now`` plus the ``lookback_days`` before it, oldest first."""
    today = now.date()
    return [today - timedelta(days=offset) for offset in range(lookback_days, -1, -1)]


class MissedPrayerSweeper:
    """Marks prayers whose window ended without a record as missed."""

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

    async def _load_timings(self, days: list[date]) -> list[TimingsSnapshot]:
        result = await self.db.execute(
            select(PrayerDayTimings)
            .where(PrayerDayTimings.date.in_(days))
            .order_by(PrayerDayTimings.date, PrayerDayTimings.user_id)
        )
        # Snapshots survive the per-item rollbacks below; ORM rows would expire
        return [TimingsSnapshot.from_row(row) for row in result.scalars().all()]

    async def run(self, now: datetime) -> SweepResult:
        """
        Sweep every stored day in the lookback range.

        Returns:
            SweepResult with ``processed`` (candidates found without a record)
            and ``missed`` (records actually inserted by this run)
        """
        days = sweep_dates(now, self.settings.sweep_lookback_days)
        logger.info("Missed-prayer sweep running at %s for %s", now.isoformat(), days)

        snapshots = await self._load_timings(days)
        await self.db.commit()
        if not snapshots:
            logger.info("No timings found for sweep dates. Nothing to process.")
            return SweepResult()

        processed = 0
        missed = 0
        for timings in snapshots:
            for prayer in PRAYER_NAMES:
                # Only the end of the window matters here
                window = prayer_window(timings, prayer)
                if now <= window.end:
                    continue

                try:
                    existing = await get_prayer_record(
                        self.db, timings.user_id, timings.date, prayer
                    )
                    if existing is not None:
                        continue

                    processed += 1
                    inserted = await self._mark_missed(timings.user_id, timings.date, window, now)
                except Exception:
                    await self.db.rollback()
                    logger.exception(
                        "Missed-prayer sweep failed for %s/%s/%s",
                        timings.user_id,
                        timings.date,
                        prayer,
                    )
                    continue

                if inserted:
                    missed += 1
                    self._notify(timings.user_id, timings.date, prayer, now)

        logger.info(
            "Missed-prayer sweep complete. Processed %d checks, %d new missed prayers.",
            processed,
            missed,
        )
        return SweepResult(processed=processed, missed=missed)

    async def _mark_missed(
        self, user_id: UUID, day: date, window: PrayerWindow, now: datetime
    ) -> bool:
        """
        Record one missed prayer in its own transaction.

        Returns False when a concurrent writer created the record first.
        """
        prayer = window.prayer
        try:
            await insert_prayer_record(
                self.db,
                {
                    "user_id": user_id,
                    "date": day,
                    "prayer": prayer,
                    "status": "missed",
                    "marked_at": None,
                    "prayer_time": window.start,
                    "prayer_end_time": window.end,
                    "points_awarded": 0,
                    "created_at": now,
                },
            )
        except StorageConflict:
            await self.db.rollback()
            return False

        await self.ledger.record(
            user_id,
            "missed_prayer",
            0,
            day,
            now,
            prayer=prayer,
            metadata={
                "detected_at": now.isoformat(),
                "prayer_end_time": window.end.isoformat(),
            },
        )
        await log_audit_event(
            self.db,
            user_id=user_id,
            event_type="prayer_missed_detected",
            payload={
                "prayer": prayer,
                "date": day.isoformat(),
                "prayer_end_time": window.end.isoformat(),
                "detected_at": now.isoformat(),
            },
            now=now,
        )
        await self.db.commit()
        return True

    def _notify(self, user_id: UUID, day: date, prayer: str, now: datetime) -> None:
        if self.notifier is None:
            return
        # Names the prayer only; no location or timings
        self.notifier.dispatch(
            FriendActivity(
                actor_id=user_id,
                category="missed_prayer",
                title="Hasanat 🕌",
                body_template="{name} missed " + prayer_label(prayer) + ". Send them encouragement!",
                occurred_at=now,
                data={"prayer": prayer, "date": day.isoformat()},
            )
        )


async def run_missed_prayer_sweep(
    db: AsyncSession,
    now: datetime,
    notifier: ActivityNotifier | None = None,
    settings: Settings | None = None,
) -> SweepResult:
    """Convenience entry point used by the HTTP job route and the scheduler."""
    return await MissedPrayerSweeper(db, notifier, settings).run(now)
