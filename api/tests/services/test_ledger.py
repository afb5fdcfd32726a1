"""
Tests for the hasanat ledger:
- idempotent inserts
- running totals kept in step with the ledger
- reconstruction and rebuild from the ledger
"""

from datetime import timedelta

from sqlalchemy import func, select, update

from hasanat.models.ledger import HasanatDailyTotal, HasanatTotal, LedgerEntry
from hasanat.services.ledger import LedgerService, idempotency_key

from factories import DAY, utc


class TestIdempotencyKey:
    def test_prayer_key_format(self, test_user):
        key = idempotency_key(test_user["user_id"], DAY, "fajr", "prayer_on_time")
        assert key == f"{test_user['user_id']}:2026-03-01:fajr:prayer_on_time"

    def test_day_key_format(self, test_user):
        key = idempotency_key(test_user["user_id"], DAY, "fasting_bonus")
        assert key == f"{test_user['user_id']}:2026-03-01:fasting_bonus"


class TestRecord:
    """LedgerService.record"""

    async def test_first_insert_updates_totals(self, db_session, test_user):
        ledger = LedgerService(db_session)
        user_id = test_user["user_id"]

        assert await ledger.record(user_id, "prayer_on_time", 10, DAY, utc(6), prayer="fajr")
        await db_session.commit()

        assert await ledger.get_all_time_total(user_id) == 10
        assert await ledger.get_daily_total(user_id, DAY) == 10

    async def test_duplicate_key_is_noop(self, db_session, test_user):
        ledger = LedgerService(db_session)
        user_id = test_user["user_id"]

        assert await ledger.record(user_id, "prayer_on_time", 10, DAY, utc(6), prayer="fajr")
        assert not await ledger.record(user_id, "prayer_on_time", 10, DAY, utc(7), prayer="fajr")
        await db_session.commit()

        count = await db_session.scalar(
            select(func.count()).select_from(LedgerEntry).where(LedgerEntry.user_id == user_id)
        )
        assert count == 1
        assert await ledger.get_all_time_total(user_id) == 10

    async def test_negative_points_decrement(self, db_session, test_user):
        ledger = LedgerService(db_session)
        user_id = test_user["user_id"]

        await ledger.record(user_id, "fasting_bonus", 20, DAY, utc(4))
        await ledger.record(user_id, "fasting_revoke", -20, DAY, utc(13))
        await db_session.commit()

        assert await ledger.get_all_time_total(user_id) == 0
        assert await ledger.get_daily_total(user_id, DAY) == 0

    async def test_metadata_is_stored(self, db_session, test_user):
        ledger = LedgerService(db_session)
        await ledger.record(
            test_user["user_id"],
            "prayer_late",
            5,
            DAY,
            utc(6, 10),
            prayer="fajr",
            metadata={"on_time_window": 30},
        )
        await db_session.commit()

        entry = await db_session.scalar(select(LedgerEntry))
        assert entry.extra_data == {"on_time_window": 30}
        assert entry.created_at == utc(6, 10)

    async def test_totals_are_per_user(self, db_session, test_user, second_user):
        ledger = LedgerService(db_session)
        await ledger.record(test_user["user_id"], "prayer_on_time", 10, DAY, utc(6), prayer="fajr")
        await ledger.record(second_user["user_id"], "prayer_late", 5, DAY, utc(6), prayer="fajr")
        await db_session.commit()

        assert await ledger.get_all_time_total(test_user["user_id"]) == 10
        assert await ledger.get_all_time_total(second_user["user_id"]) == 5

    async def test_unknown_user_total_is_zero(self, db_session, test_user):
        assert await LedgerService(db_session).get_all_time_total(test_user["user_id"]) == 0


class TestReconstruction:
    """Totals always equal the ledger sum."""

    async def test_totals_match_ledger_after_mixed_sequence(self, db_session, test_user):
        ledger = LedgerService(db_session)
        user_id = test_user["user_id"]
        tomorrow = DAY + timedelta(days=1)

        events = [
            ("prayer_on_time", 10, DAY, "fajr"),
            ("prayer_late", 5, DAY, "dhuhr"),
            ("missed_prayer", 0, DAY, "asr"),
            ("fasting_bonus", 20, DAY, None),
            ("fasting_revoke", -20, DAY, None),
            ("prayer_on_time", 10, tomorrow, "fajr"),
            # replay of an earlier event
            ("prayer_late", 5, DAY, "dhuhr"),
            ("fasting_bonus", 20, tomorrow, None),
        ]
        for action, points, day, prayer in events:
            await ledger.record(user_id, action, points, day, utc(12), prayer=prayer)
        await db_session.commit()

        assert await ledger.reconstruct_total(user_id) == 45
        assert await ledger.get_all_time_total(user_id) == 45
        assert await ledger.reconstruct_daily_totals(user_id) == {DAY: 15, tomorrow: 30}
        assert await ledger.get_daily_total(user_id, DAY) == 15
        assert await ledger.get_daily_total(user_id, tomorrow) == 30

    async def test_rebuild_repairs_drifted_cache(self, db_session, test_user):
        ledger = LedgerService(db_session)
        user_id = test_user["user_id"]

        await ledger.record(user_id, "prayer_on_time", 10, DAY, utc(6), prayer="fajr")
        await ledger.record(user_id, "prayer_late", 5, DAY, utc(13), prayer="dhuhr")
        await db_session.commit()

        await db_session.execute(
            update(HasanatTotal).where(HasanatTotal.user_id == user_id).values(all_time_total=999)
        )
        await db_session.execute(
            update(HasanatDailyTotal)
            .where(HasanatDailyTotal.user_id == user_id)
            .values(points=-3)
        )
        await db_session.commit()

        total = await ledger.rebuild_totals(user_id, utc(20))
        await db_session.commit()

        assert total == 15
        assert await ledger.get_all_time_total(user_id) == 15
        assert await ledger.get_daily_total(user_id, DAY) == 15

    async def test_rebuild_for_empty_ledger(self, db_session, test_user):
        ledger = LedgerService(db_session)
        assert await ledger.rebuild_totals(test_user["user_id"], utc(20)) == 0
        await db_session.commit()
        assert await ledger.get_all_time_total(test_user["user_id"]) == 0
