"""
Tests for PrayerService.mark_prayer:
- the fajr walkthrough (on time, late, window closed)
- preconditions (timings, duplicates)
- a lost insert race surfaces as AlreadyLogged with one record and one entry
- audit trail and friend fanout scheduling
"""

import pytest
from sqlalchemy import func, select

from hasanat.exceptions import AlreadyLogged, TimingsNotFound, TooEarly, WindowClosed
from hasanat.models.audit import AuditEvent
from hasanat.models.ledger import LedgerEntry
from hasanat.models.prayer import PrayerRecord
from hasanat.services import prayers as prayers_module
from hasanat.services.ledger import LedgerService
from hasanat.services.prayers import PrayerService

from factories import DAY, utc


async def _count(db_session, model, **filters) -> int:
    query = select(func.count()).select_from(model)
    for name, value in filters.items():
        query = query.where(getattr(model, name) == value)
    return await db_session.scalar(query)


class TestFajrScenario:
    """Fajr 05:30, sunrise 06:50, 30 minute on-time window."""

    async def test_mark_at_0550_is_on_time(self, db_session, test_user, store_timings, notifier):
        await store_timings(test_user["user_id"])

        result = await PrayerService(db_session, notifier).mark_prayer(
            test_user["user_id"], DAY, "fajr", utc(5, 50)
        )

        assert result.status == "on_time"
        assert result.points == 10

    async def test_mark_at_0610_is_late(self, db_session, test_user, store_timings, notifier):
        await store_timings(test_user["user_id"])

        result = await PrayerService(db_session, notifier).mark_prayer(
            test_user["user_id"], DAY, "fajr", utc(6, 10)
        )

        assert result.status == "late"
        assert result.points == 5

    async def test_mark_at_0700_is_window_closed(self, db_session, test_user, store_timings):
        await store_timings(test_user["user_id"])

        with pytest.raises(WindowClosed):
            await PrayerService(db_session).mark_prayer(
                test_user["user_id"], DAY, "fajr", utc(7, 0)
            )

        assert await _count(db_session, PrayerRecord) == 0
        assert await _count(db_session, LedgerEntry) == 0

    async def test_mark_before_start_is_too_early(self, db_session, test_user, store_timings):
        await store_timings(test_user["user_id"])

        with pytest.raises(TooEarly):
            await PrayerService(db_session).mark_prayer(
                test_user["user_id"], DAY, "dhuhr", utc(12, 0)
            )


class TestMarkPrayer:
    async def test_requires_timings(self, db_session, test_user):
        with pytest.raises(TimingsNotFound):
            await PrayerService(db_session).mark_prayer(
                test_user["user_id"], DAY, "fajr", utc(5, 50)
            )

    async def test_second_mark_is_already_logged(self, db_session, test_user, store_timings):
        await store_timings(test_user["user_id"])
        service = PrayerService(db_session)
        await service.mark_prayer(test_user["user_id"], DAY, "fajr", utc(5, 50))

        with pytest.raises(AlreadyLogged):
            await service.mark_prayer(test_user["user_id"], DAY, "fajr", utc(5, 55))

        assert await LedgerService(db_session).get_all_time_total(test_user["user_id"]) == 10

    async def test_record_snapshots_window(self, db_session, test_user, store_timings):
        await store_timings(test_user["user_id"])
        await PrayerService(db_session).mark_prayer(test_user["user_id"], DAY, "isha", utc(20, 0))

        record = await db_session.scalar(select(PrayerRecord))
        assert record.status == "late"
        assert record.marked_at == utc(20, 0)
        assert record.prayer_time == utc(19, 25)
        assert record.prayer_end_time == utc(23, 50)
        assert record.points_awarded == 5

    async def test_ledger_entry_keyed_by_prayer_and_action(self, db_session, test_user, store_timings):
        await store_timings(test_user["user_id"])
        await PrayerService(db_session).mark_prayer(test_user["user_id"], DAY, "asr", utc(15, 40))

        entry = await db_session.scalar(select(LedgerEntry))
        assert entry.action == "prayer_on_time"
        assert entry.points == 10
        assert entry.prayer == "asr"
        assert entry.idempotency_key == f"{test_user['user_id']}:2026-03-01:asr:prayer_on_time"
        assert entry.extra_data["on_time_window"] == 30

    async def test_existing_ledger_key_is_not_counted_twice(
        self, db_session, test_user, store_timings
    ):
        """A leftover entry for the same prayer and action keeps the mark successful."""
        user_id = test_user["user_id"]
        await store_timings(user_id)
        ledger = LedgerService(db_session)
        await ledger.record(user_id, "prayer_on_time", 10, DAY, utc(5, 40), prayer="fajr")
        await db_session.commit()

        result = await PrayerService(db_session).mark_prayer(user_id, DAY, "fajr", utc(5, 45))

        assert result.status == "on_time"
        assert result.points == 10
        assert await _count(db_session, PrayerRecord, user_id=user_id) == 1
        assert await _count(db_session, LedgerEntry, user_id=user_id) == 1
        assert await ledger.get_all_time_total(user_id) == 10
        assert await ledger.get_daily_total(user_id, DAY) == 10

    async def test_user_on_time_window_applies(
        self, db_session, test_user, store_timings, set_user_settings
    ):
        await store_timings(test_user["user_id"])
        await set_user_settings(test_user["user_id"], on_time_window_minutes=60)

        result = await PrayerService(db_session).mark_prayer(
            test_user["user_id"], DAY, "fajr", utc(6, 25)
        )
        assert result.status == "on_time"

    async def test_writes_audit_event(self, db_session, test_user, store_timings):
        await store_timings(test_user["user_id"])
        await PrayerService(db_session).mark_prayer(test_user["user_id"], DAY, "fajr", utc(5, 50))

        event = await db_session.scalar(select(AuditEvent))
        assert event.event_type == "prayer_marked"
        assert event.payload == {
            "prayer": "fajr",
            "date": "2026-03-01",
            "status": "on_time",
            "points": 10,
        }

    async def test_dispatches_friend_activity(self, db_session, test_user, store_timings, notifier):
        await store_timings(test_user["user_id"])
        await PrayerService(db_session, notifier).mark_prayer(
            test_user["user_id"], DAY, "maghrib", utc(18, 10)
        )

        assert len(notifier.activities) == 1
        activity = notifier.activities[0]
        assert activity.category == "friend_prayer"
        assert activity.actor_id == test_user["user_id"]
        assert activity.body_template.format(name="Aisha") == "Aisha just prayed Maghrib!"
        assert activity.data == {"prayer": "maghrib", "date": "2026-03-01"}

    async def test_rejected_mark_dispatches_nothing(self, db_session, test_user, store_timings, notifier):
        await store_timings(test_user["user_id"])
        with pytest.raises(WindowClosed):
            await PrayerService(db_session, notifier).mark_prayer(
                test_user["user_id"], DAY, "fajr", utc(7, 0)
            )
        assert notifier.activities == []


class TestConcurrentMarks:
    """Two marks racing past the existence check."""

    async def test_lost_race_is_already_logged(
        self, db_session, test_user, store_timings, notifier, monkeypatch
    ):
        await store_timings(test_user["user_id"])
        service = PrayerService(db_session, notifier)
        await service.mark_prayer(test_user["user_id"], DAY, "fajr", utc(5, 40))

        # The second caller read "no record" before the first one committed
        async def stale_read(*args, **kwargs):
            return None

        monkeypatch.setattr(prayers_module, "get_prayer_record", stale_read)

        with pytest.raises(AlreadyLogged):
            await service.mark_prayer(test_user["user_id"], DAY, "fajr", utc(5, 45))

        user_id = test_user["user_id"]
        assert await _count(db_session, PrayerRecord, user_id=user_id) == 1
        assert await _count(db_session, LedgerEntry, user_id=user_id) == 1
        assert await LedgerService(db_session).get_all_time_total(user_id) == 10
        assert len(notifier.activities) == 1
