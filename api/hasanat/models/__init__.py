"""Database models for the Hasanat API."""

from hasanat.models.audit import AuditEvent
from hasanat.models.fasting import FastingRecord
from hasanat.models.ledger import HasanatDailyTotal, HasanatTotal, LedgerEntry
from hasanat.models.prayer import PrayerRecord
from hasanat.models.social import Block, DeviceToken, Friendship
from hasanat.models.timings import PrayerDayTimings
from hasanat.models.user import APIKey, User, UserSettings

__all__ = [
    "User",
    "APIKey",
    "UserSettings",
    "Friendship",
    "Block",
    "DeviceToken",
    "PrayerDayTimings",
    "PrayerRecord",
    "FastingRecord",
    "LedgerEntry",
    "HasanatTotal",
    "HasanatDailyTotal",
    "AuditEvent",
]
