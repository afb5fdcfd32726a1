"""Services for the Hasanat API."""

from hasanat.services.audit import AuditService, log_audit_event
from hasanat.services.fasting import FastingService
from hasanat.services.ledger import LedgerService
from hasanat.services.notifications import FriendActivity, FriendNotifier
from hasanat.services.prayers import PrayerService
from hasanat.services.sweeper import MissedPrayerSweeper, SweepResult
from hasanat.services.timings import AlAdhanClient, TimingsService

__all__ = [
    "AuditService",
    "log_audit_event",
    "LedgerService",
    "PrayerService",
    "FastingService",
    "MissedPrayerSweeper",
    "SweepResult",
    "FriendActivity",
    "FriendNotifier",
    "TimingsService",
    "AlAdhanClient",
]
