"""Audit event service for the scoring trail."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from hasanat.models.audit import AuditEvent

# Type aliases
AuditEventType = Literal[
    "prayer_marked",
    "prayer_missed_detected",
    "fasting_status_set",
    "fast_broken",
    "totals_rebuilt",
]


class AuditService:
    """Service for recording audit events."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        user_id: UUID | None,
        event_type: AuditEventType,
        payload: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> AuditEvent:
        """
        Record an audit event.

        Args:
            user_id: ID of the user the event concerns
            event_type: What happened
            payload: JSON-serializable details (dates and instants as ISO strings)
            now: Event time; defaults to the database clock
        """
        event = AuditEvent(
            user_id=user_id,
            event_type=event_type,
            payload=payload or {},
        )
        if now is not None:
            event.created_at = now

        self.db.add(event)
        # Don't commit here - let the caller handle the transaction
        return event


async def log_audit_event(
    db: AsyncSession,
    user_id: UUID | None,
    event_type: AuditEventType,
    payload: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> AuditEvent:
    """
    Convenience function to log an audit event without instantiating the service.

    Usage in services:
        await log_audit_event(
            db,
            user_id=user_id,
            event_type="prayer_marked",
            payload={"prayer": "fajr", "date": "2026-03-01"},
        )
    """
    service = AuditService(db)
    return await service.log(
        user_id=user_id,
        event_type=event_type,
        payload=payload,
        now=now,
    )
