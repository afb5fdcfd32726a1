"""Audit event model."""

import uuid

from sqlalchemy import (
    Column,
    ForeignKey,
    Index,
    String,
    Uuid,
    func,
)
from sqlalchemy.orm import relationship

from hasanat.database import Base, JSONPayload, UTCDateTime


class AuditEvent(Base):
    """
    Audit trail of scoring events.

    Written in the same transaction as the change it describes, so an event
    exists exactly when its prayer/fasting/ledger rows do.
    """

    __tablename__ = "audit_events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    event_type = Column(String, nullable=False)
    payload = Column(JSONPayload)
    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)

    # Relationships
    user = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        Index("idx_audit_user", "user_id", "created_at"),
        Index("idx_audit_event_type", "event_type", "created_at"),
    )
