"""Hasanat ledger and materialized totals."""

import uuid

from sqlalchemy import (
    Column,
    Date,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Text,
    Uuid,
    func,
    text,
)

from hasanat.database import Base, JSONPayload, UTCDateTime
from hasanat.models.prayer import PRAYER_NAME_ENUM


class LedgerEntry(Base):
    """
    Append-only record of a point-affecting event.

    The idempotency key is derived from (user, date, event) so that a
    replayed event collides on insert instead of being counted twice.
    """

    __tablename__ = "hasanat_ledger"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    action = Column(
        Enum(
            "prayer_on_time",
            "prayer_late",
            "fasting_bonus",
            "fasting_revoke",
            "missed_prayer",
            name="ledger_action",
        ),
        nullable=False,
    )
    points = Column(Integer, nullable=False)
    date = Column(Date, nullable=False)
    prayer = Column(PRAYER_NAME_ENUM)
    idempotency_key = Column(Text, nullable=False, unique=True)
    extra_data = Column(JSONPayload)  # 'metadata' is reserved on declarative models
    created_at = Column(UTCDateTime, server_default=func.now())

    __table_args__ = (
        Index("idx_ledger_user_created", "user_id", "created_at"),
        Index("idx_ledger_user_date", "user_id", "date"),
    )


class HasanatTotal(Base):
    """All-time total per user. A cache of SUM(hasanat_ledger.points)."""

    __tablename__ = "hasanat_totals"

    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    all_time_total = Column(Integer, nullable=False, server_default=text("0"))
    updated_at = Column(UTCDateTime, server_default=func.now())


class HasanatDailyTotal(Base):
    """Per-day total per user. A cache of the ledger grouped by date."""

    __tablename__ = "hasanat_daily_totals"

    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    date = Column(Date, primary_key=True)
    points = Column(Integer, nullable=False, server_default=text("0"))
    updated_at = Column(UTCDateTime, server_default=func.now())
