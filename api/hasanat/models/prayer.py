"""Prayer record model: the one-shot outcome of a prayer for a day."""

import uuid

from sqlalchemy import (
    Column,
    Date,
    Enum,
    ForeignKey,
    Index,
    Integer,
    UniqueConstraint,
    Uuid,
    func,
    text,
)

from hasanat.database import Base, UTCDateTime

PRAYER_NAME_ENUM = Enum("fajr", "dhuhr", "asr", "maghrib", "isha", name="prayer_name")


class PrayerRecord(Base):
    """
    Outcome of one prayer for one user on one date.

    Exactly one row per (user, date, prayer); the unique constraint is the
    concurrency guard between the marking endpoint and the missed-prayer
    sweep. Rows are never updated.
    """

    __tablename__ = "prayer_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    prayer = Column(PRAYER_NAME_ENUM, nullable=False)
    status = Column(
        Enum("on_time", "late", "missed", name="prayer_status"),
        nullable=False,
    )
    marked_at = Column(UTCDateTime)  # NULL when missed
    prayer_time = Column(UTCDateTime, nullable=False)
    prayer_end_time = Column(UTCDateTime, nullable=False)
    points_awarded = Column(Integer, nullable=False, server_default=text("0"))
    created_at = Column(UTCDateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "date", "prayer", name="uq_prayer_log"),
        Index("idx_prayer_logs_date", "date"),
    )
