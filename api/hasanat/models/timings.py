"""Per-user, per-day prayer timings cache."""

import uuid

from sqlalchemy import (
    Column,
    Date,
    Float,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)

from hasanat.database import Base, JSONPayload, UTCDateTime


class PrayerDayTimings(Base):
    """
    The six prayer instants for one user and one date, plus Islamic midnight.

    Rows are immutable once written: the first stored set of timings for a
    (user, date) wins and is served from here afterwards.
    """

    __tablename__ = "prayer_day_timings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    fajr = Column(UTCDateTime, nullable=False)
    sunrise = Column(UTCDateTime, nullable=False)
    dhuhr = Column(UTCDateTime, nullable=False)
    asr = Column(UTCDateTime, nullable=False)
    maghrib = Column(UTCDateTime, nullable=False)
    isha = Column(UTCDateTime, nullable=False)
    midnight = Column(UTCDateTime, nullable=False)  # end of Isha's window
    calc_method = Column(Integer)
    calc_school = Column(Integer)
    latitude_used = Column(Float)
    longitude_used = Column(Float)
    timezone_used = Column(Text, nullable=False)
    raw_response = Column(JSONPayload)
    retrieved_at = Column(UTCDateTime, server_default=func.now())
    created_at = Column(UTCDateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_prayer_day_timings"),
    )
