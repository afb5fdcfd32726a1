"""Fasting record model."""

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    ForeignKey,
    Integer,
    UniqueConstraint,
    Uuid,
    func,
    text,
)

from hasanat.database import Base, UTCDateTime


class FastingRecord(Base):
    """
    Daily fasting declaration.

    Created once per (user, date). The only permitted change afterwards is a
    single transition from fasting to broken.
    """

    __tablename__ = "fasting_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    is_fasting = Column(Boolean, nullable=False, server_default=text("false"))
    broken = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    broken_at = Column(UTCDateTime)
    points_awarded = Column(Integer, nullable=False, server_default=text("0"))
    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_fasting_log"),
    )
