"""User, APIKey, and UserSettings models."""

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import relationship

from hasanat.database import Base, UTCDateTime


class User(Base):
    """User account model. Identity is managed upstream; we only read it."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String, unique=True, nullable=False)
    display_name = Column(Text)
    latitude = Column(Float)
    longitude = Column(Float)
    timezone = Column(String, nullable=False, server_default=text("'UTC'"), default="UTC")
    created_at = Column(UTCDateTime, server_default=func.now())

    api_keys = relationship("APIKey", back_populates="user", cascade="all, delete-orphan")
    settings = relationship(
        "UserSettings", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )


class APIKey(Base):
    """API key model for client authentication."""

    __tablename__ = "api_keys"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    key_hash = Column(Text, nullable=False, unique=True)
    key_prefix = Column(String(12), nullable=False)
    name = Column(Text)
    created_at = Column(UTCDateTime, server_default=func.now())
    last_used_at = Column(UTCDateTime)
    expires_at = Column(UTCDateTime)
    revoked_at = Column(UTCDateTime)

    user = relationship("User", back_populates="api_keys")


class UserSettings(Base):
    """
    Per-user preferences that affect scoring and notification fanout.

    A missing row means every column takes its default.
    """

    __tablename__ = "user_settings"

    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    on_time_window_minutes = Column(
        Integer, nullable=False, default=30, server_default=text("30")
    )
    quiet_hours_start = Column(Time)
    quiet_hours_end = Column(Time)
    notify_prayer_reminder = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    notify_friend_prayer = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    notify_friend_fasting = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    notify_missed_prayer = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "on_time_window_minutes BETWEEN 5 AND 120",
            name="ck_on_time_window_range",
        ),
    )

    user = relationship("User", back_populates="settings")
