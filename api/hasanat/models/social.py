"""Friend graph and push endpoint models (read-only from the core's side)."""

import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)

from hasanat.database import Base, UTCDateTime


class Friendship(Base):
    """
    Accepted friendship between two users.

    Stored once per pair with user_id_1 < user_id_2.
    """

    __tablename__ = "friendships"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id_1 = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    user_id_2 = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(UTCDateTime, server_default=func.now())

    __table_args__ = (
        CheckConstraint("user_id_1 < user_id_2", name="ck_friendship_ordered"),
        UniqueConstraint("user_id_1", "user_id_2", name="uq_friendship"),
        Index("idx_friendships_user_2", "user_id_2"),
    )


class Block(Base):
    """One user blocking another. Either direction hides activity."""

    __tablename__ = "blocks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    blocker_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    blocked_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(UTCDateTime, server_default=func.now())

    __table_args__ = (
        CheckConstraint("blocker_id != blocked_id", name="ck_block_not_self"),
        UniqueConstraint("blocker_id", "blocked_id", name="uq_block"),
    )


class DeviceToken(Base):
    """Registered Expo push endpoint for a user's device."""

    __tablename__ = "device_tokens"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expo_push_token = Column(Text, nullable=False)
    device_name = Column(Text)
    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "expo_push_token", name="uq_device_token"),
    )
