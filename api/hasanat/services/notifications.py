"""
Friend notification fanout.

Recipients of an activity are the actor's accepted friends minus anyone in
a block relationship with the actor (either direction), minus friends who
switched the category off, minus friends currently inside their quiet
hours. Delivery happens on a detached task; nothing here can fail the
request that triggered it.
"""

import asyncio
import logging
from collections.abc import Iterable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from datetime import datetime, time
from typing import Any, Callable, Literal, Protocol
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hasanat.config import Settings
from hasanat.models.social import Block, DeviceToken, Friendship
from hasanat.models.user import User, UserSettings
from hasanat.services.push import ExpoPushTransport, PushMessage, PushTransport

logger = logging.getLogger(__name__)

NotificationCategory = Literal["friend_prayer", "friend_fasting", "missed_prayer"]

# UserSettings column holding the opt-in flag for each category
CATEGORY_PREFERENCES: dict[str, str] = {
    "friend_prayer": "notify_friend_prayer",
    "friend_fasting": "notify_friend_fasting",
    "missed_prayer": "notify_missed_prayer",
}

FALLBACK_DISPLAY_NAME = "A friend"


@dataclass(frozen=True)
class FriendActivity:
    """
    Something a user did that their friends may hear about.

    ``body_template`` is formatted with ``name`` (the actor's display name)
    at delivery time. Payload data must stay privacy-safe: prayer and date,
    never location or exact timings.
    """

    actor_id: UUID
    category: NotificationCategory
    title: str
    body_template: str
    occurred_at: datetime
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Recipient:
    user_id: UUID
    token: str


class ActivityNotifier(Protocol):
    """What the scoring services need from the fanout."""

    def dispatch(self, activity: FriendActivity) -> None: ...


def in_quiet_hours(local_time: time, start: time | None, end: time | None) -> bool:
    """
    Whether ``local_time`` falls inside the quiet range ``[start, end]``.

    A range whose start is after its end wraps past midnight, e.g.
    22:00-06:00 covers 23:30 and 05:00. Both bounds are inclusive.
    """
    if start is None or end is None:
        return False
    if start <= end:
        return start <= local_time <= end
    return local_time >= start or local_time <= end


def _local_time(now: datetime, tz_name: str | None) -> time:
    try:
        tz = ZoneInfo(tz_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, evaluating quiet hours in UTC", tz_name)
        tz = ZoneInfo("UTC")
    return now.astimezone(tz).time().replace(tzinfo=None)


async def get_friend_ids(db: AsyncSession, user_id: UUID) -> set[UUID]:
    """Accepted friends of ``user_id``."""
    result = await db.execute(
        select(Friendship.user_id_1, Friendship.user_id_2).where(
            or_(Friendship.user_id_1 == user_id, Friendship.user_id_2 == user_id)
        )
    )
    return {a if b == user_id else b for a, b in result.all()}


async def get_blocked_ids(db: AsyncSession, user_id: UUID) -> set[UUID]:
    """Users in a block relationship with ``user_id``, in either direction."""
    result = await db.execute(
        select(Block.blocker_id, Block.blocked_id).where(
            or_(Block.blocker_id == user_id, Block.blocked_id == user_id)
        )
    )
    return {blocked if blocker == user_id else blocker for blocker, blocked in result.all()}


async def resolve_recipients(
    db: AsyncSession,
    actor_id: UUID,
    category: NotificationCategory,
    now: datetime,
) -> list[Recipient]:
    """Push endpoints that should receive ``category`` news about ``actor_id``."""
    candidates = await get_friend_ids(db, actor_id) - await get_blocked_ids(db, actor_id)
    if not candidates:
        return []

    preference = CATEGORY_PREFERENCES[category]
    result = await db.execute(
        select(User.id, User.timezone, UserSettings)
        .outerjoin(UserSettings, UserSettings.user_id == User.id)
        .where(User.id.in_(candidates))
    )

    eligible: set[UUID] = set()
    for friend_id, tz_name, friend_settings in result.all():
        if friend_settings is not None:
            if not getattr(friend_settings, preference):
                continue
            if in_quiet_hours(
                _local_time(now, tz_name),
                friend_settings.quiet_hours_start,
                friend_settings.quiet_hours_end,
            ):
                continue
        eligible.add(friend_id)

    if not eligible:
        return []

    tokens = await db.execute(
        select(DeviceToken.user_id, DeviceToken.expo_push_token)
        .where(DeviceToken.user_id.in_(eligible))
        .order_by(DeviceToken.user_id, DeviceToken.created_at)
    )
    return [Recipient(user_id=uid, token=token) for uid, token in tokens.all()]


async def get_display_name(db: AsyncSession, user_id: UUID) -> str:
    result = await db.execute(
        select(User.display_name, User.username).where(User.id == user_id)
    )
    row = result.one_or_none()
    if row is None:
        return FALLBACK_DISPLAY_NAME
    display_name, username = row
    return display_name or username or FALLBACK_DISPLAY_NAME


async def prune_device_tokens(db: AsyncSession, recipients: Iterable[Recipient]) -> int:
    """Delete push endpoints the transport reported as permanently invalid."""
    pruned = 0
    for recipient in set(recipients):
        result = await db.execute(
            delete(DeviceToken).where(
                DeviceToken.user_id == recipient.user_id,
                DeviceToken.expo_push_token == recipient.token,
            )
        )
        pruned += result.rowcount or 0
    if pruned:
        logger.info("Cleaning up %d invalid push tokens", pruned)
    return pruned


SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class FriendNotifier:
    """
    Fire-and-forget fanout of friend activity over a push transport.

    ``dispatch`` returns immediately; the work runs on its own task with its
    own database session.
    """

    def __init__(self, session_factory: SessionFactory, transport: PushTransport):
        self.session_factory = session_factory
        self.transport = transport
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, activity: FriendActivity) -> None:
        """Schedule delivery without waiting for it."""
        task = asyncio.create_task(self._deliver_quietly(activity))
        # Keep a reference until done so the task isn't garbage collected
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver_quietly(self, activity: FriendActivity) -> None:
        try:
            await self.deliver(activity)
        except Exception:
            logger.exception(
                "Friend notification failed: actor=%s category=%s",
                activity.actor_id,
                activity.category,
            )

    async def deliver(self, activity: FriendActivity) -> int:
        """
        Resolve recipients, send, and prune invalid endpoints.

        Returns the number of messages accepted by the transport.
        """
        async with self.session_factory() as db:
            recipients = await resolve_recipients(
                db, activity.actor_id, activity.category, activity.occurred_at
            )
            if not recipients:
                return 0

            name = await get_display_name(db, activity.actor_id)
            body = activity.body_template.format(name=name)
            messages = [
                PushMessage(
                    to=recipient.token,
                    title=activity.title,
                    body=body,
                    data={"type": activity.category, **activity.data},
                )
                for recipient in recipients
            ]

            tickets = await self.transport.send(messages)

            failed = [t for t in tickets if not t.ok]
            if failed:
                logger.warning(
                    "%d of %d push messages failed for %s",
                    len(failed),
                    len(messages),
                    activity.category,
                )

            invalid = [
                recipient
                for recipient, ticket in zip(recipients, tickets)
                if ticket.invalid_endpoint
            ]
            if invalid:
                await prune_device_tokens(db, invalid)
                await db.commit()

            return sum(1 for t in tickets if t.ok)

    async def drain(self) -> None:
        """Wait for in-flight deliveries, e.g. on shutdown."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


def build_friend_notifier(settings: Settings, session_factory: SessionFactory) -> FriendNotifier:
    """FriendNotifier delivering through Expo with the configured limits."""
    transport = ExpoPushTransport(
        url=settings.expo_push_url,
        access_token=settings.expo_access_token,
        batch_size=settings.push_batch_size,
        timeout=settings.push_timeout_seconds,
    )
    return FriendNotifier(session_factory, transport)
