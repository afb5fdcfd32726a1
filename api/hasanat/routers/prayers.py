"""Prayers router: marking and the day's prayer board."""

from datetime import date, datetime

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from hasanat.auth.dependencies import get_current_user
from hasanat.config import settings
from hasanat.database import get_db
from hasanat.dependencies import get_notifier, get_now
from hasanat.middleware.rate_limit import limiter
from hasanat.models.user import User
from hasanat.schemas.prayers import (
    MarkPrayerRequest,
    MarkPrayerResponse,
    PrayerDayItem,
    PrayerDayResponse,
)
from hasanat.services.notifications import ActivityNotifier
from hasanat.services.prayers import PrayerService

router = APIRouter(prefix="/api/v1/prayers", tags=["Prayers"])


@router.post(
    "/mark",
    response_model=MarkPrayerResponse,
    status_code=status.HTTP_200_OK,
)
@limiter.limit(settings.prayer_mark_rate_limit)
async def mark_prayer(
    request: Request,
    data: MarkPrayerRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
    notifier: ActivityNotifier | None = Depends(get_notifier),
) -> MarkPrayerResponse:
    """
    Mark a prayer as prayed.

    Within the on-time window after the prayer starts this awards the
    on-time points, otherwise the late points. Each prayer can be marked
    once per day.
    """
    service = PrayerService(db, notifier)
    result = await service.mark_prayer(user.id, data.date, data.prayer, now)

    return MarkPrayerResponse(
        prayer=result.prayer,
        date=result.date.isoformat(),
        status=result.status,
        points=result.points,
        message=f"{result.prayer} marked as {result.status}. +{result.points} hasanat!",
    )


@router.get(
    "/{day}",
    response_model=PrayerDayResponse,
    status_code=status.HTTP_200_OK,
)
async def get_prayer_day(
    day: date,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
) -> PrayerDayResponse:
    """Window status and logged outcome of each prayer on a day."""
    entries = await PrayerService(db).get_day(user.id, day, now)

    return PrayerDayResponse(
        date=day.isoformat(),
        prayers=[
            PrayerDayItem(
                prayer=entry.prayer,
                start=entry.start.isoformat(),
                end=entry.end.isoformat(),
                window_status=entry.window_status,
                status=entry.record.status if entry.record else None,
                marked_at=(
                    entry.record.marked_at.isoformat()
                    if entry.record and entry.record.marked_at
                    else None
                ),
                points_awarded=entry.record.points_awarded if entry.record else None,
            )
            for entry in entries
        ],
    )
