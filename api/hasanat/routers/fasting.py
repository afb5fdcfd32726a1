"""Fasting router."""

from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from hasanat.auth.dependencies import get_current_user
from hasanat.config import settings
from hasanat.database import get_db
from hasanat.dependencies import get_notifier, get_now
from hasanat.middleware.rate_limit import limiter
from hasanat.models.user import User
from hasanat.schemas.fasting import (
    BreakFastRequest,
    BreakFastResponse,
    FastingDayResponse,
    SetFastingRequest,
    SetFastingResponse,
)
from hasanat.services.fasting import FastingService, get_fasting_record
from hasanat.services.notifications import ActivityNotifier

router = APIRouter(prefix="/api/v1/fasting", tags=["Fasting"])


@router.post(
    "",
    response_model=SetFastingResponse,
    status_code=status.HTTP_200_OK,
)
@limiter.limit(settings.fasting_rate_limit)
async def set_fasting(
    request: Request,
    data: SetFastingRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
    notifier: ActivityNotifier | None = Depends(get_notifier),
) -> SetFastingResponse:
    """
    Declare today's (or any date's) fasting status.

    The declaration is final; fasting earns the fasting bonus.
    """
    result = await FastingService(db, notifier).set_fasting(
        user.id, data.date, data.is_fasting, now
    )

    message = (
        f"Fasting today! +{result.points} hasanat." if result.is_fasting else "Not fasting today."
    )
    return SetFastingResponse(
        date=result.date.isoformat(),
        is_fasting=result.is_fasting,
        points=result.points,
        message=message,
    )


@router.post(
    "/break",
    response_model=BreakFastResponse,
    status_code=status.HTTP_200_OK,
)
@limiter.limit(settings.fasting_rate_limit)
async def break_fast(
    request: Request,
    data: BreakFastRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
    notifier: ActivityNotifier | None = Depends(get_notifier),
) -> BreakFastResponse:
    """Break a declared fast, revoking its bonus."""
    result = await FastingService(db, notifier).break_fast(user.id, data.date, now)

    return BreakFastResponse(
        date=result.date.isoformat(),
        points=result.points,
        message=f"Fast broken. {result.points} hasanat.",
    )


@router.get(
    "/{day}",
    response_model=FastingDayResponse,
    status_code=status.HTTP_200_OK,
)
async def get_fasting_day(
    day: date,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> FastingDayResponse:
    """The stored fasting record for a date."""
    record = await get_fasting_record(db, user.id, day)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": {
                    "code": "NOT_FOUND",
                    "message": f"No fasting log for {day.isoformat()}",
                }
            },
        )

    return FastingDayResponse(
        date=record.date.isoformat(),
        is_fasting=record.is_fasting,
        broken=record.broken,
        broken_at=record.broken_at.isoformat() if record.broken_at else None,
        points_awarded=record.points_awarded,
    )
