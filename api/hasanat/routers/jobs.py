"""Scheduler-triggered jobs."""

from datetime import datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from hasanat.auth.dependencies import require_cron_secret
from hasanat.database import get_db
from hasanat.dependencies import get_notifier, get_now
from hasanat.schemas.jobs import SweepResponse
from hasanat.services.notifications import ActivityNotifier
from hasanat.services.sweeper import run_missed_prayer_sweep

router = APIRouter(prefix="/api/v1/jobs", tags=["Jobs"])


@router.post(
    "/missed-prayer-sweep",
    response_model=SweepResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_cron_secret)],
)
async def missed_prayer_sweep(
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
    notifier: ActivityNotifier | None = Depends(get_notifier),
) -> SweepResponse:
    """
    Mark every prayer whose window ended without a log as missed.

    Safe to call repeatedly; a second run over the same state misses nothing.
    """
    result = await run_missed_prayer_sweep(db, now, notifier)
    return SweepResponse(
        processed=result.processed,
        missed=result.missed,
        timestamp=now.isoformat(),
    )
