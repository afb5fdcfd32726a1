"""Timings router: cache a day's prayer instants."""

from datetime import date, datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from hasanat.auth.dependencies import get_current_user
from hasanat.database import get_db
from hasanat.dependencies import get_now, get_timings_client
from hasanat.exceptions import TimingsNotFound
from hasanat.models.timings import PrayerDayTimings
from hasanat.models.user import User
from hasanat.schemas.timings import StoreTimingsRequest, TimingsResponse
from hasanat.services.time_window import TIMING_FIELDS
from hasanat.services.timings import AlAdhanClient, TimingsService

router = APIRouter(prefix="/api/v1/timings", tags=["Timings"])


def _timings_response(row: PrayerDayTimings, created: bool = False) -> TimingsResponse:
    return TimingsResponse(
        date=row.date.isoformat(),
        **{name: getattr(row, name).isoformat() for name in TIMING_FIELDS},
        timezone=row.timezone_used,
        calc_method=row.calc_method,
        calc_school=row.calc_school,
        retrieved_at=row.retrieved_at.isoformat() if row.retrieved_at else None,
        created=created,
    )


@router.get(
    "/{day}",
    response_model=TimingsResponse,
    status_code=status.HTTP_200_OK,
)
async def get_timings(
    day: date,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> TimingsResponse:
    """The cached timings for a day."""
    row = await TimingsService(db).get(user.id, day)
    if row is None:
        raise TimingsNotFound()
    return _timings_response(row)


@router.put(
    "/{day}",
    response_model=TimingsResponse,
    status_code=status.HTTP_200_OK,
)
async def store_timings(
    day: date,
    data: StoreTimingsRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
) -> TimingsResponse:
    """
    Cache timings computed by the client.

    The first stored set for a day wins; a repeat returns the cached row
    with ``created`` false.
    """
    instants = {name: getattr(data, name) for name in TIMING_FIELDS}
    provenance = {
        "timezone_used": data.timezone,
        "calc_method": data.calc_method,
        "calc_school": data.calc_school,
    }
    row, created = await TimingsService(db).store(user.id, day, instants, provenance, now=now)
    return _timings_response(row, created)


@router.post(
    "/{day}/fetch",
    response_model=TimingsResponse,
    status_code=status.HTTP_200_OK,
)
async def fetch_timings(
    day: date,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
    client: AlAdhanClient = Depends(get_timings_client),
) -> TimingsResponse:
    """Serve cached timings, fetching them from AlAdhan on first use."""
    row, created = await TimingsService(db).fetch_and_cache(user, day, client, now=now)
    return _timings_response(row, created)
