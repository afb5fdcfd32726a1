"""User settings router."""

from datetime import datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hasanat.auth.dependencies import get_current_user
from hasanat.config import settings as app_settings
from hasanat.database import get_db
from hasanat.dependencies import get_now
from hasanat.models.user import User, UserSettings
from hasanat.schemas.settings import SettingsResponse, UpdateSettingsRequest
from hasanat.services.time_window import validate_on_time_window

router = APIRouter(prefix="/api/v1/settings", tags=["Settings"])


def _settings_response(row: UserSettings | None) -> SettingsResponse:
    if row is None:
        return SettingsResponse(
            on_time_window_minutes=app_settings.default_on_time_window_minutes,
            quiet_hours_start=None,
            quiet_hours_end=None,
            notify_prayer_reminder=True,
            notify_friend_prayer=True,
            notify_friend_fasting=True,
            notify_missed_prayer=True,
        )
    return SettingsResponse(
        on_time_window_minutes=row.on_time_window_minutes,
        quiet_hours_start=row.quiet_hours_start.strftime("%H:%M") if row.quiet_hours_start else None,
        quiet_hours_end=row.quiet_hours_end.strftime("%H:%M") if row.quiet_hours_end else None,
        notify_prayer_reminder=row.notify_prayer_reminder,
        notify_friend_prayer=row.notify_friend_prayer,
        notify_friend_fasting=row.notify_friend_fasting,
        notify_missed_prayer=row.notify_missed_prayer,
    )


async def _get_user_settings(db: AsyncSession, user_id) -> UserSettings | None:
    result = await db.execute(select(UserSettings).where(UserSettings.user_id == user_id))
    return result.scalar_one_or_none()


@router.get(
    "",
    response_model=SettingsResponse,
    status_code=status.HTTP_200_OK,
)
async def get_settings(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> SettingsResponse:
    """The authenticated user's settings, with defaults when never saved."""
    return _settings_response(await _get_user_settings(db, user.id))


@router.patch(
    "",
    response_model=SettingsResponse,
    status_code=status.HTTP_200_OK,
)
async def update_settings(
    data: UpdateSettingsRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
) -> SettingsResponse:
    """
    Update settings.

    Only fields present in the request change. Quiet hours may be cleared
    by sending null.
    """
    row = await _get_user_settings(db, user.id)
    if row is None:
        row = UserSettings(
            user_id=user.id,
            on_time_window_minutes=app_settings.default_on_time_window_minutes,
            created_at=now,
        )
        db.add(row)

    for field in data.model_fields_set:
        value = getattr(data, field)
        if field == "on_time_window_minutes":
            if value is None:
                continue
            value = validate_on_time_window(value)
        elif field.startswith("notify_") and value is None:
            continue
        setattr(row, field, value)
    row.updated_at = now

    await db.commit()
    return _settings_response(row)
