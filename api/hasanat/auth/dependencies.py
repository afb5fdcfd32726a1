"""Authentication dependencies for FastAPI endpoints."""

import hmac
from datetime import datetime, timezone

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hasanat.auth.api_key import API_KEY_PREFIX, hash_api_key
from hasanat.config import settings
from hasanat.database import get_db
from hasanat.models.user import APIKey, User

# Minimum interval between last_used_at updates to reduce write amplification
LAST_USED_UPDATE_INTERVAL_SECONDS = 300  # 5 minutes


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": {
                "code": "UNAUTHORIZED",
                "message": message,
            }
        },
    )


async def get_current_user(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Validate the X-API-Key header and return the key's user.

    Raises:
        HTTPException: 401 if API key is missing, invalid, expired, or revoked
    """
    if not x_api_key:
        raise _unauthorized("API key required")

    if not x_api_key.startswith(API_KEY_PREFIX):
        raise _unauthorized("Invalid API key format")

    key_hash = hash_api_key(x_api_key)

    result = await db.execute(
        select(APIKey)
        .options(selectinload(APIKey.user))
        .where(APIKey.key_hash == key_hash)
        .where(APIKey.revoked_at.is_(None))
    )
    api_key = result.scalar_one_or_none()

    if not api_key:
        # Keep response time independent of whether the key exists
        hmac.compare_digest(key_hash, "0" * 64)
        raise _unauthorized("Invalid or revoked API key")

    now = datetime.now(timezone.utc)
    if api_key.expires_at is not None and api_key.expires_at < now:
        raise _unauthorized("API key has expired")

    # Sampled last_used_at update, committed with the request's transaction
    if (
        api_key.last_used_at is None
        or (now - api_key.last_used_at).total_seconds() > LAST_USED_UPDATE_INTERVAL_SECONDS
    ):
        api_key.last_used_at = now

    return api_key.user


async def require_cron_secret(
    x_cron_secret: str | None = Header(default=None, alias="X-Cron-Secret"),
) -> None:
    """
    Guard for scheduler-only endpoints.

    Raises:
        HTTPException: 401 if the X-Cron-Secret header is missing or wrong
    """
    if not x_cron_secret or not hmac.compare_digest(x_cron_secret, settings.cron_secret):
        raise _unauthorized("Invalid cron secret")
