"""Prayer timings cache and the AlAdhan provider client."""

import logging
import re
import uuid
from collections.abc import Mapping
from datetime import date, datetime, timedelta, timezone
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hasanat.config import Settings, settings as default_settings
from hasanat.database import insert_if_absent
from hasanat.exceptions import InvalidTimings, LocationRequired, TimingsProviderError
from hasanat.models.timings import PrayerDayTimings
from hasanat.models.user import User
from hasanat.services.time_window import TIMING_FIELDS, validate_timings_order

logger = logging.getLogger(__name__)

# AlAdhan returns e.g. "05:23 (EST)" or plain "05:23"
_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})")


def _zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidTimings(f"Unknown timezone '{tz_name}'") from exc


def parse_timings(day: date, timings: Mapping[str, str], tz_name: str) -> dict[str, datetime]:
    """
    Convert AlAdhan's local wall-clock strings into UTC instants.

    Each value is read as a time on ``day`` in ``tz_name``. A value that is
    not after its predecessor belongs to the next day (Islamic midnight
    usually falls after civil midnight), so it is rolled forward.

    Raises:
        InvalidTimings: a field is missing or unparseable, or the zone is unknown
    """
    tz = _zone(tz_name)
    instants: dict[str, datetime] = {}
    previous: datetime | None = None
    for name in TIMING_FIELDS:
        raw = timings.get(name.capitalize())
        if raw is None:
            raise InvalidTimings(f"Missing timing '{name}' in provider response")
        match = _TIME_PATTERN.match(raw.strip())
        if not match:
            raise InvalidTimings(f"Cannot parse timing '{name}': {raw!r}")

        local_day = previous.astimezone(tz).date() if previous is not None else day
        hours, minutes = int(match.group(1)), int(match.group(2))
        value = datetime(
            local_day.year, local_day.month, local_day.day, hours, minutes, tzinfo=tz
        )
        if previous is not None and value <= previous:
            value = value + timedelta(days=1)
        instants[name] = value.astimezone(timezone.utc)
        previous = value
    return instants


class AlAdhanClient:
    """Thin async client for the AlAdhan prayer times API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def fetch_day(
        self,
        day: date,
        latitude: float,
        longitude: float,
        method: int,
        school: int,
    ) -> dict[str, Any]:
        """
        Fetch one day's timings for a location.

        Returns the response's ``data`` object (``timings`` and ``meta``).

        Raises:
            TimingsProviderError: on transport errors or a non-success reply
        """
        url = f"{self.base_url}/timings/{day.strftime('%d-%m-%Y')}"
        params = {
            "latitude": latitude,
            "longitude": longitude,
            "method": method,
            "school": school,
        }
        try:
            if self._client is not None:
                response = await self._client.get(url, params=params)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise TimingsProviderError(f"AlAdhan API error: {exc}") from exc

        if not response.is_success:
            raise TimingsProviderError(f"AlAdhan API error: {response.status_code}")

        try:
            body = response.json()
        except ValueError as exc:
            raise TimingsProviderError("AlAdhan API returned invalid JSON") from exc

        if body.get("code") != 200 or not isinstance(body.get("data"), dict):
            raise TimingsProviderError(f"AlAdhan API returned code {body.get('code')}")
        return body["data"]


class TimingsService:
    """
    Per-user, per-day timings cache.

    The first stored set of timings for a day wins; later stores and fetches
    return the cached row unchanged.
    """

    def __init__(self, db: AsyncSession, settings: Settings | None = None):
        self.db = db
        self.settings = settings or default_settings

    async def get(self, user_id: UUID, day: date) -> PrayerDayTimings | None:
        result = await self.db.execute(
            select(PrayerDayTimings).where(
                PrayerDayTimings.user_id == user_id,
                PrayerDayTimings.date == day,
            )
        )
        return result.scalar_one_or_none()

    async def store(
        self,
        user_id: UUID,
        day: date,
        instants: Mapping[str, datetime],
        provenance: Mapping[str, Any] | None = None,
        now: datetime | None = None,
    ) -> tuple[PrayerDayTimings, bool]:
        """
        Cache a day's timings unless already present.

        Returns:
            (row, created) where ``created`` is False when a row already existed

        Raises:
            InvalidTimings: instants missing, naive, or not strictly increasing
        """
        validate_timings_order(instants)
        provenance = dict(provenance or {})
        provenance.setdefault("timezone_used", "UTC")

        values: dict[str, Any] = {
            "id": uuid.uuid4(),
            "user_id": user_id,
            "date": day,
            **{name: instants[name] for name in TIMING_FIELDS},
            **provenance,
        }
        if now is not None:
            values["retrieved_at"] = now
            values["created_at"] = now

        row_id = await insert_if_absent(self.db, PrayerDayTimings, values, ["user_id", "date"])
        await self.db.commit()

        row = await self.get(user_id, day)
        created = row_id is not None
        if created:
            logger.info("Cached prayer timings: user=%s date=%s", user_id, day)
        return row, created

    async def fetch_and_cache(
        self,
        user: User,
        day: date,
        client: AlAdhanClient,
        now: datetime | None = None,
    ) -> tuple[PrayerDayTimings, bool]:
        """
        Serve the cached day, or fetch it from AlAdhan for the user's location.

        Raises:
            LocationRequired: the user has no coordinates
            TimingsProviderError: the provider call failed
        """
        cached = await self.get(user.id, day)
        if cached is not None:
            return cached, False

        if user.latitude is None or user.longitude is None:
            raise LocationRequired()

        data = await client.fetch_day(
            day,
            user.latitude,
            user.longitude,
            self.settings.aladhan_method,
            self.settings.aladhan_school,
        )
        meta = data.get("meta") or {}
        tz_name = meta.get("timezone") or user.timezone or "UTC"
        instants = parse_timings(day, data.get("timings") or {}, tz_name)

        method = meta.get("method") or {}
        provenance = {
            "calc_method": method.get("id", self.settings.aladhan_method),
            "calc_school": 0 if meta.get("school") == "STANDARD" else 1,
            "latitude_used": meta.get("latitude", user.latitude),
            "longitude_used": meta.get("longitude", user.longitude),
            "timezone_used": tz_name,
            "raw_response": data,
        }
        return await self.store(user.id, day, instants, provenance, now=now)
