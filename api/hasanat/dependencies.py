"""Non-auth FastAPI dependencies: clock, notifier, and timings provider."""

from datetime import datetime, timezone

from fastapi import Request

from hasanat.config import settings
from hasanat.services.notifications import ActivityNotifier
from hasanat.services.timings import AlAdhanClient


def get_now() -> datetime:
    """Current UTC instant. Overridden in tests to pin the clock."""
    return datetime.now(timezone.utc)


def get_notifier(request: Request) -> ActivityNotifier | None:
    """The application's friend notifier, created in the lifespan handler."""
    return getattr(request.app.state, "notifier", None)


def get_timings_client() -> AlAdhanClient:
    return AlAdhanClient(
        base_url=settings.aladhan_base_url,
        timeout=settings.aladhan_timeout_seconds,
    )
