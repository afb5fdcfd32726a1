"""
Scheduled jobs.

Run the missed-prayer sweep once (for cron)::

    python -m hasanat.jobs

or let the API process run it on an interval by setting ``SWEEP_ENABLED=true``.
"""

import asyncio
import logging
from datetime import datetime, timezone

from hasanat.config import Settings, settings as default_settings
from hasanat.database import AsyncSessionLocal
from hasanat.services.notifications import (
    ActivityNotifier,
    SessionFactory,
    build_friend_notifier,
)
from hasanat.services.sweeper import SweepResult, run_missed_prayer_sweep

logger = logging.getLogger(__name__)


async def run_sweep_once(
    session_factory: SessionFactory = AsyncSessionLocal,
    notifier: ActivityNotifier | None = None,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> SweepResult:
    """Run a single sweep in a fresh session."""
    now = now or datetime.now(timezone.utc)
    async with session_factory() as db:
        return await run_missed_prayer_sweep(db, now, notifier, settings)


async def run_sweep_forever(
    interval_seconds: float,
    session_factory: SessionFactory = AsyncSessionLocal,
    notifier: ActivityNotifier | None = None,
    settings: Settings | None = None,
) -> None:
    """Sweep every ``interval_seconds`` until cancelled."""
    logger.info("Missed-prayer sweep scheduled every %.0f seconds", interval_seconds)
    while True:
        try:
            await run_sweep_once(session_factory, notifier, settings=settings)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Missed-prayer sweep run failed")
        await asyncio.sleep(interval_seconds)


async def _sweep_and_drain() -> SweepResult:
    notifier = build_friend_notifier(default_settings, AsyncSessionLocal)
    result = await run_sweep_once(notifier=notifier, settings=default_settings)
    # Push fanout runs on detached tasks; finish them before the loop closes
    await notifier.drain()
    return result


def main() -> int:
    """CLI entry point: one sweep including friend notifications, then exit."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    result = asyncio.run(_sweep_and_drain())
    logger.info("processed=%d missed=%d", result.processed, result.missed)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
