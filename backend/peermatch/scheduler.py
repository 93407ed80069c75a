"""
Background Scheduler - Periodic Presence Sweep

Clients report presence when the live-support panel opens and closes. A
browser that disappears without closing it would otherwise stay "online"
forever, so profiles not seen for PRESENCE_TIMEOUT_MINUTES are marked
offline on a fixed interval.

Default Schedule: every 5 minutes (PRESENCE_SWEEP_INTERVAL_MINUTES)
"""

import logging
from datetime import timedelta
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import async_sessionmaker

from peermatch.config import get_settings
from peermatch.database import async_session
from peermatch.models.profile import utcnow
from peermatch.services.profile_store import ProfileStore

logger = logging.getLogger(__name__)

settings = get_settings()
scheduler = AsyncIOScheduler()


async def sweep_stale_presence(
    session_factory: async_sessionmaker = async_session,
    timeout: Optional[timedelta] = None,
) -> int:
    """
    Mark users offline whose last status ping is older than the timeout.

    Returns:
        Number of profiles marked offline
    """
    timeout = timeout or timedelta(minutes=settings.presence_timeout_minutes)
    cutoff = utcnow() - timeout

    async with session_factory() as session:
        count = await ProfileStore(session).mark_stale_offline(cutoff)

    if count:
        logger.info(f"Marked {count} stale profiles offline")
    return count


def start_scheduler():
    scheduler.add_job(
        sweep_stale_presence,
        trigger=IntervalTrigger(minutes=settings.presence_sweep_interval_minutes),
        id="presence_sweep",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        f"Scheduler started - presence sweep every {settings.presence_sweep_interval_minutes} minutes"
    )


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown()
