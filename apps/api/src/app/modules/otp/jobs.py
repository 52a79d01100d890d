"""
OTP Background Jobs

Scheduled cleanup of one-time passcode challenges that expired without being
used. Request handlers already delete an expired challenge when they detect
it; this job removes the ones nobody came back for.

The job is idempotent and can be triggered manually via the debug endpoints.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from app.core.database import async_session_maker
from app.core.scheduler import register_job
from app.modules.otp import repository

logger = logging.getLogger(__name__)

PURGE_INTERVAL_MINUTES = 30

JOB_ID_PURGE_EXPIRED = "otp_purge_expired_challenges"


async def purge_expired_challenges() -> dict[str, Any]:
    """
    Delete every challenge whose expiry has passed.

    Returns:
        Dict with the number of challenges removed
    """
    now = datetime.now(UTC)

    async with async_session_maker() as db:
        deleted = await repository.delete_expired(db, now)
        await db.commit()

    if deleted:
        logger.info(f"Purged {deleted} expired OTP challenge(s)")
    else:
        logger.debug("No expired OTP challenges to purge")

    return {"deleted": deleted, "executed_at": now.isoformat()}


async def _purge_job() -> None:
    await purge_expired_challenges()


def register_otp_jobs() -> None:
    """Register OTP jobs with the scheduler. Call before start_scheduler()."""
    register_job(
        job_id=JOB_ID_PURGE_EXPIRED,
        func=_purge_job,
        trigger=IntervalTrigger(minutes=PURGE_INTERVAL_MINUTES),
    )
