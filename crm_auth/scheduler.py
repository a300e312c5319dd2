import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from crm_auth.stores.session_store import SessionStore
from crm_auth.utils.security import utcnow

logger = logging.getLogger(__name__)

SESSION_SWEEP_JOB_ID = "purge_expired_sessions"


async def purge_expired_sessions(sessions: SessionStore) -> int:
    """Delete sessions whose refresh window has closed."""
    try:
        count = await sessions.purge_expired(utcnow())
    except Exception:
        # The next run retries; a failed sweep must not stop the scheduler
        logger.exception("[Scheduler] Session sweep failed")
        return 0
    logger.info("[Scheduler] Session sweep removed %d sessions", count)
    return count


def create_scheduler(sessions: SessionStore, interval_minutes: int) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        purge_expired_sessions,
        trigger=IntervalTrigger(minutes=interval_minutes),
        args=[sessions],
        id=SESSION_SWEEP_JOB_ID,
        replace_existing=True,
    )
    logger.info("[Scheduler] Session sweep scheduled every %d minutes", interval_minutes)
    return scheduler
