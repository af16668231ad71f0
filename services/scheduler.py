"""Daily housekeeping: expire referrals whose attribution window has closed."""
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.ext.asyncio import async_sessionmaker

from api.config import settings
from database.base import session_scope
from services.referrals import ReferralTracker

logger = logging.getLogger(__name__)

EXPIRY_JOB_ID = "referral_expiry_sweep"


async def run_expiry_sweep(
    session_maker: Optional[async_sessionmaker] = None,
    batch_size: Optional[int] = None,
) -> int:
    """
    Expire stale referrals batch by batch until a short batch comes back.

    Each batch is committed on its own so a long backlog never holds one
    big transaction open.

    Returns:
        Total number of referrals expired
    """
    batch_size = batch_size or settings.expiry_sweep_batch_size
    total = 0
    try:
        while True:
            async with session_scope(session_maker) as session:
                processed = await ReferralTracker(session).expire_stale_referrals(batch_size=batch_size)
            total += processed
            if processed < batch_size:
                break
    except Exception as e:
        logger.error(f"Referral expiry sweep failed after {total} referrals: {e}", exc_info=True)
        return total

    logger.info(f"Referral expiry sweep finished: {total} expired")
    return total


def create_scheduler(session_maker: Optional[async_sessionmaker] = None) -> AsyncIOScheduler:
    """Build the scheduler with the daily sweep (UTC) registered."""
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        run_expiry_sweep,
        'cron',
        hour=settings.expiry_sweep_hour_utc,
        minute=0,
        kwargs={"session_maker": session_maker},
        id=EXPIRY_JOB_ID,
        replace_existing=True
    )
    logger.info(f"Referral expiry sweep scheduled (daily at {settings.expiry_sweep_hour_utc:02d}:00 UTC)")
    return scheduler
