"""Background job scheduler.

Runs periodic jobs for:
- Evicting stale in-memory rate-limit records (Redis expires keys itself)
"""

import logging
import time

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.config import settings
from app.core.rate_limit import InMemoryRateLimitStore

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler: AsyncIOScheduler | None = None


# ---------------------------------------------------------------------------
# Job: stale rate-limit eviction
# ---------------------------------------------------------------------------


async def evict_stale_rate_limits_job() -> int:
    """Drop rate-limit records whose daily window ended more than one burst interval ago."""
    from app.api.dependencies import peek_rate_limiter

    rate_limiter = peek_rate_limiter()
    if rate_limiter is None or not isinstance(rate_limiter.store, InMemoryRateLimitStore):
        return 0

    try:
        return rate_limiter.store.evict_stale(time.time())
    except Exception:
        logger.error("Rate-limit eviction job failed", exc_info=True)
        return 0


# ---------------------------------------------------------------------------
# Scheduler lifecycle
# ---------------------------------------------------------------------------


def start_scheduler() -> AsyncIOScheduler:
    """Start the background job scheduler."""
    global _scheduler

    if _scheduler is not None:
        logger.warning("Scheduler already running")
        return _scheduler

    _scheduler = AsyncIOScheduler()

    _scheduler.add_job(
        evict_stale_rate_limits_job,
        IntervalTrigger(seconds=settings.rate_limit_cleanup_interval_seconds),
        id="evict_stale_rate_limits",
        name="Evict stale rate-limit records",
        replace_existing=True,
    )

    _scheduler.start()
    logger.info("Background scheduler started with %d jobs", len(_scheduler.get_jobs()))

    return _scheduler


def stop_scheduler() -> None:
    """Stop the background job scheduler."""
    global _scheduler

    if _scheduler is not None:
        _scheduler.shutdown()
        _scheduler = None
        logger.info("Background scheduler stopped")


def get_scheduler() -> AsyncIOScheduler | None:
    """Get the current scheduler instance."""
    return _scheduler

