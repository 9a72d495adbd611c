"""Background task scheduler for log indexing and status refresh."""

import logging
from datetime import UTC, datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from statusboard.config import get_settings
from statusboard.database import async_session_maker
from statusboard.services.aggregator import get_aggregator
from statusboard.services.checkpoints import InvariantViolation
from statusboard.services.indexer import WithdrawalIndexer

logger = logging.getLogger(__name__)
settings = get_settings()

WITHDRAWAL_INDEXER_JOB_ID = "index_withdrawal_requests"
STATUS_REFRESH_JOB_ID = "refresh_status"
ACTIVITY_REFRESH_JOB_ID = "refresh_activity"

# Global scheduler instance
scheduler: AsyncIOScheduler | None = None


async def index_withdrawal_requests_job() -> None:
    """
    Background job to scan the next block range for withdrawal requests.

    Failures are logged and retried on the next tick. A checkpoint regression
    stops the task.
    """
    try:
        async with async_session_maker() as db:
            summary = await WithdrawalIndexer(db).tick()
            if summary:
                logger.info(
                    f"Withdrawal indexer tick complete: blocks {summary.from_block}-"
                    f"{summary.to_block}, {summary.logs_seen} logs, {summary.inserted} new"
                )
    except InvariantViolation as e:
        logger.critical(f"Withdrawal indexer stopped: {e}", exc_info=True)
        if scheduler and scheduler.get_job(WITHDRAWAL_INDEXER_JOB_ID):
            scheduler.remove_job(WITHDRAWAL_INDEXER_JOB_ID)
    except Exception as e:
        logger.error(f"Withdrawal indexer tick failed: {e}", exc_info=True)


async def refresh_status_job() -> None:
    """Background job to refresh the aggregated status and its last known values."""
    try:
        snapshot = await get_aggregator().snapshot()
        logger.info(
            f"Status refreshed: network={snapshot.network.model_dump()}, "
            f"bridge={snapshot.bridge.status.value}, balances={snapshot.balances.status.value}, "
            f"wallets={snapshot.wallets.status.value}"
        )
    except Exception as e:
        logger.error(f"Status refresh failed: {e}", exc_info=True)


async def refresh_activity_job() -> None:
    """Background job to recompute the account abstraction activity stats."""
    try:
        activity = await get_aggregator().refresh_activity()
        logger.info(f"Activity stats refreshed: {activity.status.value}")
    except Exception as e:
        logger.error(f"Activity refresh failed: {e}", exc_info=True)


def setup_scheduler() -> AsyncIOScheduler:
    """Set up and start the background task scheduler."""
    global scheduler

    scheduler = AsyncIOScheduler()
    now = datetime.now(UTC)

    # One active scanner per task
    scheduler.add_job(
        index_withdrawal_requests_job,
        trigger=IntervalTrigger(seconds=settings.indexer_poll_interval_seconds),
        next_run_time=now,
        id=WITHDRAWAL_INDEXER_JOB_ID,
        name="Index withdrawal requests from rollup logs",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )

    scheduler.add_job(
        refresh_status_job,
        trigger=IntervalTrigger(seconds=settings.status_refresh_interval_seconds),
        next_run_time=now + timedelta(seconds=1),
        id=STATUS_REFRESH_JOB_ID,
        name="Refresh network, bridge and balance status",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )

    scheduler.add_job(
        refresh_activity_job,
        trigger=IntervalTrigger(seconds=settings.activity_refresh_interval_seconds),
        next_run_time=now + timedelta(seconds=2),
        id=ACTIVITY_REFRESH_JOB_ID,
        name="Refresh account abstraction activity stats",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )

    scheduler.start()
    logger.info("Scheduler started")

    return scheduler


def shutdown_scheduler() -> None:
    """Shut down the scheduler gracefully."""
    global scheduler

    if scheduler:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler shut down")
        scheduler = None
