# app/scheduler.py
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from pytz import timezone

from app.dependencies import get_auction_service
from app.utils.logger import logger
from app.utils.decorators import job_runner
from app.config import settings


@job_runner("Auction Timer")
async def run_auction_timer():
    await get_auction_service().tick()


JOBS = [
    {
        "id": "auction_timer",
        "func": run_auction_timer,
        "seconds": settings.TIMER_TICK_SECONDS,
    },
]


def start_scheduler() -> AsyncIOScheduler:
    """Initializes and starts the APScheduler with jobs defined in the JOBS list."""
    kolkata_tz = timezone("Asia/Kolkata")
    scheduler = AsyncIOScheduler(timezone=kolkata_tz)

    for job in JOBS:
        scheduler.add_job(
            job["func"],
            IntervalTrigger(seconds=job["seconds"], timezone=kolkata_tz),
            id=job["id"],
            name=job["id"],
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info(f"Scheduled job '{job['id']}' every {job['seconds']}s")

    scheduler.start()
    logger.info("Scheduler started successfully!")
    return scheduler
