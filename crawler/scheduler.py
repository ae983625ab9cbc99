import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from core.config import settings
from core.exceptions import SyncException
from crawler.worker import run_worker

logger = logging.getLogger(__name__)


class SyncScheduler:
    def __init__(self, interval_minutes: int = None):
        self.scheduler = AsyncIOScheduler()
        self.interval_minutes = interval_minutes or settings.SYNC_INTERVAL_MINUTES

    async def run_sync_job(self):
        """Job to run a full sync (crawl + swap)"""
        logger.info("Scheduler: Starting full sync")
        try:
            stats = await run_worker()
            logger.info(f"Scheduler: Sync {stats.run_id} finished with {stats.status.value}")
        except SyncException as e:
            logger.error(f"Scheduler: Sync job failed - {e}")

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_sync_job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id="plate_sync_job",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.start()
        logger.info(f"Sync scheduler started (every {self.interval_minutes} minutes)")

    def stop(self):
        self.scheduler.shutdown()
        logger.info("Sync scheduler stopped")
