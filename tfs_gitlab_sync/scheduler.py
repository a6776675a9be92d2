"""Background scheduler for periodic sync"""

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from tfs_gitlab_sync.services.sync_service import SyncService

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Runs the sync cycle on a fixed interval, plus on demand"""

    JOB_ID = "sync_cycle"

    def __init__(self, sync_service: SyncService, interval_seconds: int):
        self.sync_service = sync_service
        self.interval_seconds = interval_seconds
        self.scheduler = BackgroundScheduler(timezone=timezone.utc)

    @property
    def running(self) -> bool:
        return bool(self.scheduler.running)

    def start(self):
        """Start the scheduler; the first cycle runs immediately."""
        self.scheduler.start()
        self.scheduler.add_job(
            func=self._sync_job,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=self.JOB_ID,
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info(f"Sync scheduler started (every {self.interval_seconds}s)")

    def trigger_now(self) -> bool:
        """Pull the next cycle forward to now. False if the scheduler isn't running."""
        if not self.running:
            return False
        job = self.scheduler.get_job(self.JOB_ID)
        if job is None:
            return False
        job.modify(next_run_time=datetime.now(timezone.utc))
        logger.info("Immediate sync cycle requested")
        return True

    def stop(self):
        """Let the current repository finish, then shut down"""
        self.sync_service.request_stop()
        if self.running:
            self.scheduler.shutdown(wait=True)
        self.sync_service.close()
        logger.info("Sync scheduler stopped")

    def _sync_job(self):
        """Job function running one sync cycle"""
        try:
            result = self.sync_service.run_cycle()
            logger.info(f"Sync cycle finished: {result.get('status')}")
        except Exception as e:
            logger.error(f"Sync cycle failed: {e}")
