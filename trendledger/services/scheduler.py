"""Background scheduling for the metadata update job.

Runs the job once at start-up and then on a fixed interval using APScheduler,
with overlap prevention so a slow run is never doubled up.
"""

import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from trendledger.logger import get_logger

logger = get_logger(__name__)

JOB_ID = "metadata_update"


class MetadataScheduler:
    """Schedules a metadata update callable on an interval."""

    def __init__(self, job: Callable[[], object], interval_minutes: int = 10):
        if interval_minutes < 1:
            raise ValueError(f"Invalid interval_minutes: {interval_minutes}. Must be >= 1")

        self.job = job
        self.interval_minutes = interval_minutes
        self.scheduler: Optional[BackgroundScheduler] = None
        self._execution_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    def start(self, run_immediately: bool = True) -> None:
        """Start the scheduler. The first run happens right away unless disabled."""
        if self.is_running:
            logger.warning("Scheduler is already running")
            return

        self.scheduler = BackgroundScheduler(timezone="UTC")
        self.scheduler.add_listener(self._on_job_event, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
        # Passing next_run_time=None would add the job paused, so only set it when needed
        job_options = {}
        if run_immediately:
            job_options["next_run_time"] = datetime.now(timezone.utc)

        self.scheduler.add_job(
            func=self.run_once,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=JOB_ID,
            name="Market Metadata Update",
            replace_existing=True,
            max_instances=1,
            **job_options,
        )
        self.scheduler.start()
        logger.info(f"Scheduler started with {self.interval_minutes} minute interval")

    def stop(self, wait: bool = True) -> None:
        """Stop the scheduler gracefully."""
        if not self.is_running:
            logger.warning("Scheduler is not running")
            return

        logger.info("Stopping scheduler...")
        self.scheduler.shutdown(wait=wait)
        self.scheduler = None
        logger.info("Scheduler stopped")

    def run_once(self) -> bool:
        """Run the job unless a previous run is still in progress.

        Returns True when the job ran to completion.
        """
        if not self._execution_lock.acquire(blocking=False):
            logger.warning("Metadata update skipped: previous run still in progress")
            return False

        start_time = datetime.now(timezone.utc)
        try:
            self.job()
            duration = (datetime.now(timezone.utc) - start_time).total_seconds()
            logger.info(f"Metadata update finished in {duration:.2f}s")
            return True
        except Exception as e:
            duration = (datetime.now(timezone.utc) - start_time).total_seconds()
            logger.error(f"Metadata update failed after {duration:.2f}s: {e}", exc_info=True)
            return False
        finally:
            self._execution_lock.release()

    def _on_job_event(self, event) -> None:
        if event.exception:
            logger.error(f"Job {event.job_id} raised an exception: {event.exception}")
        else:
            logger.debug(f"Job {event.job_id} executed")

    def get_next_run_time(self) -> Optional[datetime]:
        if not self.is_running:
            return None
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None

    def get_status(self) -> dict:
        next_run = self.get_next_run_time()
        return {
            "is_running": self.is_running,
            "job_running": self._execution_lock.locked(),
            "interval_minutes": self.interval_minutes,
            "next_run_time": next_run.isoformat() if next_run else None,
        }
