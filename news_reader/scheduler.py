"""Periodic ingestion with bounded retry on failure."""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from news_reader import config
from news_reader.models import IngestionResult

logger = logging.getLogger(__name__)

INTERVAL_JOB_ID = "news_reader_ingestion"
INITIAL_JOB_ID = "news_reader_initial_run"
RETRY_JOB_ID = "news_reader_retry"


def is_failed_run(result: Any) -> bool:
    """
    A run failed when no source produced items (offline placeholders do not
    count), or when it saved nothing and reported errors.
    """
    if isinstance(result, IngestionResult):
        if result.all_sources_failed:
            return True
        return result.saved_count == 0 and bool(result.errors)
    if isinstance(result, dict):
        return not result.get("count") and bool(result.get("errors"))
    return False


class IngestionScheduler:
    """
    Runs `job` on a fixed interval, first after a short initial delay.

    A failed run schedules a one-shot retry after retry_delay * attempt,
    up to max_retries; after that the counter resets and the next regular
    interval takes over.  Runs never overlap, and a run is skipped when the
    last successful one is younger than min_interval_seconds.
    """

    def __init__(
        self,
        job: Callable[[], Any],
        interval_minutes: float = config.FETCH_INTERVAL_MINUTES,
        retry_delay_seconds: float = config.RETRY_DELAY_SECONDS,
        max_retries: int = config.MAX_RETRIES,
        initial_delay_seconds: float = config.INITIAL_DELAY_SECONDS,
        min_interval_seconds: float = config.MIN_FETCH_INTERVAL_SECONDS,
        scheduler: Optional[Any] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.job = job
        self.interval_minutes = interval_minutes
        self.retry_delay_seconds = retry_delay_seconds
        self.max_retries = max_retries
        self.initial_delay_seconds = initial_delay_seconds
        self.min_interval_seconds = min_interval_seconds
        self.scheduler = scheduler or BackgroundScheduler(timezone="UTC")
        self._clock = clock
        self._lock = threading.Lock()
        self.retry_count = 0
        self.last_success: Optional[float] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        self.scheduler.add_job(
            self._run_job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=INTERVAL_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.add_job(
            self._run_job,
            trigger=DateTrigger(run_date=_in_seconds(self.initial_delay_seconds)),
            id=INITIAL_JOB_ID,
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info(
            "[Scheduler] Started: every %s minute(s), first run in %ss",
            self.interval_minutes, self.initial_delay_seconds,
        )

    def stop(self, wait: bool = False) -> None:
        if getattr(self.scheduler, "running", False):
            self.scheduler.shutdown(wait=wait)
            logger.info("[Scheduler] Stopped")

    def trigger(self, force: bool = False) -> Any:
        """Run the job now in the calling thread.  `force` ignores the minimum interval."""
        return self._run_job(force=force)

    # ------------------------------------------------------------------
    # Job execution
    # ------------------------------------------------------------------

    def _run_job(self, force: bool = False) -> Any:
        if not self._lock.acquire(blocking=False):
            logger.info("[Scheduler] A run is already in progress, skipping")
            return None

        try:
            if not force and self.last_success is not None:
                age = self._clock() - self.last_success
                if age < self.min_interval_seconds:
                    logger.info("[Scheduler] Last successful run %.0fs ago, skipping", age)
                    return None

            logger.info("[Scheduler] Running ingestion")
            try:
                result = self.job()
            except Exception as exc:
                logger.exception("[Scheduler] Ingestion raised: %s", exc)
                self._schedule_retry()
                return None

            if is_failed_run(result):
                logger.warning("[Scheduler] Ingestion failed: no source produced items")
                self._schedule_retry()
            else:
                self.retry_count = 0
                self.last_success = self._clock()
            return result
        finally:
            self._lock.release()

    def _schedule_retry(self) -> None:
        if self.retry_count >= self.max_retries:
            logger.error(
                "[Scheduler] Max retries (%d) reached, waiting for the next scheduled run",
                self.max_retries,
            )
            self.retry_count = 0
            return

        self.retry_count += 1
        delay = self.retry_delay_seconds * self.retry_count
        logger.info(
            "[Scheduler] Retry %d/%d in %ss", self.retry_count, self.max_retries, delay,
        )
        self.scheduler.add_job(
            self._run_job,
            trigger=DateTrigger(run_date=_in_seconds(delay)),
            id=RETRY_JOB_ID,
            replace_existing=True,
        )


def _in_seconds(seconds: float) -> datetime:
    return datetime.now(timezone.utc) + timedelta(seconds=seconds)
