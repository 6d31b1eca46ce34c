"""
Interval-driven background jobs backed by APScheduler.

Each PeriodicJob owns one BackgroundScheduler with a single interval job. A tick
that fires while the previous run is still in flight is skipped (max_instances=1)
and logged, so runs of the same job never overlap.
"""

import threading
from collections.abc import Callable
from datetime import UTC, datetime

import structlog
from apscheduler.events import EVENT_JOB_MAX_INSTANCES, JobSubmissionEvent
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = structlog.get_logger(__name__)


class PeriodicJob:
    """Runs a callable immediately on start and then every `interval_seconds`"""

    def __init__(self, name: str, func: Callable[[], object], interval_seconds: float):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self.name = name
        self.func = func
        self.interval_seconds = interval_seconds
        self._scheduler: BackgroundScheduler | None = None
        self._lock = threading.Lock()
        self.skipped_ticks = 0

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def start(self, run_immediately: bool = True) -> bool:
        """Arm the timer. Returns False if the job was already running."""
        with self._lock:
            if self._scheduler is not None:
                return False

            scheduler = BackgroundScheduler(timezone=UTC)
            job_kwargs = {}
            if run_immediately:
                job_kwargs["next_run_time"] = datetime.now(UTC)

            scheduler.add_job(
                self._run,
                trigger=IntervalTrigger(seconds=self.interval_seconds, timezone=UTC),
                id=self.name,
                name=self.name,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=None,
                **job_kwargs,
            )
            scheduler.add_listener(self._on_skipped, EVENT_JOB_MAX_INSTANCES)
            scheduler.start()
            self._scheduler = scheduler

        logger.info(
            "Periodic job started",
            job=self.name,
            interval_seconds=self.interval_seconds,
            run_immediately=run_immediately,
        )
        return True

    def stop(self) -> None:
        """Disarm future ticks. An in-flight run is left to complete."""
        with self._lock:
            scheduler, self._scheduler = self._scheduler, None

        if scheduler is None:
            return

        scheduler.shutdown(wait=False)
        logger.info("Periodic job stopped", job=self.name)

    def _run(self) -> None:
        try:
            self.func()
        except Exception as e:
            logger.error("Periodic job run failed", job=self.name, error=str(e), exc_info=True)

    def _on_skipped(self, event: JobSubmissionEvent) -> None:
        self.skipped_ticks += 1
        logger.warning(
            "Tick skipped, previous run still in progress",
            job=self.name,
            skipped_ticks=self.skipped_ticks,
        )
