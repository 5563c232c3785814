"""
APScheduler-driven check for due sync jobs.

One interval job ("sync_check") fires every minute on the asyncio loop and
looks for enabled jobs whose time of day is within the tolerance window of
the current local time. Starting the scheduler also runs one check
immediately, so a cold start doesn't wait a full interval.

Scheduled checks and manual "sync now" requests share one asyncio.Lock, so
runs are serialized on the event loop and the job list / history are only
ever touched from that loop.

Each job fires at most once per scheduled slot. The slot is the calendar
date of the occurrence being matched (a 23:58 job matched at 00:02 belongs
to the previous day). Fired slots are persisted, so a restart inside the
window does not upload the folder again.
"""
import asyncio
import logging
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, List, Optional
from uuid import UUID

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.exc import SQLAlchemyError

from bucketsync.db.settings_store import (
    LAST_FIRED_KEY,
    LAST_SYNC_TIME_KEY,
    SettingsStore,
)
from bucketsync.models.sync import SyncJob, SyncRunResult
from bucketsync.scheduler.lifecycle import (
    ExecutionExtender,
    NullExecutionExtender,
    extended_execution,
)
from bucketsync.sync.executor import SyncExecutor
from bucketsync.sync.history import HistoryLog
from bucketsync.sync.job_store import SyncJobStore

logger = logging.getLogger(__name__)

CHECK_JOB_ID = "sync_check"
CHECK_INTERVAL_SECONDS = 60
TOLERANCE_MINUTES = 5


def scheduled_slot(
    sync_time: time, now: datetime, tolerance_minutes: int = TOLERANCE_MINUTES
) -> Optional[date]:
    """
    Date of the occurrence of sync_time within tolerance_minutes of now.

    Only hours and minutes are compared. Occurrences on the previous and next
    day are considered too, so windows that straddle midnight still match.

    Returns:
        The occurrence's date, or None if sync_time is not due.
    """
    current = now.replace(second=0, microsecond=0, tzinfo=None)
    target = sync_time.replace(second=0, microsecond=0, tzinfo=None)
    window = timedelta(minutes=tolerance_minutes)
    for day_offset in (0, -1, 1):
        occurrence = datetime.combine(current.date() + timedelta(days=day_offset), target)
        if abs(current - occurrence) <= window:
            return occurrence.date()
    return None


def matches_schedule(
    sync_time: time, now: datetime, tolerance_minutes: int = TOLERANCE_MINUTES
) -> bool:
    return scheduled_slot(sync_time, now, tolerance_minutes) is not None


class SyncScheduler:
    """Periodic sync checker plus the manual "sync now" entry point."""

    def __init__(
        self,
        job_store: SyncJobStore,
        history: HistoryLog,
        executor: SyncExecutor,
        store: SettingsStore,
        *,
        interval_seconds: int = CHECK_INTERVAL_SECONDS,
        tolerance_minutes: int = TOLERANCE_MINUTES,
        auto_sync_enabled: bool = True,
        extender: Optional[ExecutionExtender] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.job_store = job_store
        self.history = history
        self.executor = executor
        self.interval_seconds = interval_seconds
        self.tolerance_minutes = tolerance_minutes
        self.auto_sync_enabled = auto_sync_enabled
        self.extender = extender or NullExecutionExtender()
        self._store = store
        self._clock = clock
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._lock = asyncio.Lock()
        self.initial_check: Optional[asyncio.Task] = None
        self.current_job: Optional[SyncJob] = None
        self._last_fired: Dict[str, str] = self._load_last_fired()
        self._last_sync_time: Optional[datetime] = self._load_last_sync_time()

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    @property
    def is_syncing(self) -> bool:
        """True while a scheduled or manual run is uploading."""
        return self.current_job is not None

    @property
    def last_sync_time(self) -> Optional[datetime]:
        return self._last_sync_time

    def start(self) -> None:
        """
        Start the periodic check. Idempotent.

        Must be called from inside the running event loop.

        Raises:
            RuntimeError: if there is no running event loop.
        """
        if self._scheduler is not None:
            logger.info("Sync scheduler already running")
            return

        loop = asyncio.get_running_loop()
        scheduler = AsyncIOScheduler(event_loop=loop)
        scheduler.add_job(
            self._scheduled_check,
            trigger="interval",
            seconds=self.interval_seconds,
            id=CHECK_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        self._scheduler = scheduler

        # First check right away instead of after one full interval
        self.initial_check = loop.create_task(self._scheduled_check())
        logger.info(
            "Sync scheduler started (every %ds, tolerance ±%d min)",
            self.interval_seconds,
            self.tolerance_minutes,
        )

    def stop(self) -> None:
        """Shut the periodic check down. Runs in progress are not cancelled."""
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Sync scheduler stopped")

    def get_jobs(self):
        """APScheduler jobs registered by this scheduler (empty when stopped)."""
        if self._scheduler is None:
            return []
        return self._scheduler.get_jobs()

    # ── Checks and runs ───────────────────────────────────────────────────────

    async def _scheduled_check(self) -> None:
        """Timer entry point: a failed check must not kill the scheduler."""
        try:
            await self.tick()
        except Exception as exc:
            logger.error("Scheduled sync check failed: %s", exc, exc_info=True)

    async def tick(self, now: Optional[datetime] = None) -> List[SyncRunResult]:
        """
        Run every enabled job that is due and hasn't fired for its slot yet.

        Args:
            now: Current local time; defaults to the scheduler clock.

        Returns:
            Results of the runs triggered by this check, in job order.
        """
        async with self._lock:
            now = now or self._clock()
            if not self.auto_sync_enabled:
                logger.info("Auto sync disabled, skipping check")
                return []

            jobs = [j for j in self.job_store.jobs if j.is_enabled]
            if not jobs:
                logger.debug("No enabled sync jobs")
                return []

            logger.debug("Checking %d sync job(s) at %s", len(jobs), now.strftime("%H:%M"))
            results = []
            for job in jobs:
                slot = scheduled_slot(job.sync_time, now, self.tolerance_minutes)
                if slot is None:
                    logger.debug(
                        "Not due: %s (now %s)", job.describe(), now.strftime("%H:%M")
                    )
                    continue
                if self._last_fired.get(str(job.id)) == slot.isoformat():
                    logger.debug("Already synced for %s: %s", slot, job.describe())
                    continue

                logger.info("Triggering scheduled sync: %s", job.describe())
                self._mark_fired(job, slot)
                results.append(await self._run_and_record(job))
            return results

    async def sync_now(self, job_id: UUID) -> SyncRunResult:
        """
        Run one job immediately, ignoring is_enabled and the time window.

        Raises:
            JobNotFoundError: if job_id is unknown (before any I/O).
        """
        job = self.job_store.get(job_id)
        async with self._lock:
            logger.info("Manual sync: %s", job.describe())
            return await self._run_and_record(job)

    async def _run_and_record(self, job: SyncJob) -> SyncRunResult:
        self.current_job = job
        try:
            with extended_execution(self.extender, f"sync {job.id}"):
                result = await self.executor.run(job)
        finally:
            self.current_job = None
        self.history.append(result)
        self._update_last_sync_time()
        return result

    # ── Persisted state ───────────────────────────────────────────────────────

    def _mark_fired(self, job: SyncJob, slot: date) -> None:
        known = {str(j.id) for j in self.job_store.jobs}
        fired = {k: v for k, v in self._last_fired.items() if k in known}
        fired[str(job.id)] = slot.isoformat()
        self._last_fired = fired
        try:
            self._store.set_json(LAST_FIRED_KEY, fired)
        except SQLAlchemyError as exc:
            logger.error("Failed to save fired sync slots: %s", exc)

    def _load_last_fired(self) -> Dict[str, str]:
        try:
            raw = self._store.get_json(LAST_FIRED_KEY)
        except (SQLAlchemyError, ValueError) as exc:
            logger.error("Failed to read fired sync slots: %s", exc)
            return {}
        if not isinstance(raw, dict):
            return {}
        return {str(k): str(v) for k, v in raw.items()}

    def _update_last_sync_time(self) -> None:
        now = self._clock()
        self._last_sync_time = now
        try:
            self._store.set(LAST_SYNC_TIME_KEY, now.isoformat())
        except SQLAlchemyError as exc:
            logger.error("Failed to save last sync time: %s", exc)

    def _load_last_sync_time(self) -> Optional[datetime]:
        try:
            raw = self._store.get(LAST_SYNC_TIME_KEY)
            return datetime.fromisoformat(raw) if raw else None
        except (SQLAlchemyError, ValueError) as exc:
            logger.error("Failed to read last sync time: %s", exc)
            return None
