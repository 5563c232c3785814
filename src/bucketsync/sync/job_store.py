"""
SyncJobStore: the in-memory list of sync jobs and its persistence.

The list is saved as one JSON document under JOBS_KEY on every mutation.
Persistence is best-effort from the caller's point of view: read and write
failures are logged, never raised. Invalid arguments (unknown id, duplicate
id) are programmer errors and do raise.

Mutations replace job objects rather than editing them in place, so a tick
that already took a snapshot of `jobs` keeps seeing the jobs it started with.
"""
import logging
from datetime import time
from typing import List, Optional
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from bucketsync.db.settings_store import JOBS_KEY, SettingsStore
from bucketsync.models.sync import SyncJob

logger = logging.getLogger(__name__)

EXAMPLE_BUCKET = "example-bucket"
EXAMPLE_PREFIX = "example-folder/"


class JobNotFoundError(LookupError):
    """Raised when a job id is not in the store."""


class SyncJobStore:
    """Owns the list of SyncJob definitions."""

    def __init__(self, store: SettingsStore, default_local_folder: str):
        """
        Args:
            store: Settings store the list is persisted to.
            default_local_folder: Folder used by the first-run example job.
        """
        self._store = store
        self._default_local_folder = default_local_folder
        self._jobs: List[SyncJob] = []

    @property
    def jobs(self) -> List[SyncJob]:
        """A copy of the current list, in insertion order."""
        return list(self._jobs)

    def get(self, job_id: UUID) -> SyncJob:
        for job in self._jobs:
            if job.id == job_id:
                return job
        raise JobNotFoundError(f"No sync job with id {job_id}")

    # ── Persistence ───────────────────────────────────────────────────────────

    def load(self) -> List[SyncJob]:
        """
        Read persisted jobs. Missing or unreadable data yields [].

        Entries that fail validation (e.g. empty folder path or bucket) are
        skipped individually.
        """
        try:
            raw = self._store.get_json(JOBS_KEY)
        except (SQLAlchemyError, ValueError) as exc:
            logger.error("Failed to read sync jobs: %s", exc)
            return []

        if raw is None:
            logger.info("No saved sync jobs")
            return []
        if not isinstance(raw, list):
            logger.error("Saved sync jobs are not a list, ignoring")
            return []

        jobs = []
        for item in raw:
            try:
                jobs.append(SyncJob.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping invalid sync job %r: %s", item, exc)
        logger.info("Loaded %d sync job(s)", len(jobs))
        return jobs

    def save(self, jobs: Optional[List[SyncJob]] = None) -> bool:
        """
        Persist the full job list (the current list if jobs is None).

        Returns:
            True on success; False if the write failed (already logged).
        """
        jobs = self._jobs if jobs is None else jobs
        try:
            self._store.set_json(JOBS_KEY, [j.model_dump(mode="json") for j in jobs])
        except (SQLAlchemyError, TypeError, ValueError) as exc:
            logger.error("Failed to save sync jobs: %s", exc)
            return False
        logger.info("Saved %d sync job(s)", len(jobs))
        return True

    def restore(self) -> List[SyncJob]:
        """
        Load persisted jobs into memory; on first run seed one disabled example.

        The example job is not persisted until the list is mutated or saved.
        """
        jobs = self.load()
        if not jobs:
            jobs = [self._example_job()]
            logger.info("No sync jobs configured, showing example job")
        self._jobs = jobs
        return self.jobs

    def _example_job(self) -> SyncJob:
        return SyncJob(
            local_folder_path=self._default_local_folder,
            bucket_name=EXAMPLE_BUCKET,
            prefix=EXAMPLE_PREFIX,
            sync_time=time(0, 0),
            is_enabled=False,
        )

    # ── Mutations ─────────────────────────────────────────────────────────────

    def add(self, job: SyncJob) -> SyncJob:
        if any(j.id == job.id for j in self._jobs):
            raise ValueError(f"Sync job {job.id} already exists")
        self._jobs = self._jobs + [job]
        logger.info("Added sync job: %s", job.describe())
        self.save()
        return job

    def toggle(self, job_id: UUID) -> SyncJob:
        """Flip is_enabled for job_id. Returns the updated job."""
        current = self.get(job_id)
        updated = current.model_copy(update={"is_enabled": not current.is_enabled})
        self._jobs = [updated if j.id == job_id else j for j in self._jobs]
        logger.info(
            "%s sync job: %s",
            "Enabled" if updated.is_enabled else "Disabled",
            updated.describe(),
        )
        self.save()
        return updated

    def remove(self, job_id: UUID) -> SyncJob:
        job = self.get(job_id)
        self._jobs = [j for j in self._jobs if j.id != job_id]
        logger.info("Removed sync job: %s", job.describe())
        self.save()
        return job
