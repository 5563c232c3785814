"""
Composition root for the sync core.

build_app() wires settings store, job store, history, executor and the
scheduler guard together and returns a SyncApp handle. The UI layer keeps
that handle and calls it for everything sync-related; nothing here is a
module-level global.

All SyncApp methods are meant to be called from the event loop thread.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, time
from typing import List, Optional
from uuid import UUID

from bucketsync.config import Settings, get_settings
from bucketsync.db.engine import get_engine, init_db
from bucketsync.db.settings_store import SettingsStore
from bucketsync.models.sync import SyncJob, SyncRunResult
from bucketsync.scheduler.lifecycle import ExecutionExtender, LifecycleGuard
from bucketsync.scheduler.sync_scheduler import SyncScheduler
from bucketsync.storage.client import S3ClientProvider, StorageCredentials
from bucketsync.storage.filesystem import LocalFilesystem
from bucketsync.sync.executor import SyncExecutor
from bucketsync.sync.history import HistoryLog
from bucketsync.sync.job_store import SyncJobStore

logger = logging.getLogger(__name__)


@dataclass
class SyncApp:
    """Handle the UI layer uses to manage sync jobs."""

    settings: Settings
    job_store: SyncJobStore
    history_log: HistoryLog
    client_provider: S3ClientProvider
    guard: LifecycleGuard

    @property
    def scheduler(self) -> SyncScheduler:
        """The process scheduler, created (but not started) on first access."""
        return self.guard.get()

    def ensure_started(self) -> SyncScheduler:
        return self.guard.ensure_started()

    # ── Jobs ──────────────────────────────────────────────────────────────────

    @property
    def jobs(self) -> List[SyncJob]:
        return self.job_store.jobs

    def add_job(
        self,
        local_folder_path: str,
        bucket_name: str,
        sync_time: time,
        prefix: str = "",
        is_enabled: bool = True,
    ) -> SyncJob:
        """
        Raises:
            pydantic.ValidationError: if folder path or bucket name is empty.
        """
        job = SyncJob(
            local_folder_path=local_folder_path,
            bucket_name=bucket_name,
            prefix=prefix,
            sync_time=sync_time,
            is_enabled=is_enabled,
        )
        return self.job_store.add(job)

    def toggle_job(self, job_id: UUID) -> SyncJob:
        return self.job_store.toggle(job_id)

    def remove_job(self, job_id: UUID) -> SyncJob:
        return self.job_store.remove(job_id)

    def save_jobs(self) -> bool:
        return self.job_store.save()

    async def sync_now(self, job_id: UUID) -> SyncRunResult:
        return await self.scheduler.sync_now(job_id)

    # ── Status ────────────────────────────────────────────────────────────────

    @property
    def history(self) -> List[SyncRunResult]:
        return self.history_log.entries

    @property
    def is_syncing(self) -> bool:
        return self.scheduler.is_syncing

    @property
    def current_job(self) -> Optional[SyncJob]:
        """The job being synced right now, if any."""
        return self.scheduler.current_job

    @property
    def last_sync_time(self) -> Optional[datetime]:
        return self.scheduler.last_sync_time

    @property
    def auto_sync_enabled(self) -> bool:
        return self.scheduler.auto_sync_enabled

    @auto_sync_enabled.setter
    def auto_sync_enabled(self, enabled: bool) -> None:
        self.scheduler.auto_sync_enabled = enabled
        logger.info("Auto sync %s", "enabled" if enabled else "disabled")

    def update_credentials(
        self, access_key: str, secret_key: str, region: str
    ) -> None:
        self.client_provider.update(
            StorageCredentials(
                access_key=access_key,
                secret_key=secret_key,
                region=region,
                endpoint_url=self.settings.s3_endpoint_url,
            )
        )


def build_app(
    settings: Optional[Settings] = None,
    engine=None,
    client_provider: Optional[S3ClientProvider] = None,
    filesystem: Optional[LocalFilesystem] = None,
    extender: Optional[ExecutionExtender] = None,
) -> SyncApp:
    """
    Build the sync core. Persisted jobs and history are loaded here.

    Args:
        settings: Defaults to get_settings().
        engine: SQLAlchemy engine; defaults to the shared engine from settings.
        client_provider: Storage client provider; defaults to one built from
            the AWS credentials in settings.
        filesystem: Local filesystem access (a fake in tests).
        extender: Background execution hook; no-op by default.

    Returns:
        SyncApp whose scheduler has not been started yet.
    """
    settings = settings or get_settings()
    if engine is None:
        engine = get_engine()
    else:
        init_db(engine)

    store = SettingsStore(engine)
    job_store = SyncJobStore(store, default_local_folder=settings.default_local_folder)
    job_store.restore()
    history = HistoryLog(store, limit=settings.history_limit)
    history.load()

    if client_provider is None:
        client_provider = S3ClientProvider(
            StorageCredentials(
                access_key=settings.aws_access_key_id,
                secret_key=settings.aws_secret_access_key,
                region=settings.aws_region,
                endpoint_url=settings.s3_endpoint_url,
            )
        )
    executor = SyncExecutor(
        client_provider=client_provider,
        filesystem=filesystem or LocalFilesystem(),
    )

    def _make_scheduler() -> SyncScheduler:
        return SyncScheduler(
            job_store,
            history,
            executor,
            store,
            interval_seconds=settings.sync_check_interval_seconds,
            tolerance_minutes=settings.sync_tolerance_minutes,
            auto_sync_enabled=settings.auto_sync_enabled,
            extender=extender,
        )

    return SyncApp(
        settings=settings,
        job_store=job_store,
        history_log=history,
        client_provider=client_provider,
        guard=LifecycleGuard(_make_scheduler),
    )
