"""Sync job definitions and run results.

Both are persisted as JSON lists in the settings store, so they are plain
pydantic models rather than SQLModel tables.
"""
from datetime import datetime, time
from typing import List, Optional, Tuple
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SyncJob(BaseModel):
    """A local folder uploaded to bucket/prefix once a day at sync_time."""

    model_config = ConfigDict(validate_assignment=True)

    id: UUID = Field(default_factory=uuid4, frozen=True)
    local_folder_path: str = Field(min_length=1)
    bucket_name: str = Field(min_length=1)
    prefix: str = ""
    sync_time: time
    is_enabled: bool = True

    @field_validator("local_folder_path", "bucket_name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("sync_time", mode="before")
    @classmethod
    def _time_of_day(cls, value):
        # Older payloads stored a full timestamp; only the time of day matters.
        if isinstance(value, datetime):
            return value.time()
        return value

    @field_validator("sync_time")
    @classmethod
    def _truncate_seconds(cls, value: time) -> time:
        return value.replace(second=0, microsecond=0)

    @property
    def minute_of_day(self) -> int:
        return self.sync_time.hour * 60 + self.sync_time.minute

    def describe(self) -> str:
        target = f"{self.bucket_name}/{self.prefix}" if self.prefix else self.bucket_name
        return f"{self.local_folder_path} -> {target} at {self.sync_time:%H:%M}"


class SyncRunResult(BaseModel):
    """Outcome of one sync run, scheduled or manual. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    timestamp: datetime
    job_id: UUID
    local_path: str
    bucket_name: str
    prefix: str = ""
    status: str
    per_file_details: Tuple[str, ...] = ()
    success: bool
    succeeded_count: int = 0
    failed_count: int = 0
    finished_at: Optional[datetime] = None

    @classmethod
    def completed(
        cls,
        job: SyncJob,
        *,
        started_at: datetime,
        details: List[str],
        succeeded: int,
        failed: int,
    ) -> "SyncRunResult":
        """A run that got through the folder, whatever happened per file."""
        return cls(
            timestamp=started_at,
            job_id=job.id,
            local_path=job.local_folder_path,
            bucket_name=job.bucket_name,
            prefix=job.prefix,
            status=f"Sync complete: succeeded {succeeded}, failed {failed}",
            per_file_details=tuple(details),
            success=True,
            succeeded_count=succeeded,
            failed_count=failed,
            finished_at=datetime.now(),
        )

    @classmethod
    def failed(
        cls,
        job: SyncJob,
        error: str,
        *,
        started_at: datetime,
    ) -> "SyncRunResult":
        """A run aborted before any upload was attempted."""
        return cls(
            timestamp=started_at,
            job_id=job.id,
            local_path=job.local_folder_path,
            bucket_name=job.bucket_name,
            prefix=job.prefix,
            status=f"Sync failed: {error}",
            success=False,
            finished_at=datetime.now(),
        )
