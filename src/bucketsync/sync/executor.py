"""
SyncExecutor: uploads one job's folder to its bucket/prefix.

Flow for a single run:
  1. Build a storage client (credential/region resolution)
  2. List the folder's immediate entries, keeping regular files only
  3. Upload each file as one object, recording one detail line per file
  4. Return a SyncRunResult summarising succeeded/failed counts

A failure in steps 1-2 aborts the run before any upload and yields a failed
result. A failure uploading (or reading) one file is recorded and the run
continues; the run as a whole still counts as completed.

The executor never raises for storage or filesystem faults. Recording the
result in history is the caller's job.
"""
import logging
import mimetypes
from datetime import datetime
from typing import Callable, List

from bucketsync.models.sync import SyncJob, SyncRunResult
from bucketsync.storage.client import S3StorageClient, StorageError
from bucketsync.storage.filesystem import LocalFilesystem

logger = logging.getLogger(__name__)

_SIZE_UNITS = ("KB", "MB", "GB", "TB")


def build_object_key(prefix: str, file_name: str) -> str:
    """
    Remote key for file_name under prefix.

    Trailing slashes on the prefix are collapsed so "photos/" and "photos"
    both produce "photos/<file_name>".
    """
    prefix = prefix.rstrip("/")
    if not prefix:
        return file_name
    return f"{prefix}/{file_name}"


def format_size(num_bytes: int) -> str:
    """Decimal (1 KB = 1000 bytes) size string, as file managers show it."""
    if num_bytes < 1000:
        return f"{num_bytes} bytes"
    size = num_bytes / 1000
    for unit in _SIZE_UNITS[:-1]:
        if size < 1000:
            return f"{size:.1f} {unit}"
        size /= 1000
    return f"{size:.1f} {_SIZE_UNITS[-1]}"


class SyncExecutor:
    """Runs one SyncJob against the storage collaborator."""

    def __init__(
        self,
        client_provider: Callable[[], S3StorageClient],
        filesystem: LocalFilesystem,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            client_provider: Returns a ready storage client; raises StorageError
                (e.g. CredentialsError) if one can't be built.
            filesystem: LocalFilesystem (or a fake in tests).
            clock: Source of the run's start timestamp.
        """
        self.client_provider = client_provider
        self.filesystem = filesystem
        self._clock = clock

    async def run(self, job: SyncJob) -> SyncRunResult:
        started_at = self._clock()
        logger.info("Starting sync: %s", job.describe())

        try:
            client = self.client_provider()
            entries = await self._list_folder(job.local_folder_path)
        except (StorageError, OSError) as exc:
            message = str(exc) or exc.__class__.__name__
            logger.error("Sync failed for %s: %s", job.local_folder_path, message)
            return SyncRunResult.failed(job, message, started_at=started_at)

        # Regular files only
        files = [e for e in entries if e.is_file]
        logger.info("Found %d file(s) to sync in %s", len(files), job.local_folder_path)

        details: List[str] = []
        succeeded = 0
        failed = 0
        for entry in files:
            key = build_object_key(job.prefix, entry.name)
            try:
                data = await self.filesystem.read_bytes(entry.path)
                content_type, _ = mimetypes.guess_type(entry.name)
                await client.put_object(job.bucket_name, key, data, content_type)
            except (StorageError, OSError) as exc:
                failed += 1
                details.append(f"✗ Failed: {entry.name} - {exc}")
                logger.warning("Upload failed: %s -> %s: %s", entry.name, key, exc)
                continue
            succeeded += 1
            details.append(f"✓ Uploaded: {entry.name} ({format_size(len(data))})")
            logger.debug("Uploaded %s -> %s/%s", entry.name, job.bucket_name, key)

        result = SyncRunResult.completed(
            job,
            started_at=started_at,
            details=details,
            succeeded=succeeded,
            failed=failed,
        )
        logger.info("Sync finished: %s - %s", job.local_folder_path, result.status)
        return result

    async def _list_folder(self, path: str):
        if not self.filesystem.exists(path):
            raise FileNotFoundError(f"Folder not found: {path}")
        if not self.filesystem.is_readable(path):
            raise PermissionError(f"Folder is not readable: {path}")
        return await self.filesystem.list_dir(path)
