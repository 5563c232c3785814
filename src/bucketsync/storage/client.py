"""
Async wrapper around a boto3 S3 client.

boto3 is synchronous; every call runs in the default thread pool executor so
it doesn't block the asyncio event loop the scheduler lives on.

All SDK failures are re-raised as StorageError carrying a human-readable
message, which is what ends up in sync history lines.
"""
import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
DELETE_BATCH_SIZE = 1000  # S3 DeleteObjects limit

_REGION_IN_LABEL = re.compile(r"\(([a-z0-9-]+)\)\s*$")


# ── Exceptions ────────────────────────────────────────────────────────────────

class StorageError(RuntimeError):
    """Raised when a storage operation fails. str(exc) is user-presentable."""


class CredentialsError(StorageError):
    """Raised when no usable access key / secret key pair is configured."""


# ── Value types ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class StorageCredentials:
    access_key: str
    secret_key: str
    region: str = DEFAULT_REGION
    endpoint_url: Optional[str] = None


@dataclass(frozen=True)
class ObjectSummary:
    key: str
    size: int
    last_modified: Optional[datetime] = None
    storage_class: Optional[str] = None


@dataclass
class ObjectListing:
    """One level of a bucket: sub-"folders" (common prefixes) and objects."""

    folders: List[str] = field(default_factory=list)
    files: List[ObjectSummary] = field(default_factory=list)


def normalize_region(region: str) -> str:
    """Reduce a display label such as "US East (us-east-1)" to its region code."""
    region = (region or "").strip()
    match = _REGION_IN_LABEL.search(region)
    if match:
        return match.group(1)
    return region or DEFAULT_REGION


def _error_message(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = error.get("Code", "")
        message = error.get("Message") or str(exc)
        return f"{code}: {message}" if code else message
    return str(exc)


# ── Client ────────────────────────────────────────────────────────────────────

class S3StorageClient:
    """
    Thin async wrapper over a boto3 S3 client.

    Usage:
        client = S3ClientProvider(credentials)()
        await client.put_object("my-bucket", "photos/a.jpg", data)
    """

    def __init__(self, s3_client):
        """
        Args:
            s3_client: boto3 S3 client (or MagicMock in tests).
        """
        self._s3 = s3_client

    async def _run(self, fn, *args, **kwargs):
        """Run a sync boto3 call in the thread pool, translating SDK errors."""
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, lambda: fn(*args, **kwargs))
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(_error_message(exc)) from exc

    async def list_buckets(self) -> List[str]:
        response = await self._run(self._s3.list_buckets)
        return [b["Name"] for b in response.get("Buckets", []) if b.get("Name")]

    async def create_bucket(self, name: str, region_hint: Optional[str] = None) -> None:
        """Create a bucket. us-east-1 must not send a LocationConstraint."""
        region = normalize_region(region_hint) if region_hint else DEFAULT_REGION
        kwargs: Dict[str, Any] = {"Bucket": name}
        if region != DEFAULT_REGION:
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}
        await self._run(self._s3.create_bucket, **kwargs)

    async def delete_bucket(self, name: str) -> None:
        await self._run(self._s3.delete_bucket, Bucket=name)

    async def get_bucket_region(self, bucket: str) -> str:
        """Return the bucket's region; S3 reports us-east-1 as an empty constraint."""
        response = await self._run(self._s3.get_bucket_location, Bucket=bucket)
        return response.get("LocationConstraint") or DEFAULT_REGION

    async def list_objects(self, bucket: str, prefix: str = "") -> ObjectListing:
        """List one level under prefix, using "/" as the folder delimiter."""
        return await self._run(self._list_objects_sync, bucket, prefix)

    def _list_objects_sync(self, bucket: str, prefix: str) -> ObjectListing:
        listing = ObjectListing()
        paginator = self._s3.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=bucket, Prefix=prefix, Delimiter="/"):
            for common in page.get("CommonPrefixes", []):
                listing.folders.append(common["Prefix"])
            for obj in page.get("Contents", []):
                key = obj["Key"]
                if key == prefix:
                    continue  # the folder placeholder object itself
                if key.endswith("/"):
                    listing.folders.append(key)
                    continue
                listing.files.append(
                    ObjectSummary(
                        key=key,
                        size=obj.get("Size", 0),
                        last_modified=obj.get("LastModified"),
                        storage_class=obj.get("StorageClass"),
                    )
                )
        return listing

    async def put_object(
        self,
        bucket: str,
        key: str,
        body: bytes,
        content_type: Optional[str] = None,
    ) -> None:
        kwargs: Dict[str, Any] = {"Bucket": bucket, "Key": key, "Body": body}
        if content_type:
            kwargs["ContentType"] = content_type
        await self._run(self._s3.put_object, **kwargs)

    async def get_object(self, bucket: str, key: str) -> bytes:
        response = await self._run(self._s3.get_object, Bucket=bucket, Key=key)
        return await self._run(response["Body"].read)

    async def delete_objects(self, bucket: str, keys: List[str]) -> None:
        """Delete keys in batches of 1000. Raises if S3 reports any per-key error."""
        failures: List[str] = []
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            response = await self._run(
                self._s3.delete_objects,
                Bucket=bucket,
                Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
            )
            for err in response.get("Errors", []):
                failures.append(f"{err.get('Key')}: {err.get('Message', err.get('Code'))}")
        if failures:
            raise StorageError(
                f"Failed to delete {len(failures)} object(s): " + "; ".join(failures)
            )


class S3ClientProvider:
    """
    Builds S3StorageClient instances from the current credentials.

    Credentials can be swapped at runtime (the user logs in again or picks
    another region); the next client built picks them up.
    """

    def __init__(self, credentials: Optional[StorageCredentials] = None):
        self._credentials = credentials

    @property
    def credentials(self) -> Optional[StorageCredentials]:
        return self._credentials

    def update(self, credentials: StorageCredentials) -> None:
        self._credentials = credentials
        logger.info("Storage credentials updated: region = %s", credentials.region)

    def __call__(self) -> S3StorageClient:
        """
        Raises:
            CredentialsError: if no access key / secret key is configured.
            StorageError: if the SDK rejects the configuration.
        """
        creds = self._credentials
        if creds is None or not creds.access_key or not creds.secret_key:
            raise CredentialsError("Missing access key or secret key")
        try:
            session = boto3.session.Session(
                aws_access_key_id=creds.access_key,
                aws_secret_access_key=creds.secret_key,
                region_name=normalize_region(creds.region),
            )
            s3 = session.client("s3", endpoint_url=creds.endpoint_url)
        except (ClientError, BotoCoreError, ValueError) as exc:
            raise StorageError(_error_message(exc)) from exc
        return S3StorageClient(s3)
