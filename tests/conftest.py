"""Shared test fixtures."""
from datetime import datetime, time
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

# Import all models so SQLModel.metadata knows about them
from bucketsync.models.setting import Setting  # noqa: F401
from bucketsync.db.settings_store import SettingsStore
from bucketsync.models.sync import SyncJob, SyncRunResult
from bucketsync.storage.client import StorageError


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine. Tables recreated fresh for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="store")
def store_fixture(engine) -> SettingsStore:
    return SettingsStore(engine)


@pytest.fixture
def make_job():
    """Factory for SyncJob with sensible defaults."""
    def _make(**overrides) -> SyncJob:
        fields = {
            "local_folder_path": "/tmp/photos",
            "bucket_name": "backup-bucket",
            "prefix": "photos",
            "sync_time": time(8, 0),
            "is_enabled": True,
        }
        fields.update(overrides)
        return SyncJob(**fields)
    return _make


@pytest.fixture
def make_result():
    """Factory for a completed SyncRunResult for a given job."""
    def _make(job: SyncJob, started_at: datetime = datetime(2026, 1, 15, 8, 0)) -> SyncRunResult:
        return SyncRunResult.completed(
            job, started_at=started_at, details=[], succeeded=0, failed=0
        )
    return _make


@pytest.fixture
def mock_storage_client():
    """Storage client whose put_object fails for keys listed in .fail_keys."""
    client = AsyncMock()
    client.fail_keys = set()

    async def put_object(bucket, key, body, content_type=None):
        if key in client.fail_keys:
            raise StorageError("AccessDenied: Access Denied")

    client.put_object = AsyncMock(side_effect=put_object)
    return client


@pytest.fixture
def client_provider(mock_storage_client):
    return MagicMock(return_value=mock_storage_client)


@pytest.fixture
def sync_folder(tmp_path):
    """A local folder with three files and one sub-directory."""
    folder = tmp_path / "photos"
    folder.mkdir()
    (folder / "a.txt").write_bytes(b"aaa")
    (folder / "b.jpg").write_bytes(b"b" * 1500)
    (folder / "c.txt").write_bytes(b"")
    (folder / "nested").mkdir()
    (folder / "nested" / "ignored.txt").write_text("not uploaded")
    return folder
