"""Pytest configuration and shared fixtures."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from learnhub.api.v1.routes_upload import get_storage, get_store
from learnhub.main import app
from learnhub.storage.base import ObjectStorage, SignedUpload
from learnhub.storage.upload_store import InMemoryUploadStore, UploadSession


@pytest.fixture
def upload_store():
    """Create a fresh in-memory upload store for each test."""
    return InMemoryUploadStore()


@pytest.fixture
def mock_storage():
    """Mock object storage backend."""
    storage = MagicMock(spec=ObjectStorage)

    async def sign(bucket, path, content_type, upsert=False):
        return SignedUpload(
            signed_url=f"https://storage.test/object/upload/sign/{bucket}/{path}?token=tok-123",
            token="tok-123",
            path=path,
        )

    storage.create_signed_upload_url = AsyncMock(side_effect=sign)
    storage.list_objects = AsyncMock(return_value=[])
    storage.download = AsyncMock(return_value=b"")
    storage.remove = AsyncMock(return_value=None)
    storage.get_public_url.side_effect = (
        lambda bucket, path: f"https://storage.test/object/public/{bucket}/{path}"
    )
    storage.get_backend_name.return_value = "mock"
    return storage


@pytest.fixture
def client(upload_store, mock_storage):
    """Create test client wired to the in-memory store and mock storage."""
    app.dependency_overrides[get_store] = lambda: upload_store
    app.dependency_overrides[get_storage] = lambda: mock_storage
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def fast_video_settings(monkeypatch):
    """Skip download retries in video enrichment."""
    from learnhub.core.config import settings

    monkeypatch.setattr(settings, "VIDEO_DOWNLOAD_ATTEMPTS", 1)
    monkeypatch.setattr(settings, "VIDEO_METADATA_ENABLED", True)


def make_session(**overrides) -> UploadSession:
    """Build an UploadSession with sensible defaults."""
    values = dict(
        upload_id="upload-1",
        user_id="user-1",
        file_name="notes.pdf",
        unique_file_name="notes_1700000000000_0123456789abcdef.pdf",
        file_size=2048,
        mime_type="application/pdf",
        bucket="documents",
        file_path="courses/notes_1700000000000_0123456789abcdef.pdf",
        folder="courses",
        created_at=datetime.now(timezone.utc),
    )
    values.update(overrides)
    return UploadSession(**values)


@pytest.fixture
def session_factory():
    """Factory for UploadSession records."""
    return make_session
