"""Storage backend selection."""

from typing import Optional

from learnhub.core.config import settings
from learnhub.storage.base import ObjectStorage

_storage_backend: Optional[ObjectStorage] = None


def get_storage_backend() -> ObjectStorage:
    """Return the configured object storage backend.

    Raises:
        ValueError: If STORAGE_BACKEND is unknown or its credentials are missing
    """
    global _storage_backend
    if _storage_backend is None:
        backend = settings.STORAGE_BACKEND.lower()
        if backend == "supabase":
            from learnhub.storage.supabase import create_supabase_storage

            _storage_backend = create_supabase_storage()
        elif backend == "gcs":
            from learnhub.storage.gcs import GCSStorage

            _storage_backend = GCSStorage()
        else:
            raise ValueError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")
    return _storage_backend
