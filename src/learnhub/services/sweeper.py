"""Periodic cleanup of abandoned upload sessions."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from learnhub.storage.base import ObjectStorage
from learnhub.storage.upload_store import UploadStore

logger = logging.getLogger(__name__)


async def sweep_expired_uploads(
    store: UploadStore,
    storage: ObjectStorage,
    max_age: timedelta,
    now: Optional[datetime] = None,
) -> int:
    """Remove pending sessions older than ``max_age``.

    Object removal is best-effort; the session entry is always deleted.
    Completed sessions are never touched.

    Returns:
        Number of sessions removed
    """
    now = now or datetime.now(timezone.utc)
    expired = await asyncio.to_thread(store.list_expired, now - max_age)

    for session in expired:
        try:
            await storage.remove(session.bucket, [session.file_path])
        except Exception as e:
            logger.warning(
                "Failed to delete expired upload file",
                extra={"upload_id": session.upload_id, "path": session.file_path, "error": str(e)},
            )
        await asyncio.to_thread(store.delete, session.upload_id)

    if expired:
        logger.info(f"Cleaned up {len(expired)} expired uploads", extra={"count": len(expired)})
    return len(expired)


class ExpirySweeper:
    """Runs ``sweep_expired_uploads`` on a fixed interval as an asyncio task."""

    def __init__(
        self,
        store_factory: Callable[[], UploadStore],
        storage_factory: Callable[[], ObjectStorage],
        interval_seconds: int,
        max_age: timedelta,
    ):
        self._store_factory = store_factory
        self._storage_factory = storage_factory
        self.interval_seconds = interval_seconds
        self.max_age = max_age
        self._task: Optional[asyncio.Task] = None

    async def run_once(self) -> int:
        return await sweep_expired_uploads(self._store_factory(), self._storage_factory(), self.max_age)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except Exception as e:
                logger.error("Error cleaning up expired uploads", extra={"error": str(e)}, exc_info=True)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())
            logger.info("Expiry sweeper started", extra={"interval_seconds": self.interval_seconds})

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Expiry sweeper stopped")
