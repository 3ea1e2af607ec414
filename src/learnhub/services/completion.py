"""Upload completion handling."""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Any

from learnhub.core.auth import CurrentUser
from learnhub.core.exceptions import StorageError, UploadNotFoundError, UploadNotStoredError
from learnhub.services.upload_sessions import get_owned_session
from learnhub.services.video_metadata import enrich_video_metadata
from learnhub.storage.base import ObjectStorage
from learnhub.storage.upload_store import UploadSession, UploadStatus, UploadStore

logger = logging.getLogger(__name__)


def resource_type_for(session: UploadSession) -> str:
    if session.is_video:
        return "video"
    if session.mime_type.startswith("image/"):
        return "image"
    return "raw"


def build_result_descriptor(session: UploadSession, public_url: str) -> dict[str, Any]:
    """Describe a stored upload for the client."""
    return {
        "uploadId": session.upload_id,
        "secure_url": public_url,
        "public_id": session.file_path,
        "bucket": session.bucket,
        "path": session.file_path,
        "size": session.file_size,
        "original_filename": session.file_name,
        "format": PurePosixPath(session.file_name).suffix[1:],
        "resource_type": resource_type_for(session),
        "upload_type": "direct",
        "created_at": session.created_at.isoformat(),
    }


async def object_exists(storage: ObjectStorage, session: UploadSession) -> bool:
    """Look for the session's unique file name in its bucket folder.

    Raises:
        UploadNotStoredError: If storage cannot be listed; carries the upstream detail
    """
    try:
        names = await storage.list_objects(
            session.bucket, session.folder, search=session.unique_file_name
        )
    except StorageError as e:
        logger.error(
            "Failed to list storage after upload",
            extra={"upload_id": session.upload_id, "bucket": session.bucket, "error": e.error},
        )
        raise UploadNotStoredError(error=e.error or e.message) from e
    return session.unique_file_name in names


async def complete_upload(
    store: UploadStore, storage: ObjectStorage, upload_id: str, user: CurrentUser
) -> dict[str, Any]:
    """Confirm an upload landed in storage and finalize its session.

    Success depends only on the object existing; video metadata is a
    best-effort enrichment. Completing an already completed session returns
    the stored descriptor.

    Raises:
        UploadNotFoundError: If the session is unknown or expired
        UploadAccessDeniedError: If another user owns the session
        UploadNotStoredError: If the object is not in storage
    """
    session = await get_owned_session(store, upload_id, user)

    if session.status == UploadStatus.COMPLETED and session.result is not None:
        logger.info("Upload already completed", extra={"upload_id": upload_id})
        return session.result

    if not await object_exists(storage, session):
        logger.warning(
            "File not found after upload",
            extra={"upload_id": upload_id, "bucket": session.bucket, "path": session.file_path},
        )
        raise UploadNotStoredError()

    result = build_result_descriptor(session, storage.get_public_url(session.bucket, session.file_path))

    if session.is_video:
        result.update(await enrich_video_metadata(storage, session))

    completed_at = datetime.now(timezone.utc)
    if not await asyncio.to_thread(store.mark_completed, upload_id, result, completed_at):
        # Completed or deleted concurrently
        current = await asyncio.to_thread(store.get, upload_id)
        if current is None:
            raise UploadNotFoundError()
        if current.result is not None:
            return current.result

    logger.info(
        "Upload completion handled",
        extra={
            "upload_id": upload_id,
            "user_id": user.id,
            "secure_url": result["secure_url"],
            "duration": result.get("duration"),
        },
    )
    return result
