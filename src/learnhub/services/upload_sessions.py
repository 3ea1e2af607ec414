"""Upload session issuance and owner-scoped access."""

import asyncio
import logging
import re
import secrets
import time
from datetime import datetime, timedelta, timezone
from pathlib import PurePosixPath
from uuid import uuid4

from learnhub.core.auth import CurrentUser
from learnhub.core.config import settings
from learnhub.core.exceptions import (
    StorageError,
    UploadAccessDeniedError,
    UploadNotFoundError,
    UploadValidationError,
)
from learnhub.storage.base import ObjectStorage
from learnhub.storage.buckets import decide_bucket, validate_file
from learnhub.storage.upload_store import UploadSession, UploadStore

logger = logging.getLogger(__name__)


def generate_unique_filename(file_name: str) -> str:
    """Build a collision-free storage name: ``<base>_<epoch ms>_<16 hex><ext>``.

    The base name keeps only ASCII letters and digits; the extension is
    lower-cased.
    """
    pure = PurePosixPath(file_name.replace("\\", "/"))
    extension = pure.suffix.lower()
    base_name = re.sub(r"[^a-zA-Z0-9]", "_", pure.name[: len(pure.name) - len(pure.suffix)])
    timestamp = int(time.time() * 1000)
    return f"{base_name}_{timestamp}_{secrets.token_hex(8)}{extension}"


def build_file_path(folder: str, unique_file_name: str) -> str:
    folder = (folder or "").strip("/")
    return f"{folder}/{unique_file_name}" if folder else unique_file_name


async def create_upload_session(
    *,
    user: CurrentUser,
    file_name: str,
    file_size: int,
    mime_type: str,
    folder: str,
    storage: ObjectStorage,
    store: UploadStore,
) -> tuple[UploadSession, datetime]:
    """Validate a declared file, sign an upload URL and register the session.

    Returns:
        The pending session and the advertised expiry time

    Raises:
        UploadValidationError: If the file is rejected
        StorageError: If the storage backend cannot sign the upload
    """
    folder = (folder or "").strip("/")
    decision = decide_bucket(mime_type, folder, file_name, file_size)
    bucket = decision.bucket
    validation = validate_file(mime_type, file_size, file_name, bucket)
    if not validation.is_valid:
        raise UploadValidationError(f"File validation failed: {', '.join(validation.errors)}")

    upload_id = str(uuid4())
    unique_file_name = generate_unique_filename(file_name)
    file_path = build_file_path(folder, unique_file_name)

    try:
        signed = await storage.create_signed_upload_url(
            bucket.value, file_path, content_type=mime_type, upsert=False
        )
    except StorageError as e:
        logger.error(
            "Error generating signed URL",
            extra={"bucket": bucket.value, "path": file_path, "error": e.error},
        )
        raise StorageError("Failed to generate signed URL", error=e.error or e.message) from e

    created_at = datetime.now(timezone.utc)
    session = UploadSession(
        upload_id=upload_id,
        user_id=user.id,
        file_name=file_name,
        unique_file_name=unique_file_name,
        file_size=file_size,
        mime_type=mime_type,
        bucket=bucket.value,
        file_path=file_path,
        folder=folder,
        created_at=created_at,
        is_video=decision.is_video,
        detected_as_video=validation.detected_as_video,
        will_use_resumable_upload=decision.will_use_resumable_upload,
        signed_url=signed.signed_url,
        token=signed.token,
    )
    await asyncio.to_thread(store.create, session)

    logger.info(
        "Signed URL generated",
        extra={
            "upload_id": upload_id,
            "user_id": user.id,
            "bucket": bucket.value,
            "path": file_path,
            "size": file_size,
            "is_video": decision.is_video,
        },
    )

    expires_at = created_at + timedelta(hours=settings.SIGNED_URL_EXPIRY_HOURS)
    return session, expires_at


async def get_live_session(store: UploadStore, upload_id: str) -> UploadSession:
    """Fetch a session, treating pending sessions past the TTL as gone.

    Raises:
        UploadNotFoundError: If the session is unknown or expired
    """
    session = await asyncio.to_thread(store.get, upload_id)
    if session is None or session.is_expired(datetime.now(timezone.utc), settings.session_ttl_seconds):
        raise UploadNotFoundError()
    return session


async def get_owned_session(store: UploadStore, upload_id: str, user: CurrentUser) -> UploadSession:
    """Fetch a live session and check that ``user`` owns it.

    Raises:
        UploadNotFoundError: If the session is unknown or expired
        UploadAccessDeniedError: If another user owns the session
    """
    session = await get_live_session(store, upload_id)
    if session.user_id != user.id:
        logger.warning(
            "Upload access denied",
            extra={"upload_id": upload_id, "user_id": user.id},
        )
        raise UploadAccessDeniedError()
    return session


async def delete_upload(
    store: UploadStore, storage: ObjectStorage, upload_id: str, user: CurrentUser
) -> None:
    """Remove the stored object (best-effort) and the session.

    Raises:
        UploadNotFoundError: If the session does not exist
        UploadAccessDeniedError: If another user owns the session
    """
    session = await asyncio.to_thread(store.get, upload_id)
    if session is None:
        raise UploadNotFoundError("Upload not found")
    if session.user_id != user.id:
        raise UploadAccessDeniedError()

    try:
        await storage.remove(session.bucket, [session.file_path])
    except Exception as e:
        logger.warning(
            "Error deleting file from storage",
            extra={"upload_id": upload_id, "path": session.file_path, "error": str(e)},
        )

    await asyncio.to_thread(store.delete, upload_id)
    logger.info("Upload deleted", extra={"upload_id": upload_id, "user_id": user.id})
