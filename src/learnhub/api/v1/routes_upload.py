"""Upload API routes."""

import logging

from fastapi import APIRouter, Body, Depends, HTTPException

from learnhub.core.auth import CurrentUser, get_current_user
from learnhub.core.logging import upload_id_context
from learnhub.models.upload import (
    ApiResponse,
    CompleteUploadRequest,
    SignedUrlData,
    SignedUrlRequest,
    UploadMetadata,
    UploadStatusData,
)
from learnhub.services.completion import complete_upload
from learnhub.services.upload_sessions import create_upload_session, delete_upload, get_owned_session
from learnhub.storage.base import ObjectStorage
from learnhub.storage.factory import get_storage_backend
from learnhub.storage.upload_store import UploadStore, get_upload_store

router = APIRouter(prefix="/api/v1/upload", tags=["upload"])
logger = logging.getLogger(__name__)


def get_storage() -> ObjectStorage:
    """Storage backend dependency."""
    try:
        return get_storage_backend()
    except ValueError as e:
        logger.error(f"Storage backend configuration error: {e}")
        raise HTTPException(status_code=500, detail="Storage configuration error")


def get_store() -> UploadStore:
    """Upload session store dependency."""
    return get_upload_store()


@router.post(
    "/signed-url",
    response_model=ApiResponse[SignedUrlData],
    response_model_exclude_none=True,
)
async def generate_signed_url(
    request: SignedUrlRequest = Body(...),
    user: CurrentUser = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_storage),
    store: UploadStore = Depends(get_store),
) -> ApiResponse[SignedUrlData]:
    """Validate a declared file and issue a signed URL for a direct upload."""
    session, expires_at = await create_upload_session(
        user=user,
        file_name=request.file_name,
        file_size=request.file_size,
        mime_type=request.mime_type,
        folder=request.folder,
        storage=storage,
        store=store,
    )
    upload_id_context.set(session.upload_id)

    return ApiResponse(
        success=True,
        data=SignedUrlData(
            upload_id=session.upload_id,
            signed_url=session.signed_url,
            token=session.token,
            bucket=session.bucket,
            file_path=session.file_path,
            unique_file_name=session.unique_file_name,
            expires_at=expires_at,
            upload_metadata=UploadMetadata(
                is_video=session.is_video,
                will_use_resumable_upload=session.will_use_resumable_upload,
                detected_as_video=session.detected_as_video,
            ),
        ),
        message="Signed URL generated successfully",
    )


@router.post(
    "/complete",
    response_model=ApiResponse[dict],
    response_model_exclude_none=True,
)
async def handle_upload_complete(
    request: CompleteUploadRequest = Body(...),
    user: CurrentUser = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_storage),
    store: UploadStore = Depends(get_store),
) -> ApiResponse[dict]:
    """Confirm a direct upload and return its result descriptor."""
    upload_id_context.set(request.upload_id)
    result = await complete_upload(store, storage, request.upload_id, user)
    return ApiResponse(success=True, data=result, message="Upload completed successfully")


@router.get(
    "/status/{upload_id}",
    response_model=ApiResponse[UploadStatusData],
    response_model_exclude_none=True,
)
async def get_upload_status(
    upload_id: str,
    user: CurrentUser = Depends(get_current_user),
    store: UploadStore = Depends(get_store),
) -> ApiResponse[UploadStatusData]:
    """Return the owner's view of an upload session."""
    upload_id_context.set(upload_id)
    session = await get_owned_session(store, upload_id, user)
    return ApiResponse(
        success=True,
        data=UploadStatusData(
            upload_id=session.upload_id,
            status=session.status.value,
            file_name=session.file_name,
            file_size=session.file_size,
            mime_type=session.mime_type,
            created_at=session.created_at,
            completed_at=session.completed_at,
            result=session.result,
        ),
        message="Upload status retrieved",
    )


@router.delete(
    "/{upload_id}",
    response_model=ApiResponse[dict],
    response_model_exclude_none=True,
)
async def remove_upload(
    upload_id: str,
    user: CurrentUser = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_storage),
    store: UploadStore = Depends(get_store),
) -> ApiResponse[dict]:
    """Delete the stored object (best-effort) and forget the session."""
    upload_id_context.set(upload_id)
    await delete_upload(store, storage, upload_id, user)
    return ApiResponse(success=True, message="Upload deleted successfully")
