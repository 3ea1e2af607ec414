"""Upload data models."""

from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Uniform response envelope."""

    success: bool
    data: Optional[T] = None
    message: str = ""
    error: Optional[str] = None


class CamelModel(BaseModel):
    """Base model exposing camelCase field aliases on the wire."""

    model_config = ConfigDict(populate_by_name=True)


class SignedUrlRequest(CamelModel):
    """Request model for issuing a signed upload URL."""

    file_name: str = Field(alias="fileName", min_length=1)
    file_size: int = Field(alias="fileSize", gt=0)
    mime_type: str = Field(alias="mimeType", min_length=1)
    folder: str = ""


class UploadMetadata(CamelModel):
    """Derived flags reported with a signed URL."""

    is_video: bool = Field(alias="isVideo")
    will_use_resumable_upload: bool = Field(alias="willUseResumableUpload")
    detected_as_video: bool = Field(alias="detectedAsVideo")


class SignedUrlData(CamelModel):
    """Response payload for a signed upload URL."""

    upload_id: str = Field(alias="uploadId")
    signed_url: str = Field(alias="signedUrl")
    token: str
    bucket: str
    file_path: str = Field(alias="filePath")
    unique_file_name: str = Field(alias="uniqueFileName")
    expires_at: datetime = Field(alias="expiresAt")
    upload_metadata: UploadMetadata = Field(alias="uploadMetadata")


class CompleteUploadRequest(CamelModel):
    """Request model for completing a direct upload."""

    upload_id: str = Field(alias="uploadId", min_length=1)


class UploadStatusData(CamelModel):
    """Owner-facing projection of an upload session."""

    upload_id: str = Field(alias="uploadId")
    status: str
    file_name: str = Field(alias="fileName")
    file_size: int = Field(alias="fileSize")
    mime_type: str = Field(alias="mimeType")
    created_at: datetime = Field(alias="createdAt")
    completed_at: Optional[datetime] = Field(default=None, alias="completedAt")
    result: Optional[dict[str, Any]] = None
