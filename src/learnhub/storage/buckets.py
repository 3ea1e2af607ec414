"""Bucket resolution and file validation for uploads."""

import re
from dataclasses import dataclass, field
from enum import Enum

from learnhub.core.config import settings


class Bucket(str, Enum):
    """Logical storage buckets."""

    IMAGES = "images"
    VIDEOS = "videos"
    DOCUMENTS = "documents"
    PROFILES = "profiles"
    COURSES = "courses"
    CHAT = "chat-files"


GENERIC_BINARY_MIME_TYPE = "application/octet-stream"

IMAGE_MIME_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp")

VIDEO_MIME_TYPES = (
    "video/mp4",
    "video/mpeg",
    "video/quicktime",
    "video/x-msvideo",
    "video/webm",
    "video/x-matroska",
    "video/x-flv",
    "video/x-ms-wmv",
    GENERIC_BINARY_MIME_TYPE,  # .mkv files are often reported as generic binary
)

DOCUMENT_MIME_TYPES = (
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
)

_VIDEO_EXTENSION_RE = re.compile(r"\.(mp4|mov|avi|wmv|mkv|flv|webm)$", re.IGNORECASE)
_MKV_EXTENSION_RE = re.compile(r"\.mkv$", re.IGNORECASE)


@dataclass
class ValidationResult:
    """Outcome of a file acceptability check."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    is_video: bool = False
    detected_as_video: bool = False
    will_use_resumable_upload: bool = False


@dataclass(frozen=True)
class BucketDecision:
    """Bucket chosen for a file plus derived upload flags."""

    bucket: Bucket
    is_video: bool
    will_use_resumable_upload: bool


def has_video_extension(file_name: str | None) -> bool:
    return bool(file_name) and bool(_VIDEO_EXTENSION_RE.search(file_name))


def is_octet_stream_mkv(mime_type: str, file_name: str | None) -> bool:
    """Generic binary uploads of .mkv files are accepted as video."""
    return (
        mime_type == GENERIC_BINARY_MIME_TYPE
        and bool(file_name)
        and bool(_MKV_EXTENSION_RE.search(file_name))
    )


def allowed_mime_types(bucket: Bucket) -> tuple[str, ...]:
    """Return the MIME allow-list for a bucket."""
    if bucket == Bucket.VIDEOS:
        return VIDEO_MIME_TYPES
    if bucket == Bucket.DOCUMENTS:
        return DOCUMENT_MIME_TYPES
    return IMAGE_MIME_TYPES


def resolve_bucket(mime_type: str, folder: str = "", file_name: str = "") -> Bucket:
    """Decide which bucket a file belongs to.

    Videos win over everything else, detected by MIME type, by extension, or
    by a generic binary MIME type paired with a video extension. Images are
    refined by the folder hint.

    Args:
        mime_type: Declared MIME type
        folder: Optional folder hint (e.g. "profile-pictures", "courses/123")
        file_name: Original file name

    Returns:
        The resolved bucket
    """
    # Generic binary alone is not enough; it needs a video extension, which
    # the extension check already covers.
    is_video_by_mime = mime_type in VIDEO_MIME_TYPES and mime_type != GENERIC_BINARY_MIME_TYPE

    if is_video_by_mime or has_video_extension(file_name):
        return Bucket.VIDEOS

    if mime_type in DOCUMENT_MIME_TYPES:
        return Bucket.DOCUMENTS

    if mime_type in IMAGE_MIME_TYPES:
        folder = folder or ""
        if "profile" in folder:
            return Bucket.PROFILES
        if "course" in folder:
            return Bucket.COURSES
        if "chat" in folder:
            return Bucket.CHAT
        return Bucket.IMAGES

    return Bucket.IMAGES


def _format_mb(size: int) -> str:
    return f"{size / 1024 / 1024:.2f}MB"


def validate_file(mime_type: str, size: int, file_name: str, bucket: Bucket) -> ValidationResult:
    """Check a declared file against the size ceilings and the bucket allow-list.

    Args:
        mime_type: Declared MIME type
        size: Declared size in bytes
        file_name: Original file name
        bucket: Bucket resolved for the file

    Returns:
        ValidationResult with every violation found
    """
    errors: list[str] = []

    is_video_by_mime = mime_type.startswith("video/")
    is_video_by_extension = has_video_extension(file_name)
    is_video = is_video_by_mime or is_video_by_extension

    if is_video:
        size_limit = settings.video_max_bytes
    elif mime_type.startswith("image/"):
        size_limit = settings.image_max_bytes
    else:
        size_limit = settings.document_max_bytes

    if size > size_limit:
        errors.append(f"File size ({_format_mb(size)}) exceeds limit ({_format_mb(size_limit)})")

    allowed = allowed_mime_types(bucket)
    if mime_type not in allowed and not is_octet_stream_mkv(mime_type, file_name):
        if is_video_by_extension and not is_video_by_mime:
            errors.append(
                "Video file type not properly detected. "
                f"File extension suggests video but mimetype is {mime_type}"
            )
        else:
            errors.append(
                f"File type {mime_type} is not allowed. Allowed types: {', '.join(allowed)}"
            )

    return ValidationResult(
        is_valid=not errors,
        errors=errors,
        is_video=is_video,
        detected_as_video=is_video,
        will_use_resumable_upload=should_use_resumable_upload(size),
    )


def should_use_resumable_upload(size: int) -> bool:
    """Whether a file is large enough that a resumable upload would be preferable."""
    return size > settings.resumable_threshold_bytes


def decide_bucket(mime_type: str, folder: str, file_name: str, size: int) -> BucketDecision:
    """Resolve the bucket and derived flags for a file."""
    bucket = resolve_bucket(mime_type, folder, file_name)
    return BucketDecision(
        bucket=bucket,
        is_video=mime_type.startswith("video/") or has_video_extension(file_name),
        will_use_resumable_upload=should_use_resumable_upload(size),
    )
