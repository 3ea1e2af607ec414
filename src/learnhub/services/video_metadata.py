"""Video metadata extraction with ffprobe."""

import asyncio
import json
import logging
import subprocess
import tempfile
from pathlib import Path
from typing import Any, NamedTuple

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from learnhub.core.config import settings
from learnhub.core.exceptions import MetadataExtractionError, StorageError
from learnhub.storage.base import ObjectStorage
from learnhub.storage.upload_store import UploadSession

logger = logging.getLogger(__name__)


class VideoMetadata(NamedTuple):
    """Container and stream metadata of a video file."""

    duration: float = 0.0
    width: int | None = None
    height: int | None = None
    video_codec: str | None = None
    audio_codec: str | None = None
    frame_rate: float | None = None
    bit_rate: int | None = None
    format_name: str | None = None
    size: int | None = None


def _parse_frame_rate(value: str | None) -> float | None:
    """Parse ffprobe rational frame rates such as ``30000/1001``."""
    if not value:
        return None
    try:
        if "/" in value:
            num, den = value.split("/", 1)
            return round(float(num) / float(den), 3) if float(den) else None
        return float(value)
    except ValueError:
        return None


def parse_probe_output(probe_data: dict[str, Any]) -> VideoMetadata:
    """Build VideoMetadata from ffprobe's JSON output.

    Raises:
        MetadataExtractionError: If the file has no video stream
    """
    streams = probe_data.get("streams", [])
    video_stream = next((s for s in streams if s.get("codec_type") == "video"), None)
    audio_stream = next((s for s in streams if s.get("codec_type") == "audio"), None)

    if video_stream is None:
        raise MetadataExtractionError("No video stream found in file")

    fmt = probe_data.get("format", {})
    duration = float(fmt.get("duration") or video_stream.get("duration") or 0)
    bit_rate = fmt.get("bit_rate")
    size = fmt.get("size")

    return VideoMetadata(
        duration=duration,
        width=video_stream.get("width"),
        height=video_stream.get("height"),
        video_codec=video_stream.get("codec_name"),
        audio_codec=audio_stream.get("codec_name") if audio_stream else None,
        frame_rate=_parse_frame_rate(video_stream.get("avg_frame_rate") or video_stream.get("r_frame_rate")),
        bit_rate=int(bit_rate) if bit_rate else None,
        format_name=fmt.get("format_name"),
        size=int(size) if size else None,
    )


def probe_video_file(file_path: Path) -> VideoMetadata:
    """Extract metadata from a video file using ffprobe.

    Args:
        file_path: Path to the video file

    Returns:
        Video metadata

    Raises:
        MetadataExtractionError: If metadata extraction fails
    """
    cmd = [
        settings.FFPROBE_PATH,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(file_path),
    ]

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=settings.FFPROBE_TIMEOUT_SECONDS,
        )
    except subprocess.TimeoutExpired as e:
        logger.error("ffprobe timeout", extra={"file_path": str(file_path)})
        raise MetadataExtractionError("Metadata extraction timed out") from e
    except OSError as e:
        raise MetadataExtractionError(f"ffprobe could not be started: {e}") from e

    if result.returncode != 0:
        raise MetadataExtractionError(f"ffprobe failed: {result.stderr.strip()}")

    try:
        probe_data = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise MetadataExtractionError(f"Failed to parse video metadata: {e}") from e

    return parse_probe_output(probe_data)


async def extract_video_metadata(data: bytes, file_name: str) -> VideoMetadata:
    """Write video bytes to a temporary file and probe it off the event loop."""
    suffix = Path(file_name).suffix or ".bin"
    with tempfile.TemporaryDirectory() as tmpdir:
        video_path = Path(tmpdir) / f"video{suffix}"
        video_path.write_bytes(data)
        return await asyncio.to_thread(probe_video_file, video_path)


async def enrich_video_metadata(storage: ObjectStorage, session: UploadSession) -> dict[str, Any]:
    """Best-effort enrichment stage for completed video uploads.

    Downloads the object (retrying storage failures), probes it and returns
    the fields to merge into the result descriptor. Never raises: on any
    failure the duration is reported as 0.
    """
    if not settings.VIDEO_METADATA_ENABLED:
        return {"duration": 0}

    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(settings.VIDEO_DOWNLOAD_ATTEMPTS),
            wait=wait_exponential(multiplier=1, min=1, max=8),
            retry=retry_if_exception_type(StorageError),
            reraise=True,
        ):
            with attempt:
                data = await storage.download(session.bucket, session.file_path)

        metadata = await extract_video_metadata(data, session.file_name)
    except Exception as e:
        logger.warning(
            "Failed to extract video metadata",
            extra={
                "upload_id": session.upload_id,
                "bucket": session.bucket,
                "path": session.file_path,
                "error": str(e),
            },
        )
        return {"duration": 0}

    logger.info(
        "Video duration extracted",
        extra={"upload_id": session.upload_id, "duration": metadata.duration},
    )
    return {"duration": metadata.duration, "metadata": metadata._asdict()}
