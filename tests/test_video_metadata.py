"""Tests for video metadata extraction."""

import json
import subprocess
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from learnhub.core.exceptions import MetadataExtractionError, StorageError
from learnhub.services.video_metadata import (
    VideoMetadata,
    enrich_video_metadata,
    parse_probe_output,
    probe_video_file,
)

PROBE_OUTPUT = {
    "streams": [
        {
            "codec_type": "video",
            "codec_name": "h264",
            "width": 1920,
            "height": 1080,
            "avg_frame_rate": "30000/1001",
        },
        {"codec_type": "audio", "codec_name": "aac"},
    ],
    "format": {
        "format_name": "mov,mp4,m4a,3gp,3g2,mj2",
        "duration": "754.120000",
        "size": "104857600",
        "bit_rate": "1112345",
    },
}


def test_parse_probe_output():
    metadata = parse_probe_output(PROBE_OUTPUT)

    assert metadata.duration == pytest.approx(754.12)
    assert metadata.width == 1920
    assert metadata.height == 1080
    assert metadata.video_codec == "h264"
    assert metadata.audio_codec == "aac"
    assert metadata.frame_rate == pytest.approx(29.97)
    assert metadata.bit_rate == 1112345
    assert metadata.size == 104857600
    assert metadata.format_name.startswith("mov")


def test_parse_probe_output_falls_back_to_stream_duration():
    data = {"streams": [{"codec_type": "video", "duration": "12.5"}], "format": {}}

    metadata = parse_probe_output(data)

    assert metadata.duration == 12.5
    assert metadata.audio_codec is None


def test_parse_probe_output_without_video_stream():
    data = {"streams": [{"codec_type": "audio"}], "format": {"duration": "3"}}

    with pytest.raises(MetadataExtractionError, match="No video stream"):
        parse_probe_output(data)


def test_probe_video_file_success(tmp_path):
    completed = subprocess.CompletedProcess(
        args=[], returncode=0, stdout=json.dumps(PROBE_OUTPUT), stderr=""
    )
    with patch("learnhub.services.video_metadata.subprocess.run", return_value=completed) as run:
        metadata = probe_video_file(tmp_path / "clip.mp4")

    assert metadata.width == 1920
    cmd = run.call_args.args[0]
    assert "-show_format" in cmd
    assert "-show_streams" in cmd
    assert cmd[-1] == str(tmp_path / "clip.mp4")


def test_probe_video_file_nonzero_exit(tmp_path):
    completed = subprocess.CompletedProcess(args=[], returncode=1, stdout="", stderr="Invalid data")
    with patch("learnhub.services.video_metadata.subprocess.run", return_value=completed):
        with pytest.raises(MetadataExtractionError, match="ffprobe failed"):
            probe_video_file(tmp_path / "clip.mp4")


def test_probe_video_file_timeout(tmp_path):
    with patch(
        "learnhub.services.video_metadata.subprocess.run",
        side_effect=subprocess.TimeoutExpired(cmd="ffprobe", timeout=60),
    ):
        with pytest.raises(MetadataExtractionError, match="timed out"):
            probe_video_file(tmp_path / "clip.mp4")


def test_probe_video_file_missing_binary(tmp_path):
    with patch(
        "learnhub.services.video_metadata.subprocess.run",
        side_effect=FileNotFoundError("ffprobe"),
    ):
        with pytest.raises(MetadataExtractionError, match="could not be started"):
            probe_video_file(tmp_path / "clip.mp4")


@pytest.mark.asyncio
async def test_enrich_video_metadata(mock_storage, session_factory, fast_video_settings):
    session = session_factory(
        file_name="lecture.mp4", bucket="videos", file_path="lecture_1.mp4", is_video=True
    )
    mock_storage.download.return_value = b"\x00\x00\x00\x18ftypmp42"

    def fake_probe(path: Path):
        assert path.suffix == ".mp4"
        assert path.read_bytes() == b"\x00\x00\x00\x18ftypmp42"
        return VideoMetadata(duration=42.0, width=640, height=360)

    with patch("learnhub.services.video_metadata.probe_video_file", side_effect=fake_probe):
        enrichment = await enrich_video_metadata(mock_storage, session)

    mock_storage.download.assert_awaited_once_with("videos", "lecture_1.mp4")
    assert enrichment["duration"] == 42.0
    assert enrichment["metadata"]["width"] == 640


@pytest.mark.asyncio
async def test_enrich_video_metadata_download_failure(mock_storage, session_factory, fast_video_settings):
    session = session_factory(file_name="lecture.mp4", bucket="videos", is_video=True)
    mock_storage.download.side_effect = StorageError("Storage download failed", error="404")

    assert await enrich_video_metadata(mock_storage, session) == {"duration": 0}


@pytest.mark.asyncio
async def test_enrich_video_metadata_retries_download(
    mock_storage, session_factory, fast_video_settings, monkeypatch
):
    from learnhub.core.config import settings

    monkeypatch.setattr(settings, "VIDEO_DOWNLOAD_ATTEMPTS", 2)
    session = session_factory(file_name="lecture.mp4", bucket="videos", is_video=True)
    mock_storage.download = AsyncMock(
        side_effect=[StorageError("Storage download failed", error="503"), b"data"]
    )

    with patch(
        "learnhub.services.video_metadata.probe_video_file",
        return_value=VideoMetadata(duration=8.0),
    ):
        enrichment = await enrich_video_metadata(mock_storage, session)

    assert mock_storage.download.await_count == 2
    assert enrichment["duration"] == 8.0


@pytest.mark.asyncio
async def test_enrich_video_metadata_probe_failure(mock_storage, session_factory, fast_video_settings):
    session = session_factory(file_name="lecture.mp4", bucket="videos", is_video=True)
    mock_storage.download.return_value = b"not a video"

    with patch(
        "learnhub.services.video_metadata.probe_video_file",
        side_effect=MetadataExtractionError("No video stream found in file"),
    ):
        assert await enrich_video_metadata(mock_storage, session) == {"duration": 0}


@pytest.mark.asyncio
async def test_enrich_video_metadata_disabled(mock_storage, session_factory, monkeypatch):
    from learnhub.core.config import settings

    monkeypatch.setattr(settings, "VIDEO_METADATA_ENABLED", False)
    session = session_factory(is_video=True)

    assert await enrich_video_metadata(mock_storage, session) == {"duration": 0}
    mock_storage.download.assert_not_called()
