"""Tests for bucket resolution and file validation."""

import pytest

from learnhub.storage.buckets import (
    Bucket,
    decide_bucket,
    resolve_bucket,
    should_use_resumable_upload,
    validate_file,
)

MB = 1024 * 1024
GB = 1024 * MB


@pytest.mark.parametrize(
    "mime_type,file_name",
    [
        ("video/mp4", "lecture.mp4"),
        ("video/quicktime", "clip"),
        ("video/webm", "recording.webm"),
        ("application/octet-stream", "movie.mkv"),
        ("application/octet-stream", "movie.AVI"),
        ("", "talk.mov"),
        ("image/png", "weird.flv"),
        ("video/x-ms-wmv", "old.wmv"),
    ],
)
def test_videos_resolve_to_videos_bucket(mime_type, file_name):
    assert resolve_bucket(mime_type, "courses", file_name) == Bucket.VIDEOS


def test_generic_binary_without_video_extension_is_not_video():
    assert resolve_bucket("application/octet-stream", "", "archive.zip") == Bucket.IMAGES


@pytest.mark.parametrize(
    "mime_type",
    [
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ],
)
def test_documents_bucket(mime_type):
    assert resolve_bucket(mime_type, "courses", "syllabus.pdf") == Bucket.DOCUMENTS


@pytest.mark.parametrize(
    "folder,expected",
    [
        ("profile-pictures", Bucket.PROFILES),
        ("user/profile", Bucket.PROFILES),
        ("courses", Bucket.COURSES),
        ("course-thumbnails", Bucket.COURSES),
        ("chat", Bucket.CHAT),
        ("gallery", Bucket.IMAGES),
        ("", Bucket.IMAGES),
    ],
)
def test_image_folder_hints(folder, expected):
    assert resolve_bucket("image/jpeg", folder, "photo.jpg") == expected


def test_unknown_type_falls_back_to_images():
    assert resolve_bucket("text/plain", "courses", "readme.txt") == Bucket.IMAGES


def test_valid_video():
    result = validate_file("video/mp4", 500 * MB, "lecture.mp4", Bucket.VIDEOS)

    assert result.is_valid is True
    assert result.errors == []
    assert result.is_video is True
    assert result.detected_as_video is True
    assert result.will_use_resumable_upload is True


@pytest.mark.parametrize(
    "mime_type,size,file_name,bucket",
    [
        ("video/mp4", 2 * GB + 1, "lecture.mp4", Bucket.VIDEOS),
        ("image/png", 10 * MB + 1, "photo.png", Bucket.IMAGES),
        ("image/jpeg", 25 * MB, "photo.jpg", Bucket.PROFILES),
        ("application/pdf", 50 * MB + 1, "book.pdf", Bucket.DOCUMENTS),
    ],
)
def test_size_ceilings(mime_type, size, file_name, bucket):
    result = validate_file(mime_type, size, file_name, bucket)

    assert result.is_valid is False
    assert any("exceeds limit" in error for error in result.errors)


def test_size_at_ceiling_is_valid():
    assert validate_file("image/png", 10 * MB, "photo.png", Bucket.IMAGES).is_valid is True
    assert validate_file("video/mp4", 2 * GB, "lecture.mp4", Bucket.VIDEOS).is_valid is True


def test_size_error_message_format():
    result = validate_file("image/png", 15 * MB, "photo.png", Bucket.IMAGES)

    assert result.errors == ["File size (15.00MB) exceeds limit (10.00MB)"]


def test_octet_stream_mkv_is_allowed():
    result = validate_file("application/octet-stream", 100 * MB, "movie.mkv", Bucket.VIDEOS)

    assert result.is_valid is True
    assert result.is_video is True


def test_disallowed_type():
    result = validate_file("text/plain", 100, "notes.txt", Bucket.IMAGES)

    assert result.is_valid is False
    assert result.errors[0].startswith("File type text/plain is not allowed")
    assert "image/png" in result.errors[0]


def test_video_extension_with_wrong_mime_type():
    result = validate_file("text/plain", 100, "clip.mp4", Bucket.VIDEOS)

    assert result.is_valid is False
    assert "Video file type not properly detected" in result.errors[0]


def test_document_in_images_bucket_is_rejected():
    result = validate_file("application/pdf", 100, "book.pdf", Bucket.IMAGES)

    assert result.is_valid is False


def test_resumable_threshold_is_advisory():
    assert should_use_resumable_upload(50 * MB) is False
    assert should_use_resumable_upload(50 * MB + 1) is True


def test_decide_bucket():
    decision = decide_bucket("video/mp4", "courses", "lecture.mp4", 60 * MB)

    assert decision.bucket == Bucket.VIDEOS
    assert decision.is_video is True
    assert decision.will_use_resumable_upload is True
