"""Tests for worker payload normalization."""

import pytest

from app.models.domain import JobStatus, ResultPayload
from app.services.jobs.updates import parse_percent, parse_status, parse_worker_payload


def test_progress_only_payload() -> None:
    update = parse_worker_payload({"status": "processing", "percent": 40})
    assert update.status is None
    assert update.percent == 40
    assert update.result is None
    assert update.error is None
    assert update.raw == {"status": "processing", "percent": 40}


def test_completed_payload_carries_result() -> None:
    update = parse_worker_payload({
        "status": "completed",
        "percent": 100,
        "video_url": "https://cdn/clip.mp4",
        "thumbnail": "https://cdn/thumb.jpg",
        "thumbnails": ["https://cdn/t1.jpg", "https://cdn/t2.jpg"],
    })
    assert update.status is JobStatus.COMPLETED
    assert update.result == ResultPayload(
        video_url="https://cdn/clip.mp4",
        thumbnail="https://cdn/thumb.jpg",
        thumbnails=["https://cdn/t1.jpg", "https://cdn/t2.jpg"],
    )


@pytest.mark.parametrize("raw,expected", [
    ("success", JobStatus.COMPLETED),
    ("ERROR", JobStatus.FAILED),
    ("failed", JobStatus.FAILED),
    ("processing", None),
    (None, None),
    (3, None),
])
def test_status_aliases(raw, expected) -> None:
    assert parse_status(raw) is expected


def test_stream_payload_maps_hls_url_and_message() -> None:
    ok = parse_worker_payload({
        "stream_id": "abc",
        "status": "success",
        "public_hls_url": "https://cdn/abc/index.m3u8",
        "stream_url": "s3://bucket/abc",
    })
    assert ok.result.video_url == "https://cdn/abc/index.m3u8"
    assert ok.result.stream_url == "s3://bucket/abc"

    failed = parse_worker_payload({"stream_id": "abc", "status": "error", "message": "decoder crashed"})
    assert failed.status is JobStatus.FAILED
    assert failed.error == "decoder crashed"


@pytest.mark.parametrize("raw,expected", [
    (55, 55),
    ("70", 70),
    (12.9, 12),
    (None, None),
    (True, None),
    ("abc", None),
    ("inf", None),
    ("Infinity", None),
    (1e999, None),
    ("nan", None),
])
def test_parse_percent(raw, expected) -> None:
    assert parse_percent(raw) == expected


def test_single_thumbnail_string_becomes_list() -> None:
    update = parse_worker_payload({"status": "completed", "thumbnails": "https://cdn/t1.jpg"})
    assert update.result.thumbnails == ["https://cdn/t1.jpg"]


def test_non_object_payload_rejected() -> None:
    with pytest.raises(TypeError):
        parse_worker_payload(["not", "an", "object"])


def test_non_finite_numbers_are_kept_as_text_in_raw() -> None:
    update = parse_worker_payload({"percent": float("inf"), "stats": {"fps": float("nan")}})
    assert update.percent is None
    assert update.raw == {"percent": "inf", "stats": {"fps": "nan"}}
