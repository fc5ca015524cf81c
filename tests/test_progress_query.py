"""Tests for the progress read path."""

import pytest

from app.core.config import Settings
from app.core.exceptions import NotFoundError
from app.models.domain import JobKind, JobStatus, ResultPayload
from app.services.ai.stream_worker_client import StreamWorkerClient
from app.services.jobs.progress_query import ProgressQueryService

from conftest import FakeWorkerClient, make_record, run


@pytest.fixture
def service(store, reconciler, clip_client, stream_client) -> ProgressQueryService:
    return ProgressQueryService(store, reconciler, {JobKind.CLIP: clip_client, JobKind.STREAM: stream_client})


def test_unknown_job_is_not_found(service) -> None:
    with pytest.raises(NotFoundError):
        run(service.get_status("nope"))


def test_kind_mismatch_is_not_found(store, service) -> None:
    make_record(store, kind=JobKind.STREAM, job_id="stream-job")
    with pytest.raises(NotFoundError):
        run(service.get_status("stream-job", kind=JobKind.CLIP))


def test_terminal_record_served_without_polling(store, service, clip_client) -> None:
    record = make_record(store)
    run(store.compare_and_swap(
        record.copy(status=JobStatus.COMPLETED, progress=100, result_payload=ResultPayload(video_url="X")),
        record.revision,
    ))

    check = run(service.check("job-1"))
    assert check.source == "stored"
    assert check.view.to_dict() == {
        "status": "completed",
        "progress": 100,
        "job_id": "job-1",
        "video_url": "X",
        "thumbnail": None,
        "thumbnails": [],
    }
    assert clip_client.polls == []


def test_failed_record_gets_default_error(store, service) -> None:
    record = make_record(store, progress=0)
    run(store.compare_and_swap(record.copy(status=JobStatus.FAILED, progress=35), record.revision))

    view = run(service.get_status("job-1"))
    assert view.to_dict() == {
        "status": "failed",
        "progress": 35,
        "job_id": "job-1",
        "error": "Clip generation failed",
    }


def test_running_job_is_polled_and_reconciled(store, service, clip_client) -> None:
    make_record(store)
    clip_client.poll_payload = {"status": "processing", "percent": 42}

    check = run(service.check("job-1"))
    assert check.source == "poll"
    assert check.view.to_dict() == {"status": "processing", "progress": 42, "job_id": "job-1"}
    assert run(store.get_by_job_id("job-1")).progress == 42
    assert clip_client.polls == ["job-1"]


def test_poll_completion_is_persisted(store, service, clip_client) -> None:
    make_record(store)
    clip_client.poll_payload = {
        "status": "completed",
        "percent": 100,
        "video_url": "https://cdn/c.mp4",
        "thumbnail": "https://cdn/t.jpg",
        "thumbnails": ["https://cdn/t.jpg"],
    }

    view = run(service.get_status("job-1"))
    assert view.status is JobStatus.COMPLETED
    stored = run(store.get_by_job_id("job-1"))
    assert stored.status is JobStatus.COMPLETED
    assert stored.result_payload.thumbnails == ["https://cdn/t.jpg"]


def test_poll_failure_uses_poll_default_message(store, service, clip_client) -> None:
    make_record(store)
    clip_client.poll_payload = {"status": "failed", "percent": 20}

    view = run(service.get_status("job-1"))
    assert view.error == "AI processing failed"
    assert view.progress == 0


def test_slow_poll_does_not_regress_webhook_progress(store, service, clip_client) -> None:
    record = make_record(store)
    run(store.compare_and_swap(record.copy(progress=60), record.revision))
    clip_client.poll_payload = {"status": "processing", "percent": 30}

    view = run(service.get_status("job-1"))
    assert view.progress == 60


def test_unreachable_worker_falls_back_to_stored_state(store, service, clip_client) -> None:
    record = make_record(store)
    run(store.compare_and_swap(record.copy(progress=55), record.revision))
    clip_client.poll_error = "connection refused"

    check = run(service.check("job-1"))
    assert check.source == "fallback"
    assert check.view.to_dict() == {"status": "processing", "progress": 55, "job_id": "job-1"}


def test_non_finite_poll_percent_serves_stored_state(store, service, clip_client) -> None:
    record = make_record(store)
    run(store.compare_and_swap(record.copy(progress=30), record.revision))
    clip_client.poll_payload = {"percent": "Infinity", "status": "processing"}

    view = run(service.get_status("job-1"))
    assert view.to_dict() == {"status": "processing", "progress": 30, "job_id": "job-1"}
    assert run(store.get_by_record_id("rec-1")).progress == 30


def test_stream_without_progress_endpoint_serves_stored_state(store, reconciler) -> None:
    make_record(store, kind=JobKind.STREAM, job_id="abc123")

    stream_client = StreamWorkerClient(Settings())
    service = ProgressQueryService(store, reconciler, {JobKind.CLIP: FakeWorkerClient(), JobKind.STREAM: stream_client})

    check = run(service.check("abc123", kind=JobKind.STREAM))
    assert check.source == "fallback"
    assert check.view.status is JobStatus.PROCESSING
