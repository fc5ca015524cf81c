"""Tests for the HTTP API: clip and stream routers, errors and health."""

import asyncio

import pytest
from fastapi.testclient import TestClient

import app.main
from app.api.deps import build_services
from app.models.domain import JobKind, JobStatus, UpdateChannel, WorkerUpdate

from conftest import make_record


@pytest.fixture
def services(settings, store, clip_client, stream_client):
    return asyncio.run(build_services(settings, store=store, clip_client=clip_client, stream_client=stream_client))


@pytest.fixture
def client(services) -> TestClient:
    app.main.app.state.services = services
    yield TestClient(app.main.app)
    app.main.app.state.services = None


def _generate(client, **overrides):
    body = {
        "streamId": "abc123",
        "title": "Goal",
        "startTime": 10,
        "endTime": 25,
        "streamUrl": "https://cdn/abc123/index.m3u8",
    }
    body.update(overrides)
    return client.post("/api/clips/generate", json=body)


def test_root_and_health(client) -> None:
    assert client.get("/").json()["message"] == "Clip Processing API"
    health = client.get("/health").json()
    assert health == {"status": "healthy", "store": "connected"}


def test_generate_clip(client, clip_client) -> None:
    response = _generate(client, tags=["goal"], rating=4)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["job_id"] == "job-1"
    assert body["status"] == "processing"
    assert body["stream_id"] == "abc123"
    assert response.headers["X-Request-ID"]

    record = client.get(f"/api/clips/{body['record_id']}").json()
    assert record["status"] == "processing"
    assert record["duration"] == 15
    assert record["attributes"]["rating"] == 4


def test_generate_clip_validation(client) -> None:
    assert _generate(client, endTime=5).status_code == 400
    assert _generate(client, rating=9).status_code == 422
    assert client.post("/api/clips/generate", json={"title": "x"}).status_code == 422


def test_generate_clip_worker_rejection(client, clip_client) -> None:
    clip_client.submit_error = "HTTP 503: busy"

    response = _generate(client)
    assert response.status_code == 502
    assert "busy" in response.json()["error"]

    listing = client.get("/api/clips/stream/abc123").json()
    assert listing["pagination"]["total"] == 1
    assert listing["items"][0]["status"] == "failed"
    assert listing["items"][0]["error"] == "HTTP 503: busy"


def test_webhook_then_progress(client, clip_client) -> None:
    record_id = _generate(client).json()["record_id"]

    assert client.post(f"/api/clips/webhook/{record_id}", json={"percent": 40}).status_code == 200

    # Worker unreachable: stored progress is served
    progress = client.get("/api/clips/progress", params={"job_id": "job-1"})
    assert progress.status_code == 200
    assert progress.json() == {"status": "processing", "progress": 40, "job_id": "job-1"}

    client.post(f"/api/clips/webhook/{record_id}", json={
        "status": "completed", "percent": 100, "video_url": "X", "thumbnail": "T", "thumbnails": ["T"],
    })
    done = client.get("/api/clips/progress", params={"job_id": "job-1"}).json()
    assert done == {
        "status": "completed",
        "progress": 100,
        "job_id": "job-1",
        "video_url": "X",
        "thumbnail": "T",
        "thumbnails": ["T"],
    }
    assert clip_client.polls == ["job-1"]


def test_progress_polls_running_job(client, clip_client) -> None:
    _generate(client)
    clip_client.poll_payload = {"status": "processing", "percent": 75}

    assert client.get("/api/clips/progress", params={"job_id": "job-1"}).json()["progress"] == 75


def test_progress_unknown_or_missing_job(client) -> None:
    assert client.get("/api/clips/progress", params={"job_id": "nope"}).status_code == 404
    assert client.get("/api/clips/progress").status_code == 422


def test_generate_reports_completion_that_beat_the_acknowledgement(client, services, clip_client) -> None:
    async def complete_first(submission):
        record_id = submission.callback_url.rsplit("/", 1)[1]
        await services.reconciler.apply_to_record(
            record_id,
            WorkerUpdate(status=JobStatus.COMPLETED, raw={"status": "completed"}),
            UpdateChannel.WEBHOOK,
        )

    clip_client.on_submit = complete_first

    body = _generate(client).json()
    assert body["status"] == "completed"
    assert body["job_id"] == "job-1"


def test_webhook_with_non_finite_percent_is_ignored(client) -> None:
    record_id = _generate(client).json()["record_id"]
    client.post(f"/api/clips/webhook/{record_id}", json={"percent": 40})

    response = client.post(
        f"/api/clips/webhook/{record_id}",
        content=b'{"percent": 1e999}',
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 200
    record = client.get(f"/api/clips/{record_id}").json()
    assert record["progress"] == 40
    assert record["raw_worker_payload"]["percent"] == "inf"


def test_webhook_for_unknown_record_is_404(client) -> None:
    response = client.post("/api/clips/webhook/missing", json={"percent": 10})
    assert response.status_code == 404
    assert "Unknown job" in response.json()["error"]
    assert response.json()["type"] == "UnknownJobError"
    assert response.json()["request_id"] == response.headers["X-Request-ID"]


def test_unexpected_error_is_a_generic_500(client, services, monkeypatch) -> None:
    async def broken(record_id, kind=None):
        raise RuntimeError("postgresql://admin:hunter2@db/clips")

    monkeypatch.setattr(services.lifecycle, "get_record", broken)

    response = client.get("/api/clips/rec-1")
    assert response.status_code == 500
    body = response.json()
    assert body == {
        "error": "Internal server error",
        "type": "InternalError",
        "status_code": 500,
        "request_id": response.headers["X-Request-ID"],
    }
    assert "hunter2" not in response.text


def test_manual_update_and_cancel(client) -> None:
    record_id = _generate(client).json()["record_id"]

    updated = client.put(f"/api/clips/update/{record_id}", json={"percent": 55})
    assert updated.json()["progress"] == 55

    cancelled = client.post(f"/api/clips/{record_id}/cancel")
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"

    assert client.post(f"/api/clips/{record_id}/cancel").status_code == 409
    assert client.post("/api/clips/missing/cancel").status_code == 404


def test_clip_listing_pagination(client, clip_client) -> None:
    for i in range(3):
        clip_client.next_job_id = f"job-{i}"
        _generate(client, title=f"clip {i}")

    body = client.get("/api/clips/stream/abc123", params={"page": 2, "limit": 2}).json()
    assert len(body["items"]) == 1
    assert body["pagination"] == {
        "page": 2, "limit": 2, "total": 3, "pages": 2, "has_next_page": False, "has_prev_page": True,
    }
    filtered = client.get("/api/clips/stream/abc123", params={"status": "failed"}).json()
    assert filtered["items"] == []


def test_get_unknown_clip_is_404(client, store) -> None:
    make_record(store, record_id="stream-rec", job_id="s-job", kind=JobKind.STREAM)
    assert client.get("/api/clips/missing").status_code == 404
    assert client.get("/api/clips/stream-rec").status_code == 404


def test_stream_create_webhook_and_listing(client, stream_client) -> None:
    created = client.post("/api/streams/create", json={
        "title": "Final", "url": "https://cdn/final.mp4", "userId": "user-42",
    })
    assert created.status_code == 201
    body = created.json()
    stream_id = body["stream_id"]
    assert body["job_id"] == stream_id
    assert stream_client.submissions[0].input_url == "https://cdn/final.mp4"

    hook = client.post("/api/streams/webhook/ai-status", json={
        "stream_id": stream_id, "status": "success", "public_hls_url": "https://cdn/s/index.m3u8",
    })
    assert hook.status_code == 200

    stream = client.get(f"/api/streams/{stream_id}").json()
    assert stream["status"] == "completed"
    assert stream["result"]["video_url"] == "https://cdn/s/index.m3u8"

    progress = client.get("/api/streams/progress", params={"job_id": stream_id}).json()
    assert progress["status"] == "completed"
    assert progress["progress"] == 100

    listing = client.get("/api/streams", params={"userId": "user-42"}).json()
    assert [item["record_id"] for item in listing["items"]] == [body["record_id"]]
    assert listing["pagination"]["limit"] == 20
    assert client.get("/api/streams", params={"userId": "nobody"}).json()["items"] == []


def test_stream_webhook_errors(client) -> None:
    assert client.post("/api/streams/webhook/ai-status", json={"status": "success"}).status_code == 404
    assert client.post("/api/streams/webhook/ai-status",
                       json={"stream_id": "nope", "status": "success"}).status_code == 404


def test_stream_progress_without_poll_endpoint_serves_stored_state(client) -> None:
    stream_id = client.post("/api/streams/create", json={
        "title": "Final", "url": "https://cdn/final.mp4", "userId": "user-42",
    }).json()["stream_id"]

    progress = client.get("/api/streams/progress", params={"job_id": stream_id})
    assert progress.status_code == 200
    assert progress.json() == {"status": "processing", "progress": 0, "job_id": stream_id}


def test_stream_cancel(client) -> None:
    record_id = client.post("/api/streams/create", json={
        "title": "Final", "url": "https://cdn/final.mp4", "userId": "user-42",
    }).json()["record_id"]

    assert client.post(f"/api/streams/{record_id}/cancel").json()["status"] == "cancelled"
    assert client.post(f"/api/streams/{record_id}/cancel").status_code == 409
