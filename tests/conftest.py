"""Shared fixtures: in-memory store, fake worker clients and wired services."""

import asyncio
import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Must be set before app.main is imported anywhere
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="clip-api-logs-"))
os.environ.setdefault("RECORD_STORE_BACKEND", "memory")
os.environ.setdefault("JOB_LOCK_BACKEND", "memory")

from app.core.config import Settings
from app.core.exceptions import RemoteSubmissionError, RemoteUnavailableError
from app.models.domain import JobKind, JobRecord, WorkerUpdate
from app.repositories.job_store import InMemoryJobRecordStore
from app.services.ai.clip_worker_client import SubmissionResult
from app.services.jobs.lock import InProcessJobLocks
from app.services.jobs.reconciler import LifecycleReconciler
from app.services.jobs.updates import parse_worker_payload


class FakeWorkerClient:
    """Stands in for a worker client; records submissions and serves scripted polls."""

    def __init__(self, service_key: str = "clip_worker"):
        self.service_key = service_key
        self.submissions: List[Any] = []
        self.polls: List[str] = []
        self.next_job_id: Optional[str] = "job-1"
        self.submit_error: Optional[str] = None
        self.poll_payload: Optional[Dict[str, Any]] = None
        self.poll_error: Optional[str] = None
        # Awaited with the submission before the acknowledgement is returned
        self.on_submit: Optional[Callable[[Any], Awaitable[None]]] = None
        self.closed = False

    async def submit(self, submission) -> SubmissionResult:
        self.submissions.append(submission)
        if self.submit_error:
            raise RemoteSubmissionError(self.service_key, self.submit_error)
        if self.on_submit is not None:
            await self.on_submit(submission)
        # The stream worker may omit a job id and is then tracked by stream id
        job_id = self.next_job_id or submission.stream_id
        raw = {"job_id": job_id, "status": "queued"}
        return SubmissionResult(job_id=job_id, status="queued", raw=raw)

    async def poll(self, job_id: str) -> WorkerUpdate:
        self.polls.append(job_id)
        if self.poll_error or self.poll_payload is None:
            raise RemoteUnavailableError(self.service_key, self.poll_error or "unreachable")
        return parse_worker_payload(self.poll_payload)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def settings() -> Settings:
    return Settings(
        record_store_backend="memory",
        job_lock_backend="memory",
        webhook_base_url="http://api.test",
        clip_worker_url="http://clip-worker.test",
        stream_worker_url="http://stream-worker.test",
        log_dir=Path(os.environ["LOG_DIR"]),
    )


@pytest.fixture
def store() -> InMemoryJobRecordStore:
    return InMemoryJobRecordStore()


@pytest.fixture
def reconciler(store) -> LifecycleReconciler:
    return LifecycleReconciler(store, InProcessJobLocks(acquire_timeout=1.0), max_attempts=3)


@pytest.fixture
def clip_client() -> FakeWorkerClient:
    return FakeWorkerClient("clip_worker")


@pytest.fixture
def stream_client() -> FakeWorkerClient:
    client = FakeWorkerClient("stream_worker")
    client.next_job_id = None
    return client


def run(coro):
    return asyncio.run(coro)


def make_record(store, record_id: str = "rec-1", job_id: Optional[str] = "job-1",
                kind: JobKind = JobKind.CLIP, **fields) -> JobRecord:
    """Create a processing record and attach ``job_id`` through the store."""
    async def _create() -> JobRecord:
        created = await store.create(JobRecord(record_id=record_id, kind=kind, **fields))
        if job_id is None:
            return created
        return await store.compare_and_swap(created.copy(job_id=job_id), created.revision)
    return run(_create())
