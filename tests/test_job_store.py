"""Tests for both record store backends (in-memory and SQL on aiosqlite)."""

import asyncio
from contextlib import asynccontextmanager

import pytest

from app.core.config import Settings
from app.core.exceptions import ValidationException
from app.database.session import Database
from app.models.domain import JobKind, JobRecord, JobStatus, ResultPayload
from app.repositories.job_store import InMemoryJobRecordStore, SqlJobRecordStore


@pytest.fixture(params=["memory", "sql"])
def open_store(request, tmp_path):
    """Async context manager factory yielding a fresh store of each backend."""

    @asynccontextmanager
    async def _open():
        if request.param == "memory":
            store = InMemoryJobRecordStore()
        else:
            url = f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}"
            database = Database(url, Settings(database_url=url))
            database.init()
            await database.create_tables()
            store = SqlJobRecordStore(database)
        try:
            yield store
        finally:
            await store.close()

    return _open


def _clip(record_id: str, parent_id: str = "stream-1", **fields) -> JobRecord:
    return JobRecord(record_id=record_id, kind=JobKind.CLIP, parent_id=parent_id, **fields)


def test_create_and_lookup(open_store) -> None:
    async def scenario():
        async with open_store() as store:
            created = await store.create(_clip("rec-1", title="Goal", start_time=5.0, end_time=20.0,
                                               attributes={"tags": ["goal"]}))
            assert created.revision == 0
            assert created.status is JobStatus.PROCESSING
            assert created.created_at is not None

            fetched = await store.get_by_record_id("rec-1")
            assert fetched.title == "Goal"
            assert fetched.duration == 15.0
            assert fetched.attributes == {"tags": ["goal"]}
            assert await store.get_by_record_id("missing") is None
            assert await store.get_by_job_id("job-1") is None

    asyncio.run(scenario())


def test_compare_and_swap_bumps_revision_and_rejects_stale(open_store) -> None:
    async def scenario():
        async with open_store() as store:
            created = await store.create(_clip("rec-1"))

            stored = await store.compare_and_swap(created.copy(job_id="job-1", progress=20), 0)
            assert stored.revision == 1
            assert stored.job_id == "job-1"
            assert stored.progress == 20
            assert (await store.get_by_job_id("job-1")).record_id == "rec-1"

            # Computed from the revision 0 snapshot, so it must not land
            stale = await store.compare_and_swap(created.copy(progress=5), 0)
            assert stale is None
            assert (await store.get_by_record_id("rec-1")).progress == 20

    asyncio.run(scenario())


def test_compare_and_swap_round_trips_result_and_raw(open_store) -> None:
    async def scenario():
        async with open_store() as store:
            created = await store.create(_clip("rec-1"))
            done = created.copy(
                status=JobStatus.COMPLETED,
                progress=100,
                result_payload=ResultPayload(video_url="X", thumbnail="T", thumbnails=["T1"]),
                raw_worker_payload={"status": "completed", "percent": 100},
            )
            await store.compare_and_swap(done, created.revision)

            fetched = await store.get_by_record_id("rec-1")
            assert fetched.status is JobStatus.COMPLETED
            assert fetched.result_payload == ResultPayload(video_url="X", thumbnail="T", thumbnails=["T1"])
            assert fetched.raw_worker_payload == {"status": "completed", "percent": 100}

    asyncio.run(scenario())


def test_job_id_is_unique_across_records(open_store) -> None:
    async def scenario():
        async with open_store() as store:
            first = await store.create(_clip("rec-1"))
            second = await store.create(_clip("rec-2"))
            await store.compare_and_swap(first.copy(job_id="job-1"), 0)
            with pytest.raises(ValidationException):
                await store.compare_and_swap(second.copy(job_id="job-1"), 0)

    asyncio.run(scenario())


def test_stored_records_are_not_shared(open_store) -> None:
    async def scenario():
        async with open_store() as store:
            created = await store.create(_clip("rec-1"))
            created.raw_worker_payload["leak"] = True
            assert (await store.get_by_record_id("rec-1")).raw_worker_payload == {}

    asyncio.run(scenario())


def test_list_filters_and_paginates(open_store) -> None:
    async def scenario():
        async with open_store() as store:
            for i in range(3):
                await store.create(_clip(f"rec-{i}"))
            await store.create(_clip("rec-other", parent_id="stream-2"))
            await store.create(JobRecord(record_id="stream-rec", kind=JobKind.STREAM, parent_id="stream-1",
                                         created_by="user-1"))

            page = await store.list(JobKind.CLIP, parent_id="stream-1", page=1, limit=2)
            assert page.total == 3
            assert len(page.items) == 2
            assert page.pages == 2
            assert {r.record_id for r in page.items} <= {"rec-0", "rec-1", "rec-2"}

            assert (await store.list(JobKind.CLIP, parent_id="stream-1", status=JobStatus.FAILED)).total == 0
            streams = await store.list(JobKind.STREAM, created_by="user-1")
            assert [r.record_id for r in streams.items] == ["stream-rec"]

    asyncio.run(scenario())


def test_ping(open_store) -> None:
    async def scenario():
        async with open_store() as store:
            assert await store.ping() is True

    asyncio.run(scenario())
