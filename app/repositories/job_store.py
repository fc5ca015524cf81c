"""
Job record store.

The reconciler and the services only talk to a JobRecordStore. Writes after
creation go through compare_and_swap so that no update can be computed from
a stale snapshot and stored over a newer one.

Two backends:
- SqlJobRecordStore: async SQLAlchemy, one short transaction per call
- InMemoryJobRecordStore: dict-backed, for tests and local development
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ValidationException
from app.database.models.processing_job import ProcessingJob
from app.database.session import Database
from app.models.domain import JobRecord, JobKind, JobStatus, ResultPayload, Page
from app.repositories import processing_job_db_repository

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class JobRecordStore(ABC):
    """Durable keyed storage for processing job records."""

    @abstractmethod
    async def create(self, record: JobRecord) -> JobRecord:
        """Insert a new record at revision 0 and return the stored copy."""

    @abstractmethod
    async def get_by_record_id(self, record_id: str) -> Optional[JobRecord]:
        ...

    @abstractmethod
    async def get_by_job_id(self, job_id: str) -> Optional[JobRecord]:
        ...

    @abstractmethod
    async def compare_and_swap(self, record: JobRecord, expected_revision: int) -> Optional[JobRecord]:
        """
        Persist the mutable fields of ``record`` if the stored revision still
        equals ``expected_revision``.

        Returns:
            The stored record at ``expected_revision + 1``, or None on conflict
        """

    @abstractmethod
    async def list(
        self,
        kind: JobKind,
        parent_id: Optional[str] = None,
        created_by: Optional[str] = None,
        status: Optional[JobStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        """Return one page of records of ``kind``, newest first."""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass


def _mutable_values(record: JobRecord) -> Dict[str, Any]:
    """Columns the reconciler and lifecycle service are allowed to change."""
    return {
        "job_id": record.job_id,
        "status": record.status.value,
        "progress": record.progress,
        "result_payload": record.result_payload.to_dict() if record.result_payload else None,
        "error_info": record.error_info,
        "raw_worker_payload": dict(record.raw_worker_payload),
        "completed_at": record.completed_at,
    }


def _to_domain(row: ProcessingJob) -> JobRecord:
    return JobRecord(
        record_id=row.record_id,
        kind=JobKind(row.kind),
        status=JobStatus(row.status),
        progress=row.progress,
        job_id=row.job_id,
        result_payload=ResultPayload.from_dict(row.result_payload),
        error_info=row.error_info,
        raw_worker_payload=dict(row.raw_worker_payload or {}),
        revision=row.revision,
        parent_id=row.parent_id,
        title=row.title,
        source_url=row.source_url,
        start_time=row.start_time,
        end_time=row.end_time,
        attributes=dict(row.attributes or {}),
        created_by=row.created_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
        completed_at=row.completed_at,
    )


class SqlJobRecordStore(JobRecordStore):
    """Record store backed by the processing_jobs table."""

    def __init__(self, database: Database):
        self.database = database

    async def create(self, record: JobRecord) -> JobRecord:
        async with self.database.session_factory() as session, session.begin():
            row = await processing_job_db_repository.create(
                session,
                record_id=record.record_id,
                kind=record.kind.value,
                status=record.status.value,
                progress=record.progress,
                parent_id=record.parent_id,
                title=record.title,
                source_url=record.source_url,
                start_time=record.start_time,
                end_time=record.end_time,
                attributes=record.attributes,
                created_by=record.created_by,
                created_at=record.created_at,
            )
            return _to_domain(row)

    async def get_by_record_id(self, record_id: str) -> Optional[JobRecord]:
        async with self.database.session_factory() as session:
            row = await processing_job_db_repository.get_by_record_id(session, record_id)
            return _to_domain(row) if row else None

    async def get_by_job_id(self, job_id: str) -> Optional[JobRecord]:
        async with self.database.session_factory() as session:
            row = await processing_job_db_repository.get_by_job_id(session, job_id)
            return _to_domain(row) if row else None

    async def compare_and_swap(self, record: JobRecord, expected_revision: int) -> Optional[JobRecord]:
        try:
            async with self.database.session_factory() as session, session.begin():
                row = await processing_job_db_repository.compare_and_swap(
                    session,
                    record.record_id,
                    expected_revision,
                    _mutable_values(record),
                )
                return _to_domain(row) if row else None
        except IntegrityError as e:
            # The only unique column the reconciler writes is job_id
            raise ValidationException(f"job id {record.job_id} is already assigned to another record") from e

    async def list(
        self,
        kind: JobKind,
        parent_id: Optional[str] = None,
        created_by: Optional[str] = None,
        status: Optional[JobStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        status_value = status.value if status else None
        async with self.database.session_factory() as session:
            rows = await processing_job_db_repository.list_filtered(
                session,
                kind.value,
                parent_id=parent_id,
                created_by=created_by,
                status=status_value,
                offset=(page - 1) * limit,
                limit=limit,
            )
            total = await processing_job_db_repository.count_filtered(
                session,
                kind.value,
                parent_id=parent_id,
                created_by=created_by,
                status=status_value,
            )
        return Page(items=[_to_domain(row) for row in rows], page=page, limit=limit, total=total)

    async def ping(self) -> bool:
        try:
            async with self.database.session_factory() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Record store health check failed: {e}")
            return False

    async def close(self) -> None:
        await self.database.close()


class InMemoryJobRecordStore(JobRecordStore):
    """
    Record store kept in process memory.

    A single asyncio.Lock makes each call atomic; stored records are copied on
    the way in and out so callers never hold a live reference.
    """

    def __init__(self):
        self._records: Dict[str, JobRecord] = {}
        self._job_index: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def create(self, record: JobRecord) -> JobRecord:
        async with self._lock:
            if record.record_id in self._records:
                raise ValidationException(f"record {record.record_id} already exists")
            now = record.created_at or _utcnow()
            stored = record.copy(revision=0, created_at=now, updated_at=now)
            self._records[stored.record_id] = stored
            if stored.job_id:
                self._job_index[stored.job_id] = stored.record_id
            return stored.copy()

    async def get_by_record_id(self, record_id: str) -> Optional[JobRecord]:
        async with self._lock:
            stored = self._records.get(record_id)
            return stored.copy() if stored else None

    async def get_by_job_id(self, job_id: str) -> Optional[JobRecord]:
        async with self._lock:
            record_id = self._job_index.get(job_id)
            stored = self._records.get(record_id) if record_id else None
            return stored.copy() if stored else None

    async def compare_and_swap(self, record: JobRecord, expected_revision: int) -> Optional[JobRecord]:
        async with self._lock:
            current = self._records.get(record.record_id)
            if current is None or current.revision != expected_revision:
                return None
            if record.job_id and self._job_index.get(record.job_id, record.record_id) != record.record_id:
                raise ValidationException(f"job id {record.job_id} is already assigned to another record")

            stored = current.copy(
                revision=expected_revision + 1,
                updated_at=_utcnow(),
                **{
                    "job_id": record.job_id,
                    "status": record.status,
                    "progress": record.progress,
                    "result_payload": record.result_payload,
                    "error_info": record.error_info,
                    "raw_worker_payload": dict(record.raw_worker_payload),
                    "completed_at": record.completed_at,
                },
            )
            self._records[stored.record_id] = stored
            if stored.job_id:
                self._job_index[stored.job_id] = stored.record_id
            return stored.copy()

    async def list(
        self,
        kind: JobKind,
        parent_id: Optional[str] = None,
        created_by: Optional[str] = None,
        status: Optional[JobStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        async with self._lock:
            matches = [
                r for r in self._records.values()
                if r.kind is kind
                and (parent_id is None or r.parent_id == parent_id)
                and (created_by is None or r.created_by == created_by)
                and (status is None or r.status is status)
            ]
        # Insertion order breaks ties between equal timestamps
        matches = list(reversed(matches))
        matches.sort(key=lambda r: r.created_at, reverse=True)
        offset = (page - 1) * limit
        items = [r.copy() for r in matches[offset:offset + limit]]
        return Page(items=items, page=page, limit=limit, total=len(matches))
