"""
Processing job database repository - CRUD operations for the processing_jobs table.
Follows the module-level async function pattern used by the other db repositories.
"""
import logging
from datetime import datetime
from typing import Optional, Any, Dict

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models.processing_job import ProcessingJob

logger = logging.getLogger(__name__)


async def create(
    session: AsyncSession,
    record_id: str,
    kind: str,
    status: str = "processing",
    progress: int = 0,
    parent_id: Optional[str] = None,
    title: Optional[str] = None,
    source_url: Optional[str] = None,
    start_time: Optional[float] = None,
    end_time: Optional[float] = None,
    attributes: Optional[Dict[str, Any]] = None,
    created_by: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> ProcessingJob:
    """
    Insert a single processing job row.

    Returns the ProcessingJob instance with its auto-generated id populated.
    """
    job = ProcessingJob(
        record_id=record_id,
        kind=kind,
        status=status,
        progress=progress,
        parent_id=parent_id,
        title=title,
        source_url=source_url,
        start_time=start_time,
        end_time=end_time,
        attributes=attributes or {},
        raw_worker_payload={},
        revision=0,
        created_by=created_by,
    )
    if created_at is not None:
        job.created_at = created_at
        job.updated_at = created_at
    session.add(job)
    await session.flush()
    await session.refresh(job)
    return job


async def get_by_record_id(session: AsyncSession, record_id: str) -> Optional[ProcessingJob]:
    """Look up a job by the identifier this system assigned to it."""
    stmt = select(ProcessingJob).where(ProcessingJob.record_id == record_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_by_job_id(session: AsyncSession, job_id: str) -> Optional[ProcessingJob]:
    """Look up a job by the identifier the remote worker assigned to it."""
    stmt = select(ProcessingJob).where(ProcessingJob.job_id == job_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def compare_and_swap(
    session: AsyncSession,
    record_id: str,
    expected_revision: int,
    values: Dict[str, Any],
) -> Optional[ProcessingJob]:
    """
    Write ``values`` only if the row is still at ``expected_revision``.

    The revision is bumped and updated_at refreshed in the same statement.

    Returns:
        The updated ProcessingJob, or None if the row moved on (or vanished)
    """
    stmt = (
        update(ProcessingJob)
        .where(ProcessingJob.record_id == record_id)
        .where(ProcessingJob.revision == expected_revision)
        .values(
            **values,
            revision=expected_revision + 1,
            updated_at=func.now(),
        )
        .returning(ProcessingJob)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    job = result.scalar_one_or_none()
    if job is None:
        logger.debug(f"Revision conflict for {record_id} at revision {expected_revision}")
    return job


def _filtered(stmt, kind: str, parent_id: Optional[str], created_by: Optional[str], status: Optional[str]):
    stmt = stmt.where(ProcessingJob.kind == kind)
    if parent_id is not None:
        stmt = stmt.where(ProcessingJob.parent_id == parent_id)
    if created_by is not None:
        stmt = stmt.where(ProcessingJob.created_by == created_by)
    if status is not None:
        stmt = stmt.where(ProcessingJob.status == status)
    return stmt


async def list_filtered(
    session: AsyncSession,
    kind: str,
    parent_id: Optional[str] = None,
    created_by: Optional[str] = None,
    status: Optional[str] = None,
    offset: int = 0,
    limit: int = 20,
) -> list[ProcessingJob]:
    """Return jobs of one kind matching the filters, newest first."""
    stmt = _filtered(select(ProcessingJob), kind, parent_id, created_by, status)
    stmt = stmt.order_by(ProcessingJob.created_at.desc(), ProcessingJob.id.desc()).offset(offset).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count_filtered(
    session: AsyncSession,
    kind: str,
    parent_id: Optional[str] = None,
    created_by: Optional[str] = None,
    status: Optional[str] = None,
) -> int:
    """Count jobs of one kind matching the filters."""
    stmt = _filtered(select(func.count(ProcessingJob.id)), kind, parent_id, created_by, status)
    result = await session.execute(stmt)
    return int(result.scalar_one())
