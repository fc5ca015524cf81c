"""
Lifecycle reconciler.

The one place where a job record changes state. Webhook deliveries, poll
results, submission failures and administrative cancels are all expressed as
a WorkerUpdate plus the channel it came from. The service paths know the
record and apply it through ``LifecycleReconciler.apply_to_record``.
``apply_update`` is the entry point for callers that only hold the worker
job id.

State machine:

    processing --> completed | failed | cancelled

Terminal states are absorbing: once a record leaves ``processing`` only its
raw worker payload keeps accumulating.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.core.exceptions import ConcurrentUpdateError, UnknownJobError, ValidationException
from app.core.logging import log_event
from app.models.domain import JobRecord, JobStatus, ResultPayload, UpdateChannel, WorkerUpdate
from app.repositories.job_store import JobRecordStore
from app.services.jobs.lock import JobLockProvider

logger = logging.getLogger(__name__)

POLL_FAILURE_MESSAGE = "AI processing failed"
DEFAULT_FAILURE_MESSAGE = "Processing failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _clamp_percent(value: int) -> int:
    return max(0, min(100, value))


def _failure_message(update: WorkerUpdate, channel: UpdateChannel) -> str:
    if update.error:
        return update.error
    if channel is UpdateChannel.POLL:
        return POLL_FAILURE_MESSAGE
    return DEFAULT_FAILURE_MESSAGE


def reconcile(
    record: JobRecord,
    update: WorkerUpdate,
    channel: UpdateChannel,
    now: Optional[datetime] = None,
) -> JobRecord:
    """
    Compute the record that results from applying ``update`` to ``record``.

    Pure function: ``record`` is not modified and nothing is persisted.

    Rules, in precedence order:
        1. terminal record: only the raw payload merge applies
        2. completed: progress forced to 100, result payload written once
        3. failed: first error wins, progress held
        4. cancelled: honoured only from the admin channel
        5. percent only: clamped to [0, 100]; poll updates never lower progress
    The raw payload merge happens in every case.
    """
    now = now or _utcnow()
    merged_raw: Dict[str, Any] = dict(record.raw_worker_payload)
    merged_raw.update(update.raw)

    if record.is_terminal:
        return record.copy(raw_worker_payload=merged_raw)

    if update.status is JobStatus.COMPLETED:
        return record.copy(
            status=JobStatus.COMPLETED,
            progress=100,
            result_payload=record.result_payload or update.result or ResultPayload(),
            raw_worker_payload=merged_raw,
            completed_at=now,
        )

    if update.status is JobStatus.FAILED:
        return record.copy(
            status=JobStatus.FAILED,
            error_info=record.error_info or _failure_message(update, channel),
            raw_worker_payload=merged_raw,
            completed_at=now,
        )

    if update.status is JobStatus.CANCELLED and channel is UpdateChannel.ADMIN:
        return record.copy(
            status=JobStatus.CANCELLED,
            raw_worker_payload=merged_raw,
            completed_at=now,
        )

    progress = record.progress
    if update.percent is not None:
        percent = _clamp_percent(update.percent)
        if channel is not UpdateChannel.POLL or percent >= record.progress:
            progress = percent

    return record.copy(progress=progress, raw_worker_payload=merged_raw)


@dataclass(frozen=True)
class ReconcileResult:
    """A stored record plus what the update did to it."""
    record: JobRecord
    previous_status: JobStatus
    previous_progress: int

    @property
    def transitioned(self) -> bool:
        return self.record.status is not self.previous_status


class LifecycleReconciler:
    """
    Applies updates to stored records, one record at a time.

    Every mutation holds the per-record lock and is written with
    compare-and-swap on the record revision; a lost swap re-reads the record
    and recomputes the transition, up to ``max_attempts`` times.
    """

    def __init__(self, store: JobRecordStore, locks: JobLockProvider, max_attempts: int = 5):
        self.store = store
        self.locks = locks
        self.max_attempts = max_attempts

    async def apply_update(self, job_id: Optional[str], update: WorkerUpdate, channel: UpdateChannel) -> ReconcileResult:
        """
        Apply an update addressed by worker job id.

        Raises:
            UnknownJobError: If ``job_id`` is missing or matches no record
        """
        if not job_id:
            log_event(
                level="WARNING",
                logger=__name__,
                function="apply_update",
                operation="reconcile",
                event="unknown_job",
                message=f"Dropping {channel.value} update without a job id",
                context={"raw": update.raw},
            )
            raise UnknownJobError("<missing>")

        record = await self.store.get_by_job_id(job_id)
        if record is None:
            log_event(
                level="WARNING",
                logger=__name__,
                function="apply_update",
                operation="reconcile",
                event="unknown_job",
                message=f"Dropping {channel.value} update for unknown job {job_id}",
                context={"job_id": job_id},
            )
            raise UnknownJobError(job_id)

        return await self.apply_to_record(record.record_id, update, channel)

    async def apply_to_record(self, record_id: str, update: WorkerUpdate, channel: UpdateChannel) -> ReconcileResult:
        """
        Apply an update addressed by record id.

        Raises:
            UnknownJobError: If no record has ``record_id``
            ConcurrentUpdateError: If every compare-and-swap attempt lost
        """
        def transition(current: JobRecord) -> JobRecord:
            return reconcile(current, update, channel)

        result = await self._mutate(record_id, transition)

        if result.transitioned:
            log_event(
                level="INFO",
                logger=__name__,
                function="apply_to_record",
                operation="reconcile",
                event="status_transition",
                message=(
                    f"Job {result.record.job_id or record_id} "
                    f"{result.previous_status.value} -> {result.record.status.value} via {channel.value}"
                ),
                context={
                    "record_id": record_id,
                    "job_id": result.record.job_id,
                    "channel": channel.value,
                    "progress": result.record.progress,
                    "error": result.record.error_info,
                },
            )
        elif result.record.progress != result.previous_progress:
            logger.debug(
                f"Job {result.record.job_id or record_id} progress "
                f"{result.previous_progress} -> {result.record.progress} via {channel.value}"
            )
        elif update.percent is not None and not result.record.is_terminal:
            logger.debug(f"Ignored {channel.value} percent {update.percent} for {record_id} (at {result.record.progress})")

        return result

    async def attach_job_id(self, record_id: str, job_id: str, raw: Optional[Dict[str, Any]] = None) -> JobRecord:
        """
        Bind the worker job id to a record once submission succeeded.

        The job id is assigned exactly once; a different id reported later is
        logged and ignored. ``raw`` (the submission acknowledgement) is merged
        into the raw worker payload.
        """
        if not job_id:
            raise ValidationException("job id must not be empty")

        def transition(current: JobRecord) -> JobRecord:
            merged_raw = dict(current.raw_worker_payload)
            merged_raw.update(raw or {})
            if current.job_id and current.job_id != job_id:
                logger.warning(
                    f"Record {record_id} already has job id {current.job_id}; ignoring {job_id}"
                )
                return current.copy(raw_worker_payload=merged_raw)
            return current.copy(job_id=job_id, raw_worker_payload=merged_raw)

        result = await self._mutate(record_id, transition)
        logger.info(f"Attached job id {result.record.job_id} to record {record_id}")
        return result.record

    async def _mutate(self, record_id: str, transition) -> ReconcileResult:
        async with self.locks.hold(record_id):
            for attempt in range(1, self.max_attempts + 1):
                current = await self.store.get_by_record_id(record_id)
                if current is None:
                    raise UnknownJobError(record_id)

                updated = transition(current)
                stored = await self.store.compare_and_swap(updated, current.revision)
                if stored is not None:
                    return ReconcileResult(
                        record=stored,
                        previous_status=current.status,
                        previous_progress=current.progress,
                    )

                logger.warning(
                    f"Revision conflict on record {record_id} at revision {current.revision} "
                    f"(attempt {attempt}/{self.max_attempts})"
                )

        raise ConcurrentUpdateError(record_id, self.max_attempts)
