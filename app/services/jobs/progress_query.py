"""
Progress read path.

Answers "what is the status of job X" from the stored record, refreshing it
from the worker's progress endpoint while the job is still running. A worker
that cannot be reached never fails the read; the last stored state is
returned instead.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from app.core.exceptions import NotFoundError, RemoteUnavailableError, UnknownJobError
from app.models.domain import JobKind, JobRecord, StatusView, UpdateChannel, WorkerUpdate
from app.repositories.job_store import JobRecordStore
from app.services.jobs.reconciler import LifecycleReconciler

logger = logging.getLogger(__name__)

SOURCE_STORED = "stored"
SOURCE_POLL = "poll"
SOURCE_FALLBACK = "fallback"


class ProgressPoller(Protocol):
    async def poll(self, job_id: str) -> WorkerUpdate:
        ...


@dataclass(frozen=True)
class StatusCheck:
    """A status view and where it came from (stored, poll or fallback)."""
    view: StatusView
    source: str


class ProgressQueryService:
    """Serves get_status for clip and stream jobs."""

    def __init__(
        self,
        store: JobRecordStore,
        reconciler: LifecycleReconciler,
        pollers: Dict[JobKind, ProgressPoller],
    ):
        self.store = store
        self.reconciler = reconciler
        self.pollers = pollers

    async def get_status(self, job_id: str, kind: Optional[JobKind] = None) -> StatusView:
        """
        Best-known status of a job.

        Args:
            job_id: Worker job id
            kind: If given, a job of another kind is reported as not found

        Raises:
            NotFoundError: If no record carries ``job_id``
        """
        return (await self.check(job_id, kind)).view

    async def check(self, job_id: str, kind: Optional[JobKind] = None) -> StatusCheck:
        """Same as get_status, also reporting where the view came from."""
        record = await self._find(job_id, kind)

        if record.is_terminal:
            return StatusCheck(StatusView.from_record(record), SOURCE_STORED)

        poller = self.pollers.get(record.kind)
        if poller is None:
            return StatusCheck(StatusView.from_record(record), SOURCE_STORED)

        try:
            update = await poller.poll(job_id)
        except RemoteUnavailableError as e:
            logger.debug(f"Progress poll for {job_id} unavailable, serving stored state: {e.message}")
            return StatusCheck(StatusView.from_record(record), SOURCE_FALLBACK)

        try:
            result = await self.reconciler.apply_to_record(record.record_id, update, UpdateChannel.POLL)
        except UnknownJobError:
            # Record vanished between read and write
            raise NotFoundError("Job", job_id)

        return StatusCheck(StatusView.from_record(result.record), SOURCE_POLL)

    async def _find(self, job_id: str, kind: Optional[JobKind]) -> JobRecord:
        if not job_id:
            raise NotFoundError("Job", "<missing>")
        record = await self.store.get_by_job_id(job_id)
        if record is None or (kind is not None and record.kind is not kind):
            raise NotFoundError("Job", job_id)
        return record
