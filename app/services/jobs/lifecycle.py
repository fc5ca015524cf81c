"""
Job lifecycle service.

Orchestrates the write side around the reconciler: creating a record,
submitting it to the worker, attaching the worker job id (or failing the
record when submission is rejected), routing webhook deliveries to the
right record, and administrative cancel. Also serves record lookups and
listings.
"""
import uuid
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app.core.config import Settings
from app.core.exceptions import (
    JobAlreadyTerminalError,
    NotFoundError,
    RemoteSubmissionError,
    UnknownJobError,
    ValidationException,
)
from app.core.logging import log_event, set_record_id
from app.models.domain import JobKind, JobRecord, JobStatus, Page, UpdateChannel, WorkerUpdate
from app.repositories.job_store import JobRecordStore
from app.services.ai.clip_worker_client import ClipSubmission, ClipWorkerClient
from app.services.ai.stream_worker_client import StreamSubmission, StreamWorkerClient
from app.services.jobs.reconciler import LifecycleReconciler
from app.services.jobs.updates import parse_worker_payload

logger = logging.getLogger(__name__)

STREAM_ID_LENGTH = 10


@dataclass(frozen=True)
class NewClip:
    """A request to cut a clip out of a stream."""
    stream_id: str
    title: str
    start_time: float
    end_time: float
    stream_url: str = ""
    speed: float = 1
    rating: int = 1
    tags: List[str] = field(default_factory=list)
    aspect_ratio: str = "16:9"
    sports: str = ""
    created_by: Optional[str] = None


@dataclass(frozen=True)
class NewStream:
    """A request to ingest a recorded stream."""
    title: str
    url: str
    user_id: str
    category: str = "others"
    created_by: Optional[str] = None
    is_live: bool = False
    video_type: str = ""
    competition_type: str = ""


def generate_stream_id() -> str:
    """Short public id for a stream."""
    return uuid.uuid4().hex[:STREAM_ID_LENGTH]


class JobLifecycleService:
    """Create, look up, list, cancel and receive webhooks for processing jobs."""

    def __init__(
        self,
        settings: Settings,
        store: JobRecordStore,
        reconciler: LifecycleReconciler,
        clip_client: ClipWorkerClient,
        stream_client: StreamWorkerClient,
    ):
        self.settings = settings
        self.store = store
        self.reconciler = reconciler
        self.clip_client = clip_client
        self.stream_client = stream_client

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_clip(self, request: NewClip) -> JobRecord:
        """
        Create a clip record and submit it to the clip worker.

        Returns:
            The record with its worker job id attached

        Raises:
            ValidationException: If the time range is empty or negative
            RemoteSubmissionError: If the worker rejected the submission; the
                record is stored as failed before this is raised
        """
        if request.start_time < 0 or request.end_time <= request.start_time:
            raise ValidationException(
                f"end_time ({request.end_time}) must be greater than start_time ({request.start_time}) "
                "and start_time must not be negative"
            )

        record_id = str(uuid.uuid4())
        set_record_id(record_id)
        record = await self.store.create(JobRecord(
            record_id=record_id,
            kind=JobKind.CLIP,
            parent_id=request.stream_id,
            title=request.title,
            source_url=request.stream_url,
            start_time=request.start_time,
            end_time=request.end_time,
            attributes={
                "speed": request.speed,
                "rating": request.rating,
                "tags": list(request.tags),
                "aspect_ratio": request.aspect_ratio,
                "sports": request.sports,
            },
            created_by=request.created_by,
        ))
        logger.info(f"Created clip record {record_id} for stream {request.stream_id}")

        submission = ClipSubmission(
            stream_id=request.stream_id,
            stream_url=request.stream_url,
            start_time=request.start_time,
            end_time=request.end_time,
            callback_url=self.settings.get_clip_webhook_url(record_id),
            aspect_ratio=request.aspect_ratio,
            sports=request.sports,
        )

        try:
            ack = await self.clip_client.submit(submission)
        except RemoteSubmissionError as e:
            await self._fail_submission(record, e)
            raise

        return await self.reconciler.attach_job_id(record_id, ack.job_id, raw=ack.raw)

    async def create_stream(self, request: NewStream) -> JobRecord:
        """
        Create a stream record and start ingestion on the stream worker.

        Raises:
            RemoteSubmissionError: If the worker rejected the submission; the
                record is stored as failed before this is raised
        """
        stream_id = generate_stream_id()
        record_id = str(uuid.uuid4())
        set_record_id(record_id)
        record = await self.store.create(JobRecord(
            record_id=record_id,
            kind=JobKind.STREAM,
            parent_id=stream_id,
            title=request.title,
            source_url=request.url,
            attributes={
                "user_id": request.user_id,
                "category": request.category or "others",
                "is_live": request.is_live,
                "video_type": request.video_type,
                "competition_type": request.competition_type,
            },
            created_by=request.created_by or request.user_id,
        ))
        logger.info(f"Created stream record {record_id} (stream {stream_id}) for user {request.user_id}")

        submission = StreamSubmission(
            stream_id=stream_id,
            input_url=request.url,
            callback_url=self.settings.get_stream_webhook_url(),
        )

        try:
            ack = await self.stream_client.submit(submission)
        except RemoteSubmissionError as e:
            await self._fail_submission(record, e)
            raise

        return await self.reconciler.attach_job_id(record_id, ack.job_id, raw=ack.raw)

    async def _fail_submission(self, record: JobRecord, error: RemoteSubmissionError) -> None:
        log_event(
            level="ERROR",
            logger=__name__,
            function="_fail_submission",
            operation="submit_job",
            event="submission_failed",
            message=f"Submission of {record.kind.value} {record.record_id} failed: {error.error}",
            context={"record_id": record.record_id, "service": error.service},
        )
        update = WorkerUpdate(status=JobStatus.FAILED, error=error.error)
        await self.reconciler.apply_to_record(record.record_id, update, UpdateChannel.SUBMISSION)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_record(self, record_id: str, kind: Optional[JobKind] = None) -> JobRecord:
        """
        Raises:
            NotFoundError: If no record has ``record_id`` (or it is of another kind)
        """
        record = await self.store.get_by_record_id(record_id)
        if record is None or (kind is not None and record.kind is not kind):
            resource = kind.value.capitalize() if kind else "Job"
            raise NotFoundError(resource, record_id)
        return record

    async def get_stream(self, stream_id: str) -> JobRecord:
        """Look up a stream by its short stream id, falling back to record id."""
        record = await self._find_stream(stream_id)
        if record is None:
            record = await self.store.get_by_record_id(stream_id)
        if record is None or record.kind is not JobKind.STREAM:
            raise NotFoundError("Stream", stream_id)
        return record

    async def list_for_parent(
        self,
        parent_id: str,
        status: Optional[JobStatus] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Page:
        """Clips cut from one stream, newest first."""
        page, limit = self._paging(page, limit)
        return await self.store.list(JobKind.CLIP, parent_id=parent_id, status=status, page=page, limit=limit)

    async def list_streams(
        self,
        user_id: Optional[str] = None,
        status: Optional[JobStatus] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Page:
        """Streams, optionally only those created by ``user_id``, newest first."""
        page, limit = self._paging(page, limit)
        return await self.store.list(JobKind.STREAM, created_by=user_id, status=status, page=page, limit=limit)

    def _paging(self, page: int, limit: Optional[int]):
        if page < 1:
            raise ValidationException("page must be >= 1")
        if limit is None:
            limit = self.settings.default_page_size
        if limit < 1:
            raise ValidationException("limit must be >= 1")
        return page, min(limit, self.settings.max_page_size)

    async def _find_stream(self, stream_id: str) -> Optional[JobRecord]:
        result = await self.store.list(JobKind.STREAM, parent_id=stream_id, page=1, limit=1)
        return result.items[0] if result.items else None

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    async def cancel(self, record_id: str, kind: Optional[JobKind] = None) -> JobRecord:
        """
        Administratively cancel a running job.

        Raises:
            NotFoundError: If the record does not exist
            JobAlreadyTerminalError: If the job already finished, including
                when it finished while the cancel was being applied
        """
        record = await self.get_record(record_id, kind)
        if record.is_terminal:
            raise JobAlreadyTerminalError(record_id, record.status.value)

        update = WorkerUpdate(status=JobStatus.CANCELLED, raw={"cancelled_by": "admin"})
        result = await self.reconciler.apply_to_record(record_id, update, UpdateChannel.ADMIN)
        if result.record.status is not JobStatus.CANCELLED:
            raise JobAlreadyTerminalError(record_id, result.record.status.value)
        return result.record

    async def handle_clip_webhook(self, record_id: str, payload: Dict[str, Any]) -> JobRecord:
        """
        Apply a clip worker webhook delivery.

        Raises:
            UnknownJobError: If ``record_id`` matches no clip record
        """
        record = await self.store.get_by_record_id(record_id)
        if record is None or record.kind is not JobKind.CLIP:
            logger.warning(f"Clip webhook for unknown record {record_id}: {payload}")
            raise UnknownJobError(record_id)

        update = parse_worker_payload(payload)
        result = await self.reconciler.apply_to_record(record_id, update, UpdateChannel.WEBHOOK)
        return result.record

    async def handle_stream_webhook(self, payload: Dict[str, Any]) -> JobRecord:
        """
        Apply a stream worker status webhook, correlated by ``stream_id``.

        Raises:
            UnknownJobError: If ``stream_id`` is missing or matches no stream
        """
        stream_id = payload.get("stream_id")
        if not stream_id:
            logger.warning(f"Stream webhook without stream_id: {payload}")
            raise UnknownJobError("<missing stream_id>")

        record = await self._find_stream(str(stream_id))
        if record is None:
            logger.warning(f"Stream webhook for unknown stream {stream_id}")
            raise UnknownJobError(str(stream_id))

        update = parse_worker_payload(payload)
        result = await self.reconciler.apply_to_record(record.record_id, update, UpdateChannel.WEBHOOK)
        return result.record

    async def apply_manual_update(self, record_id: str, payload: Dict[str, Any]) -> JobRecord:
        """
        Apply a worker response pushed by an operator.

        Goes through the same rules as a webhook delivery.

        Raises:
            NotFoundError: If the record does not exist
        """
        await self.get_record(record_id)
        update = parse_worker_payload(payload)
        result = await self.reconciler.apply_to_record(record_id, update, UpdateChannel.WEBHOOK)
        return result.record
