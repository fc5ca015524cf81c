"""
Stream ingestion API endpoints.
"""
import logging
import time
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query

from app.core.logging import (
    log_operation_start,
    log_operation_complete,
    log_operation_error,
    log_status_check,
    get_request_id
)
from app.models.domain import JobKind, JobStatus
from app.models.schemas import (
    CreateStreamRequest,
    CreateStreamResponse,
    JobListResponse,
    JobRecordResponse,
    MessageResponse,
    ProgressResponse,
)
from app.api.deps import get_lifecycle_service, get_progress_service
from app.services.jobs.lifecycle import JobLifecycleService, NewStream
from app.services.jobs.progress_query import ProgressQueryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/streams", tags=["streams"])


@router.post("/create", response_model=CreateStreamResponse, status_code=201)
async def create_stream(
    request: CreateStreamRequest,
    lifecycle: JobLifecycleService = Depends(get_lifecycle_service),
):
    """
    Register a recorded stream and start ingestion on the stream worker.

    Raises:
        502: Stream worker rejected the job (the stream is stored as failed)
    """
    start_time = time.time()
    operation = "create_stream"

    log_operation_start(
        logger="app.api.endpoints.streams",
        function="create_stream",
        operation=operation,
        message=f"Creating stream for user {request.user_id}",
        context={"user_id": request.user_id, "url": request.url, "request_id": get_request_id()},
    )

    try:
        record = await lifecycle.create_stream(NewStream(
            title=request.title,
            url=request.url,
            user_id=request.user_id,
            category=request.category,
            created_by=request.created_by,
            is_live=request.is_live,
            video_type=request.video_type,
            competition_type=request.competition_type,
        ))
    except Exception as e:
        log_operation_error(
            logger="app.api.endpoints.streams",
            function="create_stream",
            operation=operation,
            error=e,
            message="Stream creation failed",
            context={"user_id": request.user_id},
        )
        raise

    log_operation_complete(
        logger="app.api.endpoints.streams",
        function="create_stream",
        operation=operation,
        message=f"Stream {record.parent_id} submitted as job {record.job_id}",
        context={"record_id": record.record_id, "stream_id": record.parent_id, "job_id": record.job_id},
        duration=time.time() - start_time,
    )

    return CreateStreamResponse(
        record_id=record.record_id,
        stream_id=record.parent_id,
        job_id=record.job_id,
        status=record.status.value,
        public_hls_url=record.raw_worker_payload.get("public_hls_url"),
    )


@router.post("/webhook/ai-status", response_model=MessageResponse)
async def stream_status_webhook(
    payload: Dict[str, Any] = Body(...),
    lifecycle: JobLifecycleService = Depends(get_lifecycle_service),
):
    """Receive a status report from the stream worker, correlated by stream_id."""
    logger.info(f"Stream status webhook received: {payload}")
    record = await lifecycle.handle_stream_webhook(payload)
    return MessageResponse(message="Stream status updated successfully", record_id=record.record_id)


@router.get("/progress", response_model=ProgressResponse, response_model_exclude_none=True)
async def get_stream_progress(
    job_id: str = Query(..., min_length=1),
    progress: ProgressQueryService = Depends(get_progress_service),
):
    """Best-known status of a stream job (stored state; the worker cannot be polled)."""
    start_time = time.time()
    check = await progress.check(job_id, kind=JobKind.STREAM)
    log_status_check(
        kind="streams",
        job_id=job_id,
        status=check.view.status.value,
        progress=check.view.progress,
        source=check.source,
        duration=time.time() - start_time,
    )
    return check.view.to_dict()


@router.get("", response_model=JobListResponse)
async def list_streams(
    user_id: Optional[str] = Query(default=None, alias="userId"),
    status: Optional[JobStatus] = None,
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    lifecycle: JobLifecycleService = Depends(get_lifecycle_service),
):
    result = await lifecycle.list_streams(user_id=user_id, status=status, page=page, limit=limit)
    return {
        "items": [record.to_dict() for record in result.items],
        "pagination": result.to_dict(),
    }


@router.get("/{stream_id}", response_model=JobRecordResponse)
async def get_stream(
    stream_id: str,
    lifecycle: JobLifecycleService = Depends(get_lifecycle_service),
):
    """Look up a stream by stream id (or record id)."""
    record = await lifecycle.get_stream(stream_id)
    return record.to_dict()


@router.post("/{record_id}/cancel", response_model=JobRecordResponse)
async def cancel_stream(
    record_id: str,
    lifecycle: JobLifecycleService = Depends(get_lifecycle_service),
):
    """Cancel a running stream ingestion. 409 if it already finished."""
    record = await lifecycle.cancel(record_id, kind=JobKind.STREAM)
    logger.info(f"Stream {record_id} cancelled")
    return record.to_dict()
