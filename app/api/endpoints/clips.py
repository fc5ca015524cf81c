"""
Clip generation API endpoints.
Starts clip jobs on the clip worker, receives its webhooks, and serves clip
records and live progress.
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
    GenerateClipRequest,
    GenerateClipResponse,
    JobListResponse,
    JobRecordResponse,
    MessageResponse,
    ProgressResponse,
)
from app.api.deps import get_lifecycle_service, get_progress_service
from app.services.jobs.lifecycle import JobLifecycleService, NewClip
from app.services.jobs.progress_query import ProgressQueryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clips", tags=["clips"])


@router.post("/generate", response_model=GenerateClipResponse)
async def generate_clip(
    request: GenerateClipRequest,
    lifecycle: JobLifecycleService = Depends(get_lifecycle_service),
):
    """
    Start generating a clip from a stream.

    Raises:
        400: end_time not after start_time
        502: Clip worker rejected the job (the clip is stored as failed)
    """
    start_time = time.time()
    operation = "generate_clip"

    log_operation_start(
        logger="app.api.endpoints.clips",
        function="generate_clip",
        operation=operation,
        message=f"Generating clip for stream {request.stream_id}",
        context={
            "stream_id": request.stream_id,
            "start_time": request.start_time,
            "end_time": request.end_time,
            "request_id": get_request_id(),
        },
    )

    try:
        record = await lifecycle.create_clip(NewClip(
            stream_id=request.stream_id,
            title=request.title,
            start_time=request.start_time,
            end_time=request.end_time,
            stream_url=request.stream_url,
            speed=request.speed,
            rating=request.rating,
            tags=request.tags,
            aspect_ratio=request.aspect_ratio,
            sports=request.sports,
            created_by=request.created_by,
        ))
    except Exception as e:
        log_operation_error(
            logger="app.api.endpoints.clips",
            function="generate_clip",
            operation=operation,
            error=e,
            message="Clip generation failed to start",
            context={"stream_id": request.stream_id},
        )
        raise

    log_operation_complete(
        logger="app.api.endpoints.clips",
        function="generate_clip",
        operation=operation,
        message=f"Clip {record.record_id} submitted as job {record.job_id}",
        context={"record_id": record.record_id, "job_id": record.job_id},
        duration=time.time() - start_time,
    )

    return GenerateClipResponse(
        record_id=record.record_id,
        job_id=record.job_id,
        status=record.status.value,
        stream_id=request.stream_id,
    )


@router.post("/webhook/{record_id}", response_model=MessageResponse)
async def clip_webhook(
    record_id: str,
    payload: Dict[str, Any] = Body(...),
    lifecycle: JobLifecycleService = Depends(get_lifecycle_service),
):
    """Receive a progress or completion report from the clip worker."""
    logger.info(f"Webhook received for clip {record_id}: {payload}")
    await lifecycle.handle_clip_webhook(record_id, payload)
    return MessageResponse(message="Webhook processed successfully", record_id=record_id)


@router.get("/progress", response_model=ProgressResponse, response_model_exclude_none=True)
async def get_clip_progress(
    job_id: str = Query(..., min_length=1),
    progress: ProgressQueryService = Depends(get_progress_service),
):
    """Best-known progress of a clip job, refreshed from the worker while running."""
    start_time = time.time()
    check = await progress.check(job_id, kind=JobKind.CLIP)
    log_status_check(
        kind="clips",
        job_id=job_id,
        status=check.view.status.value,
        progress=check.view.progress,
        source=check.source,
        duration=time.time() - start_time,
    )
    return check.view.to_dict()


@router.get("/stream/{stream_id}", response_model=JobListResponse)
async def list_clips_for_stream(
    stream_id: str,
    status: Optional[JobStatus] = None,
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    lifecycle: JobLifecycleService = Depends(get_lifecycle_service),
):
    """Clips cut from one stream, newest first."""
    result = await lifecycle.list_for_parent(stream_id, status=status, page=page, limit=limit)
    return {
        "items": [record.to_dict() for record in result.items],
        "pagination": result.to_dict(),
    }


@router.get("/{record_id}", response_model=JobRecordResponse)
async def get_clip(
    record_id: str,
    lifecycle: JobLifecycleService = Depends(get_lifecycle_service),
):
    record = await lifecycle.get_record(record_id, kind=JobKind.CLIP)
    return record.to_dict()


@router.put("/update/{record_id}", response_model=JobRecordResponse)
async def update_clip(
    record_id: str,
    payload: Dict[str, Any] = Body(...),
    lifecycle: JobLifecycleService = Depends(get_lifecycle_service),
):
    """
    Apply a worker response by hand.

    Follows the same rules as a webhook delivery, so it cannot revive a
    finished clip or overwrite its result.
    """
    logger.info(f"Manual update for clip {record_id}: {payload}")
    record = await lifecycle.apply_manual_update(record_id, payload)
    return record.to_dict()


@router.post("/{record_id}/cancel", response_model=JobRecordResponse)
async def cancel_clip(
    record_id: str,
    lifecycle: JobLifecycleService = Depends(get_lifecycle_service),
):
    """Cancel a running clip job. 409 if it already finished."""
    record = await lifecycle.cancel(record_id, kind=JobKind.CLIP)
    logger.info(f"Clip {record_id} cancelled")
    return record.to_dict()
