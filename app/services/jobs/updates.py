"""
Normalization of raw worker payloads into WorkerUpdate objects.

Both the clip worker and the stream worker report through loosely typed JSON
(webhook bodies and poll responses). Everything the reconciler needs is
pulled out here so that both channels feed it identical shapes.
"""
import logging
import math
from typing import Any, Dict, List, Optional

from app.models.domain import JobStatus, ResultPayload, WorkerUpdate

logger = logging.getLogger(__name__)

# Worker status strings that move a job to a terminal state.
# Anything else ("processing", "queued", ...) carries no status change.
STATUS_ALIASES: Dict[str, JobStatus] = {
    "completed": JobStatus.COMPLETED,
    "success": JobStatus.COMPLETED,
    "failed": JobStatus.FAILED,
    "error": JobStatus.FAILED,
    "cancelled": JobStatus.CANCELLED,
}

RESULT_FIELDS = ("video_url", "public_hls_url", "thumbnail", "thumbnails", "stream_url")


def parse_status(value: Any) -> Optional[JobStatus]:
    if not isinstance(value, str):
        return None
    return STATUS_ALIASES.get(value.strip().lower())


def parse_percent(value: Any) -> Optional[int]:
    """Coerce a worker percent to int; None when absent or unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = math.nan
    if not math.isfinite(number):
        logger.warning(f"Ignoring non-numeric percent from worker: {value!r}")
        return None
    return int(number)


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v]
    return [str(value)]


def parse_result(payload: Dict[str, Any]) -> Optional[ResultPayload]:
    """Build the output locations bundle, or None if the payload carries none."""
    if not any(payload.get(name) for name in RESULT_FIELDS):
        return None
    return ResultPayload(
        video_url=payload.get("video_url") or payload.get("public_hls_url"),
        thumbnail=payload.get("thumbnail"),
        thumbnails=_as_list(payload.get("thumbnails")),
        stream_url=payload.get("stream_url"),
    )


def _json_safe(value: Any) -> Any:
    """Replace non-finite floats, which JSON columns and responses reject, with their text."""
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if isinstance(value, dict):
        return {key: _json_safe(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_json_safe(item) for item in value]
    return value


def parse_worker_payload(payload: Dict[str, Any]) -> WorkerUpdate:
    """
    Turn a webhook body or poll response into a WorkerUpdate.

    Args:
        payload: JSON object as delivered by the worker

    Returns:
        WorkerUpdate whose ``raw`` is a JSON-safe copy of ``payload``
    """
    if not isinstance(payload, dict):
        raise TypeError(f"Worker payload must be an object, got {type(payload).__name__}")

    status = parse_status(payload.get("status"))
    error = payload.get("error")
    if error is None and status is JobStatus.FAILED:
        # The stream worker reports failure details in "message"
        error = payload.get("message")

    return WorkerUpdate(
        status=status,
        percent=parse_percent(payload.get("percent")),
        result=parse_result(payload),
        error=str(error) if error is not None else None,
        raw=_json_safe(payload),
    )
