"""
Remote AI worker clients.
"""
from app.services.ai.base_client import BaseWorkerClient
from app.services.ai.clip_worker_client import ClipWorkerClient, ClipSubmission, SubmissionResult
from app.services.ai.stream_worker_client import StreamWorkerClient, StreamSubmission

__all__ = [
    "BaseWorkerClient",
    "ClipWorkerClient",
    "ClipSubmission",
    "SubmissionResult",
    "StreamWorkerClient",
    "StreamSubmission",
]
