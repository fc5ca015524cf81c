"""
Stream worker client.

Starts ingestion of a recorded stream via /start_stream. The stream worker
reports back only through its status webhook; it exposes no progress
endpoint, so polling always degrades to the stored state.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from app.core.config import Settings
from app.core.exceptions import RemoteSubmissionError, RemoteUnavailableError
from app.models.domain import WorkerUpdate
from app.services.ai.base_client import BaseWorkerClient
from app.services.ai.clip_worker_client import SubmissionResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamSubmission:
    """Everything the stream worker needs to start ingesting a stream."""
    stream_id: str
    input_url: str
    callback_url: str
    input_type: str = "recorded"
    video_type: str = "hls"
    language: str = "eng"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "stream_id": self.stream_id,
            "input_type": self.input_type,
            "video_type": self.video_type,
            "input_url": self.input_url,
            "language": self.language,
            "webhook_url": self.callback_url,
        }


class StreamWorkerClient(BaseWorkerClient):
    """Client for the stream ingestion worker."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        super().__init__(settings, "stream_worker", settings.stream_worker_url, session=session)

    async def submit(self, submission: StreamSubmission) -> SubmissionResult:
        """
        Start ingestion of a stream.

        The worker may not return a job id; the stream id is then used as the
        correlation key.

        Raises:
            RemoteSubmissionError: On any transport failure or non-2xx response
        """
        data = await self._request_async(
            "POST",
            "/start_stream",
            self.settings.remote_submit_timeout,
            RemoteSubmissionError,
            payload=submission.to_payload(),
        )

        job_id = data.get("job_id") or submission.stream_id
        logger.info(
            f"Stream {submission.stream_id} submitted: job_id={job_id}, "
            f"public_hls_url={data.get('public_hls_url')}"
        )
        return SubmissionResult(job_id=str(job_id), status=data.get("status"), raw=data)

    async def poll(self, job_id: str) -> WorkerUpdate:
        """The stream worker has no progress endpoint."""
        raise RemoteUnavailableError(self.service_key, "progress polling is not supported")
