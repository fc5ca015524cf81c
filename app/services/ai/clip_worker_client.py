"""
Clip worker client.

Submits trim jobs to the clip worker's /process_video endpoint and polls
/progress for a submitted job.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from app.core.config import Settings
from app.core.exceptions import RemoteSubmissionError, RemoteUnavailableError
from app.models.domain import WorkerUpdate
from app.services.ai.base_client import BaseWorkerClient
from app.services.jobs.updates import parse_worker_payload
from app.utils.timestamp_utils import seconds_to_hhmmss

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClipSubmission:
    """Everything the clip worker needs to cut one clip."""
    stream_id: str
    stream_url: str
    start_time: float
    end_time: float
    callback_url: str
    aspect_ratio: str = "16:9"
    sports: str = ""

    def to_payload(self) -> Dict[str, Any]:
        return {
            "stream_id": self.stream_id,
            "sports": self.sports,
            "join_clip": None,
            "graphics": None,
            "overlay": None,
            "trim_manual": {
                "stream_url": self.stream_url,
                "start_time": seconds_to_hhmmss(self.start_time),
                "end_time": seconds_to_hhmmss(self.end_time),
                "webhook_url": self.callback_url,
            },
            "video_urls_single_cms": "",
            "webhook_url_single_cms": self.callback_url,
            "aspect_ratio": self.aspect_ratio,
        }


@dataclass(frozen=True)
class SubmissionResult:
    """Worker acknowledgement of a submitted job."""
    job_id: str
    status: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


class ClipWorkerClient(BaseWorkerClient):
    """Client for the clip generation worker."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        super().__init__(settings, "clip_worker", settings.clip_worker_url, session=session)

    async def submit(self, submission: ClipSubmission) -> SubmissionResult:
        """
        Submit a clip job.

        Raises:
            RemoteSubmissionError: On any transport failure, non-2xx response,
                or an acknowledgement without a job id
        """
        data = await self._request_async(
            "POST",
            "/process_video",
            self.settings.remote_submit_timeout,
            RemoteSubmissionError,
            payload=submission.to_payload(),
        )

        job_id = data.get("job_id")
        if not job_id:
            raise RemoteSubmissionError(self.service_key, f"Response did not include a job_id: {data}")

        logger.info(f"Clip job submitted for stream {submission.stream_id}: job_id={job_id}")
        return SubmissionResult(job_id=str(job_id), status=data.get("status"), raw=data)

    async def poll(self, job_id: str) -> WorkerUpdate:
        """
        Fetch current progress of a submitted clip job.

        Raises:
            RemoteUnavailableError: On any transport failure or non-2xx response
        """
        data = await self._request_async(
            "GET",
            "/progress",
            self.settings.remote_poll_timeout,
            RemoteUnavailableError,
            params={"job_id": job_id},
        )
        return parse_worker_payload(data)
