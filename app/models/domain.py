"""
Domain models for business logic.
These are internal representations separate from API schemas and ORM rows.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, Dict, Any, List
from enum import Enum


class JobStatus(str, Enum):
    """Processing job status enumeration."""
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.PROCESSING


class JobKind(str, Enum):
    """What the remote worker is producing."""
    CLIP = "clip"
    STREAM = "stream"


class UpdateChannel(str, Enum):
    """Where an update to a job record came from."""
    WEBHOOK = "webhook"
    POLL = "poll"
    SUBMISSION = "submission"
    ADMIN = "admin"


@dataclass(frozen=True)
class ResultPayload:
    """Output locations reported by the worker when a job completes."""
    video_url: Optional[str] = None
    thumbnail: Optional[str] = None
    thumbnails: List[str] = field(default_factory=list)
    stream_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "video_url": self.video_url,
            "thumbnail": self.thumbnail,
            "thumbnails": list(self.thumbnails),
        }
        if self.stream_url is not None:
            data["stream_url"] = self.stream_url
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['ResultPayload']:
        if not data:
            return None
        return cls(
            video_url=data.get("video_url"),
            thumbnail=data.get("thumbnail"),
            thumbnails=list(data.get("thumbnails") or []),
            stream_url=data.get("stream_url"),
        )


@dataclass(frozen=True)
class WorkerUpdate:
    """
    One normalized update about a job, from either the webhook or poll channel.

    ``raw`` holds the fields exactly as the worker sent them and is what gets
    merged into the record's diagnostic payload.
    """
    status: Optional[JobStatus] = None
    percent: Optional[int] = None
    result: Optional[ResultPayload] = None
    error: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class JobRecord:
    """Internal representation of a clip or stream processing job."""
    record_id: str
    kind: JobKind
    status: JobStatus = JobStatus.PROCESSING
    progress: int = 0
    job_id: Optional[str] = None
    result_payload: Optional[ResultPayload] = None
    error_info: Optional[str] = None
    raw_worker_payload: Dict[str, Any] = field(default_factory=dict)
    revision: int = 0
    parent_id: Optional[str] = None
    title: Optional[str] = None
    source_url: Optional[str] = None
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    attributes: Dict[str, Any] = field(default_factory=dict)
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def duration(self) -> Optional[float]:
        if self.start_time is None or self.end_time is None:
            return None
        return self.end_time - self.start_time

    def copy(self, **changes) -> 'JobRecord':
        """Return a copy with ``changes`` applied; nested dicts are not shared."""
        changes.setdefault("raw_worker_payload", dict(self.raw_worker_payload))
        changes.setdefault("attributes", dict(self.attributes))
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the dictionary shape returned by the API."""
        return {
            "record_id": self.record_id,
            "kind": self.kind.value,
            "job_id": self.job_id,
            "status": self.status.value,
            "progress": self.progress,
            "result": self.result_payload.to_dict() if self.result_payload else None,
            "error": self.error_info,
            "parent_id": self.parent_id,
            "title": self.title,
            "source_url": self.source_url,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.duration,
            "attributes": dict(self.attributes),
            "raw_worker_payload": dict(self.raw_worker_payload),
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass(frozen=True)
class StatusView:
    """Best-known status of a job as returned by the progress read path."""
    status: JobStatus
    progress: int
    job_id: Optional[str]
    result: Optional[ResultPayload] = None
    error: Optional[str] = None

    DEFAULT_ERROR = "Clip generation failed"

    @classmethod
    def from_record(cls, record: JobRecord) -> 'StatusView':
        if record.status is JobStatus.COMPLETED:
            return cls(
                status=record.status,
                progress=100,
                job_id=record.job_id,
                result=record.result_payload or ResultPayload(),
            )
        if record.status is JobStatus.FAILED:
            return cls(
                status=record.status,
                progress=record.progress,
                job_id=record.job_id,
                error=record.error_info or cls.DEFAULT_ERROR,
            )
        return cls(status=record.status, progress=record.progress, job_id=record.job_id)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "status": self.status.value,
            "progress": self.progress,
            "job_id": self.job_id,
        }
        if self.result is not None:
            data.update(self.result.to_dict())
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class Page:
    """A page of job records plus pagination metadata."""
    items: List[JobRecord]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "pages": self.pages,
            "has_next_page": self.page < self.pages,
            "has_prev_page": self.page > 1,
        }
