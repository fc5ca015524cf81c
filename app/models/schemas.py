"""
Pydantic models for API request/response validation.
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Dict, Any, List


# Response Models

class ErrorResponse(BaseModel):
    """Response model for errors."""
    error: str
    type: str
    status_code: int
    request_id: Optional[str] = None


class MessageResponse(BaseModel):
    """Generic message response."""
    success: bool = True
    message: str
    record_id: Optional[str] = None


class ResultResponse(BaseModel):
    """Output locations of a completed job."""
    video_url: Optional[str] = None
    thumbnail: Optional[str] = None
    thumbnails: List[str] = Field(default_factory=list)
    stream_url: Optional[str] = None


class JobRecordResponse(BaseModel):
    """Response model for a stored clip or stream record."""
    record_id: str
    kind: str
    job_id: Optional[str] = None
    status: str
    progress: int
    result: Optional[ResultResponse] = None
    error: Optional[str] = None
    parent_id: Optional[str] = None
    title: Optional[str] = None
    source_url: Optional[str] = None
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    duration: Optional[float] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)
    raw_worker_payload: Dict[str, Any] = Field(default_factory=dict)
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    completed_at: Optional[str] = None


class PaginationResponse(BaseModel):
    """Pagination metadata for list endpoints."""
    page: int
    limit: int
    total: int
    pages: int
    has_next_page: bool
    has_prev_page: bool


class JobListResponse(BaseModel):
    """One page of clip or stream records."""
    items: List[JobRecordResponse]
    pagination: PaginationResponse


class ProgressResponse(BaseModel):
    """Best-known progress of a job. Result fields only when completed, error only when failed."""
    status: str
    progress: int
    job_id: Optional[str] = None
    video_url: Optional[str] = None
    thumbnail: Optional[str] = None
    thumbnails: Optional[List[str]] = None
    stream_url: Optional[str] = None
    error: Optional[str] = None


class GenerateClipResponse(BaseModel):
    """Response model for a started clip job."""
    success: bool = True
    message: str = "Clip generation started successfully"
    record_id: str
    job_id: Optional[str] = None
    status: str
    stream_id: str


class CreateStreamResponse(BaseModel):
    """Response model for a started stream ingestion."""
    success: bool = True
    message: str = "Stream created successfully"
    record_id: str
    stream_id: str
    job_id: Optional[str] = None
    status: str
    public_hls_url: Optional[str] = None


# Request Models

class GenerateClipRequest(BaseModel):
    """Request model for clip generation."""
    model_config = ConfigDict(populate_by_name=True)

    stream_id: str = Field(..., min_length=1, alias="streamId")
    title: str = Field(..., min_length=1)
    start_time: float = Field(..., ge=0, alias="startTime")
    end_time: float = Field(..., gt=0, alias="endTime")
    speed: float = Field(default=1, gt=0)
    rating: int = Field(default=1, ge=1, le=5)
    tags: List[str] = Field(default_factory=list)
    aspect_ratio: str = Field(default="16:9", alias="aspectRatio")
    sports: str = ""
    stream_url: str = Field(default="", alias="streamUrl")
    created_by: Optional[str] = Field(default=None, alias="createdBy")


class CreateStreamRequest(BaseModel):
    """Request model for stream creation."""
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1, alias="userId")
    category: str = "others"
    created_by: Optional[str] = Field(default=None, alias="createdBy")
    is_live: bool = Field(default=False, alias="isLive")
    video_type: str = Field(default="", alias="videoType")
    competition_type: str = Field(default="", alias="competitionType")
