"""
ProcessingJob model - one clip-generation or stream-ingestion job run by the remote AI worker.
"""
from datetime import datetime
from sqlalchemy import String, Integer, Float, Text, DateTime, JSON, CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.database.base import Base


class ProcessingJob(Base):
    """
    Processing jobs table - stores clip and stream jobs and their reconciled state.

    ``revision`` is bumped on every write and is the compare-and-swap token
    used by the reconciler.
    """
    __tablename__ = "processing_jobs"

    # Columns
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    record_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    job_id: Mapped[str | None] = mapped_column(String(128), unique=True, nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True, default="processing")
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    result_payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    error_info: Mapped[str | None] = mapped_column(Text, nullable=True)
    raw_worker_payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    parent_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_time: Mapped[float | None] = mapped_column(Float, nullable=True)
    end_time: Mapped[float | None] = mapped_column(Float, nullable=True)
    attributes: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now()
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Constraints
    __table_args__ = (
        CheckConstraint('progress >= 0 AND progress <= 100', name='check_job_progress_range'),
        CheckConstraint(
            "status IN ('processing', 'completed', 'failed', 'cancelled')",
            name='check_job_status_values'
        ),
        Index('ix_processing_jobs_kind_parent_created', 'kind', 'parent_id', 'created_at'),
    )
