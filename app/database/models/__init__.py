"""
Database models package.
All models must be imported here so Alembic can discover them via Base.metadata.
"""
from app.database.models.processing_job import ProcessingJob

__all__ = [
    "ProcessingJob",
]
