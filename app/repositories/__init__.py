"""
Repository layer exports.

This module exports the job record store backends and the db repository.
"""
from app.repositories import processing_job_db_repository
from app.repositories.job_store import JobRecordStore, SqlJobRecordStore, InMemoryJobRecordStore

__all__ = [
    'processing_job_db_repository',
    'JobRecordStore',
    'SqlJobRecordStore',
    'InMemoryJobRecordStore',
]
