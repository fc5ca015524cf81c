"""
Dependency injection for FastAPI endpoints.

All services are built once at startup by ``build_services`` and kept on
``app.state.services``; endpoint dependencies read them from there.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from app.core.config import Settings
from app.core.redis import get_async_redis_client, close_redis_client
from app.database.session import Database
from app.models.domain import JobKind
from app.repositories.job_store import JobRecordStore, SqlJobRecordStore, InMemoryJobRecordStore
from app.services.ai.clip_worker_client import ClipWorkerClient
from app.services.ai.stream_worker_client import StreamWorkerClient
from app.services.jobs.lifecycle import JobLifecycleService
from app.services.jobs.lock import JobLockProvider, InProcessJobLocks, RedisJobLocks
from app.services.jobs.progress_query import ProgressQueryService
from app.services.jobs.reconciler import LifecycleReconciler

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Everything the endpoints need, scoped to one application instance."""
    settings: Settings
    store: JobRecordStore
    locks: JobLockProvider
    clip_client: ClipWorkerClient
    stream_client: StreamWorkerClient
    reconciler: LifecycleReconciler
    progress: ProgressQueryService
    lifecycle: JobLifecycleService
    uses_redis: bool = False


async def build_store(settings: Settings) -> JobRecordStore:
    """Create the record store selected by ``record_store_backend``."""
    if settings.record_store_backend == "memory":
        logger.info("Using in-memory job record store")
        return InMemoryJobRecordStore()
    if settings.record_store_backend != "sql":
        raise ValueError(f"Unknown record_store_backend: {settings.record_store_backend}")

    database = Database(settings.database_url, settings)
    database.init()
    if settings.database_create_tables:
        await database.create_tables()
    logger.info("Using SQL job record store")
    return SqlJobRecordStore(database)


def build_locks(settings: Settings) -> JobLockProvider:
    """Create the per-record lock provider selected by ``job_lock_backend``."""
    if settings.job_lock_backend == "redis":
        logger.info("Using Redis per-record update locks")
        return RedisJobLocks(
            get_async_redis_client,
            ttl_seconds=settings.job_lock_ttl,
            acquire_timeout=settings.job_lock_acquire_timeout,
        )
    if settings.job_lock_backend != "memory":
        raise ValueError(f"Unknown job_lock_backend: {settings.job_lock_backend}")
    logger.info("Using in-process per-record update locks")
    return InProcessJobLocks(acquire_timeout=settings.job_lock_acquire_timeout)


async def build_services(
    settings: Settings,
    store: Optional[JobRecordStore] = None,
    clip_client: Optional[ClipWorkerClient] = None,
    stream_client: Optional[StreamWorkerClient] = None,
) -> ServiceContainer:
    """
    Wire up the application services.

    Args:
        settings: Application settings
        store: Pre-built record store (tests); built from settings if None
        clip_client: Pre-built clip worker client (tests)
        stream_client: Pre-built stream worker client (tests)
    """
    store = store or await build_store(settings)
    locks = build_locks(settings)
    clip_client = clip_client or ClipWorkerClient(settings)
    stream_client = stream_client or StreamWorkerClient(settings)

    reconciler = LifecycleReconciler(store, locks, max_attempts=settings.reconcile_max_attempts)
    progress = ProgressQueryService(
        store,
        reconciler,
        {JobKind.CLIP: clip_client, JobKind.STREAM: stream_client},
    )
    lifecycle = JobLifecycleService(settings, store, reconciler, clip_client, stream_client)

    return ServiceContainer(
        settings=settings,
        store=store,
        locks=locks,
        clip_client=clip_client,
        stream_client=stream_client,
        reconciler=reconciler,
        progress=progress,
        lifecycle=lifecycle,
        uses_redis=settings.job_lock_backend == "redis",
    )


async def cleanup_resources(services: ServiceContainer) -> None:
    """Close clients, the store and the Redis pool on shutdown."""
    services.clip_client.close()
    services.stream_client.close()
    await services.locks.close()
    await services.store.close()
    if services.uses_redis:
        await close_redis_client()


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_lifecycle_service(request: Request) -> JobLifecycleService:
    return get_services(request).lifecycle


def get_progress_service(request: Request) -> ProgressQueryService:
    return get_services(request).progress
