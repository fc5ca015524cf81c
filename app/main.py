import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import get_settings
from app.core.logging import setup_logging
from app.core.redis import health_check
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.error_handling import ErrorHandlingMiddleware
from app.api.endpoints import clips, streams
from app.api.deps import build_services, cleanup_resources

settings = get_settings()

# Initialize logging system
setup_logging(log_level=settings.log_level, log_dir=settings.log_dir)

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version=settings.app_version)

# Add middleware (order matters - last added runs first)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(ErrorHandlingMiddleware)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(clips.router, prefix="/api")
app.include_router(streams.router, prefix="/api")


# Root and health endpoints
@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": settings.app_name, "version": settings.app_version}


@app.get("/health")
async def health(request: Request):
    """Health check endpoint."""
    services = request.app.state.services
    store_status = "connected" if await services.store.ping() else "disconnected"
    body = {"status": "healthy" if store_status == "connected" else "degraded", "store": store_status}
    if services.uses_redis:
        redis_ok = await health_check()
        body["redis"] = "connected" if redis_ok else "disconnected"
        if not redis_ok:
            body["status"] = "degraded"
    return body


@app.on_event("startup")
async def startup_event():
    """Build the record store, locks, worker clients and services."""
    if getattr(app.state, "services", None) is None:
        app.state.services = await build_services(settings)
    logger.info(
        f"{settings.app_name} started: store={settings.record_store_backend}, "
        f"locks={settings.job_lock_backend}"
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup resources on shutdown."""
    services = getattr(app.state, "services", None)
    if services is not None:
        await cleanup_resources(services)
