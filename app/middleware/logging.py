"""
Request/response logging middleware.
"""
import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from app.core.logging import (
    generate_request_id,
    set_request_id,
    set_record_id,
    log_event
)

# Polled by clients every few seconds; these log their own compact line
QUIET_PATH_SUFFIXES = ("/progress", "/health")


def _is_status_endpoint(path: str) -> bool:
    return path.endswith(QUIET_PATH_SUFFIXES)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to track request IDs and log all requests/responses."""

    async def dispatch(self, request: Request, call_next):
        """Process each request and log it."""
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)
        set_record_id(None)

        start_time = time.time()
        path = request.url.path
        is_status_endpoint = _is_status_endpoint(path)

        if not is_status_endpoint:
            log_event(
                level="INFO",
                logger="app.middleware.logging",
                function="dispatch",
                operation="http_request",
                event="request_received",
                message=f"Request received: {request.method} {path}",
                context={
                    "method": request.method,
                    "path": path,
                    "query_params": dict(request.query_params),
                    "client_host": request.client.host if request.client else None,
                    "content_length": request.headers.get("content-length"),
                }
            )

        try:
            response = await call_next(request)
            duration = time.time() - start_time

            if not is_status_endpoint:
                log_event(
                    level="INFO",
                    logger="app.middleware.logging",
                    function="dispatch",
                    operation="http_request",
                    event="response_sent",
                    message=f"Response sent: {request.method} {path} -> {response.status_code}",
                    context={
                        "status_code": response.status_code,
                        "duration_seconds": duration,
                    }
                )

            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as e:
            duration = time.time() - start_time

            # Always log errors, even for status endpoints
            log_event(
                level="ERROR",
                logger="app.middleware.logging",
                function="dispatch",
                operation="http_request",
                event="request_error",
                message=f"Request error: {request.method} {path}",
                context={
                    "duration_seconds": duration,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=e
            )
            raise
