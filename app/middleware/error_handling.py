"""
Error handling middleware.

Every ProcessingServiceException becomes an ErrorResponse carrying its status
code, the exception type and the request id, so a caller can quote the id
when reporting a failed webhook or submission. Anything else is a bug: it is
logged with its traceback and answered with a generic 500 that does not leak
the exception text.
"""
import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.exceptions import ProcessingServiceException
from app.core.logging import get_request_id
from app.models.schemas import ErrorResponse

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


def error_response(status_code: int, message: str, error_type: str) -> JSONResponse:
    body = ErrorResponse(
        error=message,
        type=error_type,
        status_code=status_code,
        request_id=get_request_id(),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Converts service exceptions and unexpected failures into JSON errors."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)

        except ProcessingServiceException as e:
            # 4xx are caller mistakes or unknown jobs
            log = logger.error if e.status_code >= 500 else logger.warning
            log(
                f"{type(e).__name__}: {e.message}",
                extra={
                    "status_code": e.status_code,
                    "path": request.url.path,
                    "method": request.method,
                },
            )
            return error_response(e.status_code, e.message, type(e).__name__)

        except Exception as e:
            logger.error(
                f"Unhandled {type(e).__name__} on {request.method} {request.url.path}: {e}",
                exc_info=True,
                extra={"path": request.url.path, "method": request.method},
            )
            return error_response(500, INTERNAL_ERROR_MESSAGE, "InternalError")
