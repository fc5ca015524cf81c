"""
Custom exception classes for the clip processing application.
These exceptions provide meaningful error messages and HTTP status codes.
"""


class ProcessingServiceException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class RemoteSubmissionError(ProcessingServiceException):
    """Raised when the remote worker rejects or never receives a submission."""

    def __init__(self, service: str, error: str):
        super().__init__(
            message=f"Failed to submit job to {service}: {error}",
            status_code=502  # Bad Gateway
        )
        self.service = service
        self.error = error


class RemoteUnavailableError(ProcessingServiceException):
    """Raised when the remote worker cannot be polled for progress."""

    def __init__(self, service: str, error: str):
        super().__init__(
            message=f"Remote worker {service} unavailable: {error}",
            status_code=503  # Service Unavailable
        )
        self.service = service
        self.error = error


class UnknownJobError(ProcessingServiceException):
    """Raised when an update references a job this system does not track."""

    def __init__(self, job_key: str):
        super().__init__(
            message=f"Unknown job: {job_key}",
            status_code=404
        )
        self.job_key = job_key


class NotFoundError(ProcessingServiceException):
    """Raised when a queried record does not exist."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            status_code=404
        )
        self.resource = resource
        self.identifier = identifier


class ValidationException(ProcessingServiceException):
    """Raised when request data validation fails."""

    def __init__(self, message: str):
        super().__init__(
            message=f"Validation error: {message}",
            status_code=400  # Bad Request
        )


class ConcurrentUpdateError(ProcessingServiceException):
    """Raised when a record keeps changing underneath a reconciliation attempt."""

    def __init__(self, record_id: str, attempts: int):
        super().__init__(
            message=f"Record {record_id} changed concurrently; gave up after {attempts} attempts",
            status_code=409  # Conflict
        )
        self.record_id = record_id
        self.attempts = attempts


class LockTimeoutError(ProcessingServiceException):
    """Raised when the per-record update lock cannot be acquired in time."""

    def __init__(self, record_id: str, timeout: float):
        super().__init__(
            message=f"Timed out after {timeout}s waiting for update lock on {record_id}",
            status_code=503
        )
        self.record_id = record_id
        self.timeout = timeout


class JobAlreadyTerminalError(ProcessingServiceException):
    """Raised when an administrative transition targets a finished job."""

    def __init__(self, record_id: str, status: str):
        super().__init__(
            message=f"Job {record_id} is already {status}",
            status_code=409
        )
        self.record_id = record_id
        self.status = status
