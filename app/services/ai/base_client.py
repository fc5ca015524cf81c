"""
Base client for the remote AI processing workers.

Calls are made with ``requests`` and a hard timeout, and run in the default
thread pool executor so they never block the event loop. Failures are
translated into the application's remote error types; nothing is retried.
"""
import asyncio
import functools
import time
import logging
import requests
from typing import Any, Callable, Dict, Optional
from app.core.config import Settings
from app.core.exceptions import ProcessingServiceException

logger = logging.getLogger(__name__)

ErrorFactory = Callable[[str, str], ProcessingServiceException]


class BaseWorkerClient:
    """Common HTTP plumbing shared by the clip and stream worker clients."""

    def __init__(self, settings: Settings, service_key: str, base_url: str, session: Optional[requests.Session] = None):
        """
        Initialize base worker client.

        Args:
            settings: Application settings
            service_key: Short name used in logs and errors ("clip_worker", ...)
            base_url: Root URL of the worker API
            session: Optional requests session (shared connection pool)
        """
        self.settings = settings
        self.service_key = service_key
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(
        self,
        method: str,
        path: str,
        timeout: float,
        error: ErrorFactory,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Make one HTTP request to the worker.

        Args:
            method: HTTP method
            path: Path below the worker base URL
            timeout: Request timeout in seconds
            error: Factory building the exception raised on any failure
            payload: JSON body
            params: Query string parameters

        Returns:
            Decoded JSON object

        Raises:
            ProcessingServiceException: Built by ``error`` on timeout, connection
                failure, non-2xx status or a body that is not a JSON object
        """
        url = self._url(path)
        start_time = time.time()

        try:
            response = self.session.request(
                method,
                url,
                json=payload,
                params=params,
                headers={"Content-Type": "application/json"},
                timeout=timeout,
            )
        except requests.exceptions.Timeout:
            logger.error(f"{self.service_key} timeout after {timeout}s: {method} {url}")
            raise error(self.service_key, f"Request timeout after {timeout}s")
        except requests.exceptions.RequestException as e:
            logger.error(f"{self.service_key} connection error: {method} {url}: {e}")
            raise error(self.service_key, f"Connection error: {e}")

        duration = time.time() - start_time
        logger.info(
            f"{self.service_key} API response: {method} {path} "
            f"status={response.status_code}, duration={duration:.2f}s"
        )

        if not 200 <= response.status_code < 300:
            error_msg = f"HTTP {response.status_code}: {response.text[:200]}"
            logger.error(f"{self.service_key} API error: {error_msg}")
            raise error(self.service_key, error_msg)

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"{self.service_key} response parse error: {e}")
            raise error(self.service_key, f"Invalid JSON response: {e}")

        if not isinstance(data, dict):
            raise error(self.service_key, f"Unexpected response body: {str(data)[:200]}")

        return data

    async def _request_async(self, method: str, path: str, timeout: float, error: ErrorFactory, **kwargs) -> Dict[str, Any]:
        """Run ``_request`` in the thread pool executor."""
        loop = asyncio.get_running_loop()
        call = functools.partial(self._request, method, path, timeout, error, **kwargs)
        return await loop.run_in_executor(None, call)

    def close(self) -> None:
        self.session.close()
