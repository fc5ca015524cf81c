"""
Per-record update locks.

Every read-modify-write of a job record happens while holding the lock for
that record, so concurrent webhook deliveries and polls for the same job are
applied one at a time. Different records never contend.

Two backends:
- InProcessJobLocks: asyncio.Lock per record, for a single API process
- RedisJobLocks: SET NX lock with TTL, for several API processes
"""
import asyncio
import json
import time
import uuid
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Dict, List

import redis.asyncio as aioredis

from app.core.exceptions import LockTimeoutError

logger = logging.getLogger(__name__)

# Compare-and-delete so a holder whose TTL expired cannot release a newer lock
RELEASE_SCRIPT = """
local current = redis.call('get', KEYS[1])
if current and cjson.decode(current)['token'] == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""


def _get_lock_key(record_id: str) -> str:
    """Get Redis key for a record's update lock."""
    return f"job:{record_id}:lock"


class JobLockProvider(ABC):
    """Hands out mutual exclusion scopes keyed by record id."""

    @abstractmethod
    def hold(self, record_id: str):
        """Async context manager holding the lock for ``record_id``."""

    async def close(self) -> None:
        pass


class InProcessJobLocks(JobLockProvider):
    """
    asyncio.Lock map keyed by record id.

    Entries are reference counted and dropped once nobody holds or waits for
    them, so the map only ever contains records with in-flight updates.
    """

    def __init__(self, acquire_timeout: float = 10.0):
        self.acquire_timeout = acquire_timeout
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, record_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(record_id, asyncio.Lock())
        self._users[record_id] = self._users.get(record_id, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.acquire_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Timed out waiting for in-process lock on {record_id}")
                raise LockTimeoutError(record_id, self.acquire_timeout)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[record_id] -= 1
            if self._users[record_id] == 0:
                del self._users[record_id]
                del self._locks[record_id]

    def active_keys(self) -> List[str]:
        """Record ids that currently have a holder or waiter."""
        return list(self._locks)


class RedisJobLocks(JobLockProvider):
    """
    Distributed lock using Redis SET NX with a TTL.

    The TTL bounds how long a crashed holder can block a record; it must be
    longer than one reconciliation (a store read plus one write).
    """

    def __init__(
        self,
        client_factory: Callable[[], Awaitable[aioredis.Redis]],
        ttl_seconds: int = 30,
        acquire_timeout: float = 10.0,
        retry_interval: float = 0.05,
    ):
        self._client_factory = client_factory
        self.ttl_seconds = ttl_seconds
        self.acquire_timeout = acquire_timeout
        self.retry_interval = retry_interval

    async def acquire(self, record_id: str) -> str:
        """
        Acquire exclusive lock for updating a record.
        Uses Redis SET NX (set if not exists) for atomic acquisition.

        Returns:
            Token identifying this holder, needed to release

        Raises:
            LockTimeoutError: If the lock is still held after acquire_timeout
        """
        redis = await self._client_factory()
        lock_key = _get_lock_key(record_id)
        token = uuid.uuid4().hex
        lock_data = json.dumps({"token": token, "locked_at": time.time()})
        deadline = time.monotonic() + self.acquire_timeout

        while True:
            acquired = await redis.set(
                lock_key,
                lock_data,
                nx=True,  # Only set if key doesn't exist
                ex=self.ttl_seconds  # TTL in seconds
            )
            if acquired:
                logger.debug(f"Acquired update lock for {record_id}")
                return token
            if time.monotonic() >= deadline:
                logger.warning(f"Failed to acquire update lock for {record_id} (still locked)")
                raise LockTimeoutError(record_id, self.acquire_timeout)
            await asyncio.sleep(self.retry_interval)

    async def release(self, record_id: str, token: str) -> None:
        """Release the lock if this holder still owns it."""
        redis = await self._client_factory()
        released = await redis.eval(RELEASE_SCRIPT, 1, _get_lock_key(record_id), token)
        if not released:
            logger.warning(f"Update lock for {record_id} expired before release")

    @asynccontextmanager
    async def hold(self, record_id: str) -> AsyncIterator[None]:
        token = await self.acquire(record_id)
        try:
            yield
        finally:
            await self.release(record_id, token)
